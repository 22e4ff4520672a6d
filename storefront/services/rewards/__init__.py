"""Reward point ledger and referral accrual."""
