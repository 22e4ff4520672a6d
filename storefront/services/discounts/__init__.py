"""
Discount code evaluation.

Submodules:
- evaluator: discount computation, validation and checkout settlement
- repository: discount lookup and usage records
"""
