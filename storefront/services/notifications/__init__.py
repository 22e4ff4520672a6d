"""Order email notifications via AWS SES."""
