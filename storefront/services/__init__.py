"""Business services for the storefront order core."""
