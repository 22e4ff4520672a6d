"""
Storefront backend package.

Order lifecycle, discount and reward settlement, and delivery charge
policy for the multi-vendor storefront.
"""

__version__ = "1.0.0"
