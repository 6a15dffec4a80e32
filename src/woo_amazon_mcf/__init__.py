"""Bridge between a WooCommerce store and Amazon Multi-Channel Fulfillment."""

__version__ = "1.0.0"
