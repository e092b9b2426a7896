"""toolrent - cart and order state engine for a tool-rental storefront."""

__version__ = "0.1.0"
