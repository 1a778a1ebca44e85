"""Budget Profit Optimizer — profit curves and budget recommendations for ad campaigns."""

__version__ = "0.3.0"
