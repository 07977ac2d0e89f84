"""Deal financial projection engine for training-provider forecasting."""

__version__ = "0.3.0"
