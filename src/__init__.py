"""Recruiting analyst allocation engine."""

__app_name__ = "allocation-engine"
__version__ = "0.1.0"
