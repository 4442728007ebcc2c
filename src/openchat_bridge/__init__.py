"""Bridge between the OpenChat bot platform and an autonomous agent runtime."""

__version__ = "0.3.0"
