"""Order lifecycle synchronizer for a food stand kitchen and back-office."""

__version__ = "1.0.0"
