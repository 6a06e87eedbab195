"""Order and inventory service for a food-service counter."""

__version__ = "0.1.0"
