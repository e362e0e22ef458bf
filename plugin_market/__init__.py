"""plugin-market: keeps declared, installed and available plugin versions in sync."""

__version__ = "0.1.0"
