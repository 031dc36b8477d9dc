"""Order management service: HTTP API over a two-table order store."""

__version__ = "0.1.0"
