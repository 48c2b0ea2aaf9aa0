"""Management calls for a hosted log service over a pluggable transport, and a consumer-group library."""

__version__ = "0.6.0"