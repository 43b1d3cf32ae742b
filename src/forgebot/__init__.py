"""ForgeBot - session-driven trading assistant backend for the Base network."""

__version__ = "0.1.0"
