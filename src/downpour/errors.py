class DownpourError(Exception):
    """Base class for errors raised by downpour."""


class ConfigurationError(DownpourError, ValueError):
    """Raised for malformed run parameters before any request is sent."""
