"""Exceptions raised across the guidance core."""


class NavigatorError(Exception):
    """Base application error."""
    pass


class AcquisitionError(NavigatorError):
    """Speech or typed-query acquisition failed."""
    pass


class ConfigError(NavigatorError):
    """Configuration-related errors."""
    pass
