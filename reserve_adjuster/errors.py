"""Error types raised by the reserve adjuster."""


class ReserveAdjusterError(Exception):
    """Base class for all reserve adjuster errors."""


class AuthError(ReserveAdjusterError):
    """No usable credential: missing/invalid refresh token or failed login."""


class UpstreamError(ReserveAdjusterError):
    """Tesla API unreachable, returned a non-2xx status or an unexpected payload."""


class ConfigError(ReserveAdjusterError):
    """A stored setting is malformed and cannot be used."""


class ValidationError(ReserveAdjusterError):
    """User input on a settings write could not be interpreted."""
