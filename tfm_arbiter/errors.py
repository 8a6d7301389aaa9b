"""Exception hierarchy for the arbiter."""


class ArbiterError(Exception):
    """Base exception for arbiter errors."""
    pass


class ArbiterInputError(ArbiterError, ValueError):
    """Raised when a snapshot, score vector or config violates its contract."""
    pass


class OracleError(ArbiterError):
    """Raised by a semantic oracle that could not produce a similarity."""
    pass


class ConfigError(ArbiterError, ValueError):
    """Raised when a configuration file holds unusable values."""
    pass
