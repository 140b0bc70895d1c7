class GBDTError(Exception):
    """Library-specific exceptions for the boosting engine."""


class ConfigurationError(GBDTError, ValueError):
    """Raised when training inputs or parameters are invalid."""

    def __init__(self, message: str):
        super().__init__(message)


class NotFittedError(GBDTError, RuntimeError):
    """Raised when a model is used before it has been fitted."""


class CategoricalValueError(GBDTError, TypeError):
    """Raised when a categorical split meets a value other than 0 or 1."""

    def __init__(self, feature: int, value: float):
        super().__init__(
            f"categorical feature {feature} must be encoded as 0/1, got {value!r}"
        )
        self.feature = feature
        self.value = value


class ForestFormatError(GBDTError, ValueError):
    """Raised when a serialized forest table is malformed."""
