"""
EDL-specific error types.

An EDL either loads completely or not at all. There is no partial load.
"""

from ..errors import ValidationError


class EdlValidationError(ValidationError):
    """Raised when an EDL file is structurally invalid."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid EDL {path}: {reason}")


class EdlUnsupportedError(ValidationError):
    """Raised when an EDL uses a feature that cannot be imported."""

    def __init__(self, path: str, feature: str):
        self.path = path
        self.feature = feature
        super().__init__(f"Unsupported EDL content in {path}: {feature}")
