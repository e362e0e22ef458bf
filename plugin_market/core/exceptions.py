"""Custom exceptions for plugin-market."""


class MarketError(Exception):
    """Base exception for all plugin-market errors."""


class ManifestError(MarketError):
    """Raised when the project manifest is missing or cannot be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"cannot load project manifest {path}: {reason}")
