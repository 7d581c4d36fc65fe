class ModelLoadError(RuntimeError):
    """Raised when the face landmarker or the engagement CNN cannot be loaded."""


class EmptyHistoryError(ValueError):
    """Raised when exporting a session that has no per-minute entries yet."""
