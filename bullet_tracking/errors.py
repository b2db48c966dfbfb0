"""Exceptions raised by the bullet tracking pipeline."""


class BulletTrackingError(Exception):
    """Base exception for the package."""


class InputValidationError(BulletTrackingError):
    """Raised for bad run inputs (missing video, thresholds out of range, bad config)."""


class FrameSequenceError(InputValidationError):
    """Raised when frame indices or timestamps are not strictly increasing."""


class PipelineError(BulletTrackingError):
    """Raised when the run cannot continue."""


class DetectorUnavailableError(PipelineError):
    """Raised when the detector backend cannot be constructed."""


class VideoSourceError(PipelineError):
    """Raised when the input video cannot be opened."""
