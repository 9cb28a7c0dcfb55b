from __future__ import annotations


class ExportError(Exception):
    """Base class for failures raised by the export pipeline."""

    status_code = 500
    default_message = "Video export failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class SynthesisFailure(ExportError):
    """The speech service was unreachable or rejected the request."""

    status_code = 502
    default_message = "Narration audio could not be synthesized."


class DecodeFailure(ExportError):
    """Audio bytes were received but could not be decoded."""

    status_code = 422
    default_message = "Narration audio could not be decoded."


class BufferTooLarge(ExportError):
    status_code = 413
    default_message = "This presentation is too long to export as a single video."


class RecorderAcquisitionFailure(ExportError):
    status_code = 503
    default_message = "Video recording is not supported in this environment."


class DeliveryFailure(ExportError):
    status_code = 500
    default_message = "The exported video could not be delivered."


class ExportCancelled(ExportError):
    status_code = 409
    default_message = "The export was cancelled."


__all__ = [
    "ExportError",
    "SynthesisFailure",
    "DecodeFailure",
    "BufferTooLarge",
    "RecorderAcquisitionFailure",
    "DeliveryFailure",
    "ExportCancelled",
]
