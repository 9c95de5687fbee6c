class MicroclassError(Exception):
    """Base class for every error raised by microclass."""


class PermissionDenied(MicroclassError):
    """Microphone or recognition authorization is missing."""


class CaptureFailure(MicroclassError):
    """The audio input stream or the recording file could not be started."""


class RecognitionError(MicroclassError):
    """Transient failure of a recognition stream. Recovered by restarting it."""


class PersistenceFailure(MicroclassError):
    """Saving or deleting a lecture, a class or an audio file failed."""


class InvalidTransition(MicroclassError):
    """A session operation was requested from a state that does not allow it."""


class NotFound(MicroclassError):
    """A class or lecture id does not exist."""


class SummaryFailure(MicroclassError):
    """The summary service failed or returned an unusable response."""
