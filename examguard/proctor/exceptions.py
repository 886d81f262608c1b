"""
Proctoring errors

Everything raised by the engine derives from ProctorError so callers
can recover locally without catching unrelated failures.
"""


class ProctorError(Exception):
    """Base class for proctoring engine errors"""


class MalformedDetectionError(ProctorError, ValueError):
    """A face or object entry from a perception model cannot be normalized"""


class PerceptionUnavailableError(ProctorError):
    """A perception model failed to load or is not installed"""


class SessionStateError(ProctorError):
    """Operation is not valid for the current session state"""
