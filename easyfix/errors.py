from pathlib import Path
from typing import Optional


class EasyFixError(Exception):
    """Base class for every error raised by the fixture engine."""


class MissingFixtureError(EasyFixError, LookupError):
    """
    Raised in replay mode when no fixture was recorded for a call.

    This is a test-authoring defect (the call was never captured, or the test's calls drifted
    from the recording), so it is raised from the wrapped call instead of being handed to the
    caller's callback.

    Attributes:
        test_identity (str): The test the call was made from.
        method_name (str): The wrapped method's name.
        ordinal (int): The zero-based index of the call within the test.
        path (Optional[Path]): Where the fixture was expected.
    """

    def __init__(self, test_identity: str, method_name: str, ordinal: int, path: Optional[Path] = None) -> None:
        self.test_identity = test_identity
        self.method_name = method_name
        self.ordinal = ordinal
        self.path = path
        message = (
            f"No fixture recorded for {method_name}() call #{ordinal} in test '{test_identity}'"
            + (f" (expected {path})" if path else "")
            + ". Run the test in capture mode to record it."
        )
        super().__init__(message)


class FixtureStorageError(EasyFixError, OSError):
    """Raised when a fixture file cannot be written, read or parsed."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        self.path = path
        super().__init__(message)


class FingerprintMismatchError(EasyFixError):
    """Raised when replayed arguments differ from the recorded ones and the policy is "error"."""

    def __init__(self, method_name: str, ordinal: int, recorded_digest: str, current_digest: str) -> None:
        self.method_name = method_name
        self.ordinal = ordinal
        self.recorded_digest = recorded_digest
        self.current_digest = current_digest
        super().__init__(
            f"Arguments of {method_name}() call #{ordinal} do not match the recording "
            f"(recorded {recorded_digest}, current {current_digest})."
        )


class RecordedError(Exception):
    """An error delivered by the real method at capture time, rebuilt for replay."""

    def __init__(self, error_type: str, message: str = "") -> None:
        self.error_type = error_type
        self.message = message
        super().__init__(f"{error_type}: {message}" if message else error_type)
