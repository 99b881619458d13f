from easyfix.dispatcher import Mode, ModeDispatcher
from easyfix.errors import (
    EasyFixError,
    FingerprintMismatchError,
    FixtureStorageError,
    MissingFixtureError,
    RecordedError,
)
from easyfix.fingerprint import FingerprintEncoder, encode, fingerprint_digest
from easyfix.fixture_store import FixtureKey, FixtureRecord, FixtureStore
from easyfix.lifecycle import TestScope, default_scope
from easyfix.sequencer import CallSequencer
from easyfix.stub_handle import StubHandle, wrap_async_method
from easyfix.version import __version__

__all__ = [
    "CallSequencer",
    "EasyFixError",
    "FingerprintEncoder",
    "FingerprintMismatchError",
    "FixtureKey",
    "FixtureRecord",
    "FixtureStorageError",
    "FixtureStore",
    "MissingFixtureError",
    "Mode",
    "ModeDispatcher",
    "RecordedError",
    "StubHandle",
    "TestScope",
    "default_scope",
    "encode",
    "fingerprint_digest",
    "wrap_async_method",
    "__version__",
]
