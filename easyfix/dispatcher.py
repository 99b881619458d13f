import asyncio
import inspect

from enum import Enum
from typing import Any, Callable, Optional

from easyfix.custom_logger import CustomLogger
from easyfix.errors import EasyFixError, FingerprintMismatchError, MissingFixtureError, RecordedError
from easyfix.fingerprint import FingerprintEncoder, decode_result, fingerprint_digest
from easyfix.fixture_store import FixtureKey, FixtureRecord, FixtureStore
from easyfix.lifecycle import TestScope
from easyfix.utils import split_callback


class Mode(str, Enum):
    """How a wrapped method behaves. Fixed for the lifetime of a wrap."""

    LIVE = "live"
    CAPTURE = "capture"
    REPLAY = "replay"


MISMATCH_POLICIES = ("warn", "error", "ignore")


class ModeDispatcher:
    """
    Runs every call of a wrapped method according to the mode.

    Two method shapes are supported:

    - callback-style methods, whose callback is the last positional argument (or the ``callback``
      keyword) and receives ``(error_or_None, *payload)``;
    - coroutine functions, whose outcome is stored as ``[None, value]`` or ``[error]`` so both
      shapes share one fixture format.

    Ordinals are taken when the call is initiated, before any awaiting, so overlapping calls keep
    the order they were made in regardless of when they complete.
    """

    def __init__(
        self,
        original: Callable[..., Any],
        method_name: str,
        mode: Mode,
        scope: TestScope,
        store: FixtureStore,
        encoder: Optional[FingerprintEncoder] = None,
        fingerprint_mismatch: str = "warn",
        logger: Optional[CustomLogger] = None,
    ) -> None:
        if fingerprint_mismatch not in MISMATCH_POLICIES:
            raise ValueError(
                f"fingerprint_mismatch must be one of {', '.join(MISMATCH_POLICIES)}, got {fingerprint_mismatch!r}"
            )
        self.original = original
        self.method_name = method_name
        self.mode = mode
        self.scope = scope
        self.store = store
        self.encoder = encoder or FingerprintEncoder()
        self.fingerprint_mismatch = fingerprint_mismatch
        self.logger = logger or CustomLogger.get_logger(__name__)
        self.is_coroutine = inspect.iscoroutinefunction(original)

    def __call__(self, *args, **kwargs):
        return self.dispatch(self.original, args, kwargs)

    def call_on_instance(self, instance, *args, **kwargs):
        """Entry point when the method is patched on a class: binds the original to ``instance``."""
        return self.dispatch(self.original.__get__(instance, type(instance)), args, kwargs)

    def dispatch(self, method: Callable[..., Any], args: tuple, kwargs: dict):
        if self.mode is Mode.LIVE:
            return method(*args, **kwargs)

        test_identity = self.scope.current_test
        ordinal = self.scope.sequencer.next_ordinal(test_identity, self.method_name)
        key = FixtureKey(test_identity, self.method_name, ordinal)

        if self.is_coroutine:
            fingerprint = self.encoder.encode_arguments(args, kwargs)
            if self.mode is Mode.CAPTURE:
                return self._capture_coroutine(key, fingerprint, method(*args, **kwargs))
            return self._replay_coroutine(self._load(key, fingerprint).result)

        call_args, call_kwargs, callback = split_callback(args, kwargs)
        fingerprint = self.encoder.encode_arguments(call_args, call_kwargs)
        if self.mode is Mode.CAPTURE:
            return self._capture(method, key, fingerprint, call_args, call_kwargs, callback, "callback" in kwargs)
        return self._replay(key, fingerprint, callback)

    def _capture(
        self, method, key: FixtureKey, fingerprint: Any, call_args: tuple, call_kwargs: dict, callback, by_keyword: bool
    ):
        def record_and_forward(*result):
            self.store.write(key, fingerprint, self.encoder.encode_result(result))
            return callback(*result)

        if by_keyword:
            return method(*call_args, callback=record_and_forward, **call_kwargs)
        return method(*call_args, record_and_forward, **call_kwargs)

    def _replay(self, key: FixtureKey, fingerprint: Any, callback) -> None:
        record = self._load(key, fingerprint)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise EasyFixError(
                f"Replaying {self.method_name}() needs a running asyncio event loop to deliver its callback."
            ) from e
        loop.call_soon(callback, *decode_result(record.result))

    async def _capture_coroutine(self, key: FixtureKey, fingerprint: Any, awaitable) -> Any:
        try:
            value = await awaitable
        except Exception as e:
            self.store.write(key, fingerprint, self.encoder.encode_result((e,)))
            raise
        self.store.write(key, fingerprint, self.encoder.encode_result((None, value)))
        return value

    @staticmethod
    async def _replay_coroutine(result: list) -> Any:
        # Yield once so completion is never observed within the initiating step
        await asyncio.sleep(0)
        error, *payload = decode_result(result) or [None]
        if error is not None:
            if isinstance(error, BaseException):
                raise error
            raise RecordedError(type(error).__name__, str(error))
        return payload[0] if payload else None

    def _load(self, key: FixtureKey, fingerprint: Any) -> FixtureRecord:
        record = self.store.read(key)
        if record is None:
            error = MissingFixtureError(key.test_identity, key.method_name, key.ordinal, self.store.path_for(key))
            self.logger.error(str(error))
            raise error

        if self.fingerprint_mismatch != "ignore" and record.fingerprint != fingerprint:
            current_digest = fingerprint_digest(fingerprint, self.store.HASH_DISPLAY_LENGTH)
            if self.fingerprint_mismatch == "error":
                error = FingerprintMismatchError(key.method_name, key.ordinal, record.digest, current_digest)
                self.logger.error(str(error))
                raise error
            self.logger.warning(
                f"Arguments of {key.method_name}() call #{key.ordinal} differ from the recording "
                f"(recorded {record.digest}, current {current_digest}); replaying anyway."
            )

        self.logger.info(f"▶️  Replaying {key.method_name}() call #{key.ordinal} from {record.path}.")
        return record
