import functools
import inspect

from types import FunctionType, ModuleType
from typing import Any, Optional, Union
from unittest import mock

from easyfix.custom_logger import CustomLogger
from easyfix.dispatcher import Mode, ModeDispatcher
from easyfix.fixture_store import FixtureStore
from easyfix.lifecycle import TestScope, default_scope
from easyfix.settings.config_loader import get_settings


class StubHandle:
    """
    Owns the patched method slot on the target for the lifetime of a wrap.

    ``call_count`` counts every call the wrapper saw; it stops moving once ``restore`` puts the
    original method back. The handle is also a context manager that restores on exit.
    """

    def __init__(
        self,
        target: Any,
        method_name: str,
        mode: Mode,
        patcher,
        stub: Optional[mock.MagicMock] = None,
        logger: Optional[CustomLogger] = None,
    ) -> None:
        self.target = target
        self.method_name = method_name
        self.mode = mode
        self.logger = logger or CustomLogger.get_logger(__name__)
        self._patcher = patcher
        started = patcher.start()
        self._stub = stub if stub is not None else started
        self._final_count: Optional[int] = None

    @property
    def call_count(self) -> int:
        if self._final_count is not None:
            return self._final_count
        return self._stub.call_count

    @property
    def restored(self) -> bool:
        return self._patcher is None

    def restore(self) -> None:
        """Reinstall the original method. Calling it again is a no-op."""
        if self._patcher is None:
            return
        self._final_count = self._stub.call_count
        self._patcher.stop()
        self._patcher = None
        self._stub = None
        self.logger.debug(f"Restored {self.method_name}() after {self._final_count} call(s) in {self.mode.value} mode.")

    def __enter__(self) -> "StubHandle":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.restore()


def wrap_async_method(
    target: Any,
    method_name: str,
    mode: Union[Mode, str, None] = None,
    *,
    spy: Optional[ModuleType] = None,
    dir: Optional[str] = None,
    scope: Optional[TestScope] = None,
    store: Optional[FixtureStore] = None,
    fingerprint_mismatch: Optional[str] = None,
    logger: Optional[CustomLogger] = None,
) -> StubHandle:
    """
    Replace ``target.<method_name>`` with a live, capture or replay wrapper.

    Args:
        target (Any): The object whose method is wrapped.
        method_name (str): Name of a callable attribute of ``target``.
        mode (Union[Mode, str, None]): "live", "capture" or "replay". Defaults to the mode given on
            the pytest command line, then to the configured default.
        spy (Optional[ModuleType]): The stub utility; anything exposing ``patch.object`` and
            ``MagicMock`` like ``unittest.mock`` (the default).
        dir (Optional[str]): Fixture directory, used when no ``store`` is given.
        scope (Optional[TestScope]): Supplies the current test identity and call ordinals.
        store (Optional[FixtureStore]): Where fixtures are read from and written to.
        fingerprint_mismatch (Optional[str]): Replay policy when arguments differ from the
            recording: "warn", "error" or "ignore".
        logger (Optional[CustomLogger]): Logger shared by the wrap's components.

    Returns:
        StubHandle: The handle exposing ``call_count`` and ``restore()``.

    Raises:
        AttributeError: If ``target`` has no attribute ``method_name``.
        TypeError: If the attribute is not callable.
        ValueError: If ``mode`` or ``fingerprint_mismatch`` is not a known value.
    """
    original = getattr(target, method_name)
    if not callable(original):
        raise TypeError(f"{type(target).__name__}.{method_name} is not callable and cannot be wrapped")

    settings = get_settings().get("default")
    scope = scope or default_scope
    mode = Mode(mode or scope.mode or settings.mode)
    store = store or FixtureStore(dir or scope.fixtures_dir, logger=logger)
    spy = spy or mock

    dispatcher = ModeDispatcher(
        original,
        method_name,
        mode,
        scope,
        store,
        fingerprint_mismatch=fingerprint_mismatch or settings.fingerprint_mismatch,
        logger=logger,
    )
    if _is_instance_method_of_class(target, method_name):
        stub = spy.MagicMock(side_effect=dispatcher.call_on_instance)

        # A mock on the class is not a descriptor, so the receiving instance is passed on explicitly
        @functools.wraps(original)
        def bound_stub(instance, *args, **kwargs):
            return stub(instance, *args, **kwargs)

        patcher = spy.patch.object(target, method_name, new=bound_stub)
        handle = StubHandle(target, method_name, mode, patcher, stub=stub, logger=logger)
    else:
        patcher = spy.patch.object(target, method_name, new_callable=spy.MagicMock, side_effect=dispatcher)
        handle = StubHandle(target, method_name, mode, patcher, logger=logger)

    handle.logger.info(f"✨ Wrapped {method_name}() in {mode.value} mode (fixtures in {store.base_dir}).")
    return handle


def _is_instance_method_of_class(target: Any, method_name: str) -> bool:
    """True when ``target`` is a class and ``method_name`` is a plain function defined on it or a base."""
    return inspect.isclass(target) and isinstance(inspect.getattr_static(target, method_name), FunctionType)
