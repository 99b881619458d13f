from contextlib import contextmanager
from typing import Iterator, Optional

from easyfix.custom_logger import CustomLogger
from easyfix.sequencer import CallSequencer
from easyfix.settings.config_loader import get_settings
from easyfix.utils import get_pytest_test_name


class TestScope:
    """
    Tracks which test is running and owns the call sequencer for it.

    A test runner integration calls ``begin`` before each test and ``end`` after it; both reset the
    sequencer so ordinals never leak from one test into the next. Outside of ``begin``/``end`` the
    identity falls back to the test pytest reports as running, then to the configured default name.

    Session-wide overrides for the mode and the fixture directory (set from the pytest command
    line) also live here, so a wrap can pick them up without reaching for global settings.
    """

    # Not a test class, despite the name
    __test__ = False

    def __init__(
        self,
        sequencer: Optional[CallSequencer] = None,
        default_test_name: Optional[str] = None,
        logger: Optional[CustomLogger] = None,
    ) -> None:
        self.sequencer = sequencer or CallSequencer()
        self.default_test_name = default_test_name or get_settings().get("default").default_test_name
        self.logger = logger or CustomLogger.get_logger(__name__)
        self.mode: Optional[str] = None
        self.fixtures_dir: Optional[str] = None
        self._current_test: Optional[str] = None

    @property
    def current_test(self) -> str:
        return self._current_test or get_pytest_test_name() or self.default_test_name

    def begin(self, test_identity: str) -> None:
        self.sequencer.reset(test_identity)
        self._current_test = test_identity
        self.logger.debug(f"Entered test scope {test_identity}.")

    def end(self) -> None:
        if self._current_test is not None:
            self.sequencer.reset(self._current_test)
            self.logger.debug(f"Left test scope {self._current_test}.")
        self._current_test = None

    @contextmanager
    def test(self, test_identity: str) -> Iterator["TestScope"]:
        """Run a block as the test named ``test_identity``."""
        self.begin(test_identity)
        try:
            yield self
        finally:
            self.end()


default_scope = TestScope()
