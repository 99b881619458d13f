from collections import defaultdict
from typing import Optional


class CallSequencer:
    """
    Hands out the zero-based ordinal of each call to a wrapped method within a test.

    The ordinal, not the argument content, is what tells repeated calls apart: a test calling the
    same method twice with similar (or incrementing) arguments gets fixtures #0 and #1.
    """

    def __init__(self) -> None:
        self._counters: dict[str, dict[str, int]] = defaultdict(dict)

    def next_ordinal(self, test_identity: str, method_name: str) -> int:
        counters = self._counters[test_identity]
        ordinal = counters.get(method_name, 0)
        counters[method_name] = ordinal + 1
        return ordinal

    def peek(self, test_identity: str, method_name: str) -> int:
        """Return the ordinal the next call would get, without consuming it."""
        return self._counters.get(test_identity, {}).get(method_name, 0)

    def reset(self, test_identity: Optional[str] = None) -> None:
        """Forget the counters of one test, or of every test when no identity is given."""
        if test_identity is None:
            self._counters.clear()
        else:
            self._counters.pop(test_identity, None)
