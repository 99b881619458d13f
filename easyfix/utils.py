import hashlib
import os
import re

from typing import Any, Callable, Optional


UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")
MAX_SLUG_LENGTH = 80


def truncate_hash(hash_value: str, hash_display_length: int) -> str:
    """
    Truncate a hash string to a specified length.

    Parameters:
    hash_value (str): The original hash string to be truncated.
    hash_display_length (int): The desired length of the truncated hash.

    Returns:
    str: The truncated hash string.

    Example:
        truncate_hash("abcdef123456", 6)  # Returns "abcdef"
    """
    return hash_value[:hash_display_length]


def safe_path_component(text: str, hash_display_length: int) -> str:
    """
    Turn an arbitrary string (a test node id, a method name) into a single file name component.

    Characters outside [A-Za-z0-9_.-] are collapsed to "_" and a truncated SHA-256 of the raw text
    is appended, so two identities that only differ in stripped characters still get distinct
    components.

    Parameters:
    text (str): The raw identity.
    hash_display_length (int): Length of the hash suffix.

    Returns:
    str: A file system safe component.

    Example:
        safe_path_component("tests/test_io.py::test_read[a/b]", 8)  # "tests_test_io.py_test_read_a_b_-<8 hex digits>"
    """
    slug = UNSAFE_PATH_CHARS.sub("_", text).strip(".")[:MAX_SLUG_LENGTH] or "_"
    digest = truncate_hash(hashlib.sha256(text.encode("utf-8")).hexdigest(), hash_display_length)
    return f"{slug}-{digest}"


def get_pytest_test_name() -> Optional[str]:
    """
    Return the node id of the test pytest is currently running, if any.

    pytest exports PYTEST_CURRENT_TEST as "<node id> (<phase>)" while a test runs.
    """
    current = os.getenv("PYTEST_CURRENT_TEST")
    if not current:
        return None
    return current.rsplit(" (", 1)[0]


def split_callback(args: tuple, kwargs: dict) -> tuple[tuple, dict, Callable[..., Any]]:
    """
    Separate the completion callback from the other arguments of a callback-style call.

    The callback is the ``callback`` keyword argument when given, otherwise the last positional
    argument.

    Returns:
        tuple: (arguments without the callback, keyword arguments without the callback, callback)

    Raises:
        TypeError: If no callable callback can be found.
    """
    if "callback" in kwargs:
        kwargs = dict(kwargs)
        callback = kwargs.pop("callback")
        call_args = args
    elif args:
        callback = args[-1]
        call_args = args[:-1]
    else:
        callback = None
        call_args = args

    if not callable(callback):
        raise TypeError("Callback-style methods must receive a callable callback as their last argument")

    return call_args, kwargs, callback
