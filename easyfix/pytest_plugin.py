"""
pytest integration: ties the default test scope to pytest's test lifecycle.

Enable it with ``-p easyfix.pytest_plugin`` (or ``pytest_plugins = ["easyfix.pytest_plugin"]`` in a
root conftest.py).
"""

import pytest

from easyfix.dispatcher import Mode
from easyfix.lifecycle import default_scope
from easyfix.stub_handle import wrap_async_method


def pytest_addoption(parser: pytest.Parser) -> None:
    """
    Add the easy-fix command line options to pytest.

    Args:
        parser (pytest.Parser): The pytest parser object used to define custom command line options.
    """
    group = parser.getgroup("easyfix", "record/replay fixtures for asynchronous methods")
    arg_definitions = [
        (
            "--easyfix-mode",
            dict(
                choices=[mode.value for mode in Mode],
                default=None,
                help="Mode for wrapped methods that do not set one (live, capture or replay).",
            ),
        ),
        ("--easyfix-dir", dict(default=None, help="Directory fixture files are written to and read from.")),
    ]

    for name, kwargs in arg_definitions:
        group.addoption(name, **kwargs)


def pytest_configure(config: pytest.Config) -> None:
    default_scope.mode = config.getoption("--easyfix-mode")
    default_scope.fixtures_dir = config.getoption("--easyfix-dir")


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_setup(item: pytest.Item) -> None:
    default_scope.begin(item.nodeid)


@pytest.hookimpl(wrapper=True)
def pytest_runtest_teardown(item: pytest.Item, nextitem):
    try:
        return (yield)
    finally:
        default_scope.end()


@pytest.fixture
def easyfix_scope():
    """The test scope wraps use by default, already bound to the running test."""
    return default_scope


@pytest.fixture
def easyfix_wrap():
    """
    Factory around wrap_async_method that restores every handle it created when the test ends.

    Example:
        def test_fetch(easyfix_wrap):
            handle = easyfix_wrap(client, "fetch", "replay")
    """
    handles = []

    def wrap(target, method_name, mode=None, **options):
        handle = wrap_async_method(target, method_name, mode, **options)
        handles.append(handle)
        return handle

    yield wrap

    for handle in reversed(handles):
        handle.restore()
