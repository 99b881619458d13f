from unittest.mock import patch

import pytest
import yaml

from easyfix.errors import FixtureStorageError
from easyfix.fixture_store import FixtureKey, FixtureStore


KEY = FixtureKey("tests/test_client.py::test_fetch[user/1]", "fetch", 0)
FINGERPRINT = {"args": [{"val": 0}], "kwargs": {}}


class TestAddressing:
    """Tests for the mapping from fixture keys to file paths"""

    @staticmethod
    def test_path_is_deterministic_across_store_instances(tmp_path):
        """
        Two stores over the same directory (e.g. a capture run and a later replay run) must agree
        on where a key lives.
        """
        assert FixtureStore(str(tmp_path)).path_for(KEY) == FixtureStore(str(tmp_path)).path_for(KEY)

    @staticmethod
    def test_path_layout(tmp_path):
        path = FixtureStore(str(tmp_path)).path_for(FixtureKey("test id", "fetch", 3))

        assert path.name == "3.yml"
        assert path.parent.name.startswith("fetch-")
        assert path.parent.parent.name.startswith("test_id-")
        assert path.parent.parent.parent == tmp_path

    @staticmethod
    @pytest.mark.parametrize(
        "test_case",
        [
            {
                "name": "identities_with_equal_slugs",
                "first": FixtureKey("tests/a.py::test", "fetch", 0),
                "second": FixtureKey("tests_a.py__test", "fetch", 0),
            },
            {
                "name": "method_names",
                "first": FixtureKey("t", "fetch", 0),
                "second": FixtureKey("t", "fetch_all", 0),
            },
            {
                "name": "ordinals",
                "first": FixtureKey("t", "fetch", 1),
                "second": FixtureKey("t", "fetch", 10),
            },
        ],
        ids=lambda case: case["name"],
    )
    def test_distinct_keys_get_distinct_paths(test_case, tmp_path):
        store = FixtureStore(str(tmp_path))

        assert store.path_for(test_case["first"]) != store.path_for(test_case["second"])

    @staticmethod
    def test_unsafe_characters_never_escape_the_base_dir(tmp_path):
        path = FixtureStore(str(tmp_path)).path_for(FixtureKey("../../etc/passwd", "../x", 0))

        assert tmp_path in path.parents
        assert ".." not in path.relative_to(tmp_path).parts

    @staticmethod
    def test_defaults_to_configured_folder():
        store = FixtureStore()

        assert str(store.base_dir) == FixtureStore.SETTINGS.fixtures_folder


class TestReadWrite:
    @staticmethod
    def test_write_then_read(tmp_path):
        store = FixtureStore(str(tmp_path / "nested" / "fixtures"))

        path = store.write(KEY, FINGERPRINT, [None, 1])
        record = store.read(KEY)

        assert path.is_file()
        assert record.fingerprint == FINGERPRINT
        assert record.result == [None, 1]
        assert record.path == path
        assert len(record.digest) == FixtureStore.HASH_DISPLAY_LENGTH

    @staticmethod
    def test_file_contents(tmp_path):
        store = FixtureStore(str(tmp_path))

        path = store.write(KEY, FINGERPRINT, [None, {"state": 1}])
        data = yaml.safe_load(path.read_text())

        assert data["test_identity"] == KEY.test_identity
        assert data["method_name"] == "fetch"
        assert data["ordinal"] == 0
        assert data["fingerprint"] == FINGERPRINT
        assert data["result"] == [None, {"state": 1}]
        assert not list(path.parent.glob("*.tmp"))

    @staticmethod
    def test_write_overwrites_previous_capture(tmp_path):
        store = FixtureStore(str(tmp_path))

        store.write(KEY, FINGERPRINT, [None, 1])
        store.write(KEY, FINGERPRINT, [None, 2])

        assert store.read(KEY).result == [None, 2]

    @staticmethod
    def test_read_missing_returns_none(tmp_path):
        store = FixtureStore(str(tmp_path))

        assert store.read(KEY) is None
        assert not store.exists(KEY)

    @staticmethod
    @pytest.mark.parametrize(
        "content",
        [
            "result: [unclosed",
            "- just\n- a list\n",
            "fingerprint: {}\nresult: not-a-list\n",
        ],
    )
    def test_read_malformed_file_raises(tmp_path, content):
        store = FixtureStore(str(tmp_path))
        path = store.path_for(KEY)
        path.parent.mkdir(parents=True)
        path.write_text(content)

        with pytest.raises(FixtureStorageError) as exc_info:
            store.read(KEY)

        assert exc_info.value.path == path

    @staticmethod
    def test_write_failure_raises_storage_error(tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        store = FixtureStore(str(blocker))

        with pytest.raises(FixtureStorageError, match="Failed to write fixture"):
            store.write(KEY, FINGERPRINT, [None])

    @staticmethod
    def test_write_does_not_replace_file_on_dump_failure(tmp_path):
        store = FixtureStore(str(tmp_path))
        store.write(KEY, FINGERPRINT, [None, 1])

        with patch("easyfix.fixture_store.yaml.safe_dump", side_effect=yaml.YAMLError("cannot represent")):
            with pytest.raises(FixtureStorageError):
                store.write(KEY, FINGERPRINT, [None, 2])

        assert store.read(KEY).result == [None, 1]

    @staticmethod
    def test_storage_error_is_an_os_error(tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")

        with pytest.raises(OSError):
            FixtureStore(str(blocker)).write(KEY, FINGERPRINT, [None])


class TestHousekeeping:
    @staticmethod
    def populate(store):
        keys = [
            FixtureKey("test_b", "fetch", 1),
            FixtureKey("test_b", "fetch", 0),
            FixtureKey("test_a", "save", 0),
        ]
        for key in keys:
            store.write(key, FINGERPRINT, [None])
        return keys

    @staticmethod
    def test_list_records_sorted(tmp_path):
        store = FixtureStore(str(tmp_path))
        TestHousekeeping.populate(store)

        assert store.list_records() == [
            FixtureKey("test_a", "save", 0),
            FixtureKey("test_b", "fetch", 0),
            FixtureKey("test_b", "fetch", 1),
        ]
        assert store.list_records("test_a") == [FixtureKey("test_a", "save", 0)]

    @staticmethod
    def test_list_records_of_empty_store(tmp_path):
        assert FixtureStore(str(tmp_path / "absent")).list_records() == []

    @staticmethod
    def test_clear_one_test(tmp_path):
        store = FixtureStore(str(tmp_path))
        TestHousekeeping.populate(store)

        assert store.clear("test_b") == 2
        assert store.list_records() == [FixtureKey("test_a", "save", 0)]

    @staticmethod
    def test_clear_everything(tmp_path):
        store = FixtureStore(str(tmp_path / "fixtures"))
        TestHousekeeping.populate(store)

        assert store.clear() == 3
        assert store.list_records() == []

    @staticmethod
    def test_clear_keeps_files_it_did_not_record(tmp_path):
        """
        Clearing a directory shared with other files removes only fixture files.

        Assertions:
            - Unrelated files at the top level and next to fixtures survive.
            - Directories emptied by the clear are removed, the base directory is kept.
        """
        store = FixtureStore(str(tmp_path))
        TestHousekeeping.populate(store)
        notes = tmp_path / "notes.txt"
        notes.write_text("keep me")
        test_b_dir = store.path_for(FixtureKey("test_b", "fetch", 0)).parent.parent
        readme = test_b_dir / "README.md"
        readme.write_text("keep me too")
        test_a_dir = store.path_for(FixtureKey("test_a", "save", 0)).parent.parent

        assert store.clear() == 3

        assert notes.read_text() == "keep me"
        assert readme.read_text() == "keep me too"
        assert list(test_b_dir.iterdir()) == [readme]
        assert not test_a_dir.exists()
        assert tmp_path.is_dir()

    @staticmethod
    def test_clear_one_test_keeps_foreign_files_in_its_directory(tmp_path):
        store = FixtureStore(str(tmp_path))
        TestHousekeeping.populate(store)
        method_dir = store.path_for(FixtureKey("test_b", "fetch", 0)).parent
        scratch = method_dir / "scratch.log"
        scratch.write_text("")

        assert store.clear("test_b") == 2

        assert scratch.is_file()
        assert list(method_dir.iterdir()) == [scratch]

    @staticmethod
    def test_clear_failure_raises_storage_error(tmp_path):
        store = FixtureStore(str(tmp_path))
        store.write(KEY, FINGERPRINT, [None])

        with patch("pathlib.Path.unlink", side_effect=PermissionError("read-only")):
            with pytest.raises(FixtureStorageError, match="Failed to remove fixture"):
                store.clear()

        assert store.exists(KEY)
