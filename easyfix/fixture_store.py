import os

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from easyfix.custom_logger import CustomLogger
from easyfix.errors import FixtureStorageError
from easyfix.fingerprint import fingerprint_digest
from easyfix.settings.config_loader import get_settings
from easyfix.utils import safe_path_component


@dataclass(frozen=True)
class FixtureKey:
    """Identifies one recorded call: the ``ordinal``-th call to ``method_name`` in ``test_identity``."""

    test_identity: str
    method_name: str
    ordinal: int


@dataclass(frozen=True)
class FixtureRecord:
    fingerprint: Any
    result: list
    digest: str
    path: Path


class FixtureStore:
    """
    Persists one YAML fixture file per (test identity, method name, ordinal).

    Files live under ``<base_dir>/<test component>/<method component>/<ordinal>.yml``. The address
    is a pure function of the key, so a capture run and a later replay run of the same test meet
    at the same file without sharing anything but the directory.

    Attributes:
        HASH_DISPLAY_LENGTH (int): Length of digests and of the hash suffix of path components.
        base_dir (Path): The directory fixture files are stored under.
        logger (CustomLogger): Logger instance for logging messages.
    """
    SETTINGS = get_settings().get("default")
    HASH_DISPLAY_LENGTH = SETTINGS.hash_display_length
    FILE_SUFFIX = ".yml"

    def __init__(
        self,
        base_dir: Optional[str] = None,
        logger: Optional[CustomLogger] = None,
    ) -> None:
        self.base_dir = Path(base_dir or self.SETTINGS.fixtures_folder)
        self.logger = logger or CustomLogger.get_logger(__name__)

    def path_for(self, key: FixtureKey) -> Path:
        """
        Return the file a fixture key is stored in.

        Args:
            key (FixtureKey): The fixture key.

        Returns:
            Path: The fixture file path. Nothing is created on disk.
        """
        return self._test_dir(key.test_identity) / self._component(key.method_name) / f"{key.ordinal}{self.FILE_SUFFIX}"

    def exists(self, key: FixtureKey) -> bool:
        return self.path_for(key).is_file()

    def write(self, key: FixtureKey, fingerprint: Any, result: list) -> Path:
        """
        Record a call, replacing any earlier recording of the same key.

        Args:
            key (FixtureKey): Which call is being recorded.
            fingerprint (Any): Canonical form of the call's arguments.
            result (list): Canonical form of the arguments the callback received.

        Returns:
            Path: The written fixture file.

        Raises:
            FixtureStorageError: If the file cannot be written.
        """
        path = self.path_for(key)
        digest = fingerprint_digest(fingerprint, self.HASH_DISPLAY_LENGTH)
        data = {
            "test_identity": key.test_identity,
            "method_name": key.method_name,
            "ordinal": key.ordinal,
            "digest": digest,
            "fingerprint": fingerprint,
            "result": result,
        }

        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
            os.replace(tmp_path, path)
        except (OSError, yaml.YAMLError) as e:
            msg = f"Failed to write fixture {path}: {e}"
            self.logger.error(msg)
            if tmp_path.is_file():
                tmp_path.unlink()
            raise FixtureStorageError(msg, path) from e

        self.logger.info(f"🔴 Recorded {key.method_name}() call #{key.ordinal} (digest {digest}) to {path}.")
        return path

    def read(self, key: FixtureKey) -> Optional[FixtureRecord]:
        """
        Load the recording of a call.

        Args:
            key (FixtureKey): Which call to look up.

        Returns:
            Optional[FixtureRecord]: The record, or None if the call was never recorded.

        Raises:
            FixtureStorageError: If the file exists but cannot be read or is malformed.
        """
        path = self.path_for(key)
        if not path.is_file():
            self.logger.debug(f"Fixture file not found: {path}.")
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            msg = f"Failed to read fixture {path}: {e}"
            self.logger.error(msg)
            raise FixtureStorageError(msg, path) from e

        if not isinstance(data, dict) or not isinstance(data.get("result"), list):
            msg = f"Malformed fixture {path}: expected a mapping with a 'result' list."
            self.logger.error(msg)
            raise FixtureStorageError(msg, path)

        fingerprint = data.get("fingerprint")
        digest = data.get("digest") or fingerprint_digest(fingerprint, self.HASH_DISPLAY_LENGTH)
        self.logger.debug(f"Loaded fixture {path} (digest {digest}).")
        return FixtureRecord(fingerprint=fingerprint, result=data["result"], digest=digest, path=path)

    def list_records(self, test_identity: Optional[str] = None) -> list[FixtureKey]:
        """
        List the recorded keys, optionally only those of one test, sorted by test, method and ordinal.

        Raises:
            FixtureStorageError: If a fixture file cannot be parsed.
        """
        return [key for key, _ in self._index(test_identity)]

    def clear(self, test_identity: Optional[str] = None) -> int:
        """
        Delete the recordings of one test, or every recording when no identity is given.

        Only fixture files are removed, along with the directories they leave empty. Anything else
        kept under ``base_dir`` stays in place.

        Returns:
            int: The number of fixture files removed.

        Raises:
            FixtureStorageError: If a fixture file cannot be parsed or removed.
        """
        records = self._index(test_identity)
        for _, path in records:
            try:
                path.unlink()
                self._prune_empty_dirs(path.parent)
            except OSError as e:
                msg = f"Failed to remove fixture {path}: {e}"
                self.logger.error(msg)
                raise FixtureStorageError(msg, path) from e

        self.logger.info(f"Removed {len(records)} fixture(s) from {self.base_dir}.")
        return len(records)

    def _index(self, test_identity: Optional[str]) -> list[tuple[FixtureKey, Path]]:
        root = self._test_dir(test_identity) if test_identity is not None else self.base_dir
        if not root.is_dir():
            return []

        records = []
        for path in root.glob(f"**/*{self.FILE_SUFFIX}"):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f)
                key = FixtureKey(data["test_identity"], data["method_name"], int(data["ordinal"]))
            except (OSError, yaml.YAMLError, TypeError, KeyError, ValueError) as e:
                msg = f"Failed to index fixture {path}: {e}"
                self.logger.error(msg)
                raise FixtureStorageError(msg, path) from e
            records.append((key, path))

        return sorted(records, key=lambda record: (record[0].test_identity, record[0].method_name, record[0].ordinal))

    def _prune_empty_dirs(self, directory: Path) -> None:
        # Stops at base_dir, which is never removed
        while directory != self.base_dir and self.base_dir in directory.parents:
            if any(directory.iterdir()):
                return
            directory.rmdir()
            directory = directory.parent

    def _test_dir(self, test_identity: str) -> Path:
        return self.base_dir / self._component(test_identity)

    def _component(self, text: str) -> str:
        return safe_path_component(text, self.HASH_DISPLAY_LENGTH)
