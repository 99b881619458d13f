"""
Cycle-safe canonical encoding of call arguments and results.

The canonical form only contains None, bool, int, float, str, bytes, lists and dicts with sorted
string keys, so it compares with ``==`` and round-trips through YAML. Tagged dicts mark values that
have no direct counterpart:

    {"$ref": "$.parent"}              back-reference to an ancestor on the current path
    {"$set": [...]}                   set members, ordered by their canonical JSON text
    {"$items": [[key, value], ...]}   mapping whose keys collide once stringified, ordered by key
    {"$object": "pkg.Type", ...}      attributes of a plain object or dataclass
    {"$enum": "pkg.Color.RED"}        enum member
    {"$float": "NaN"}                 non-finite float
    {"$error": "ValueError", "message": "..."}
    {"$unsupported": "function"}      value that cannot be persisted, tagged by kind only
"""

import dataclasses
import enum
import hashlib
import io
import json
import math
import types

from collections.abc import Mapping
from typing import Any, Optional

from easyfix.custom_logger import CustomLogger
from easyfix.errors import RecordedError
from easyfix.settings.config_loader import get_settings
from easyfix.utils import truncate_hash


ROOT_PATH = "$"
REF_TAG = "$ref"
ERROR_TAG = "$error"
UNSUPPORTED_TAG = "$unsupported"
ITEMS_TAG = "$items"


class FingerprintEncoder:
    """
    Converts arbitrary values, including self-referential object graphs, into a canonical form.

    Traversal is depth-first and tracks the identities of the containers currently on the path
    from the root. A container met again while it is still on that path is replaced by a
    back-reference naming the path where it was first entered, which guarantees termination.
    Containers shared between siblings (but not cyclic) are encoded in full at each occurrence.
    """

    def __init__(self, logger: Optional[CustomLogger] = None) -> None:
        self.logger = logger or CustomLogger.get_logger(__name__)

    def encode(self, value: Any) -> Any:
        return self._encode(value, ROOT_PATH, {})

    def encode_arguments(self, args: tuple, kwargs: dict) -> dict:
        """Encode a call's positional and keyword arguments as one graph."""
        return self.encode({"args": list(args), "kwargs": dict(kwargs)})

    def encode_result(self, result: tuple) -> list:
        """Encode the arguments a callback was invoked with."""
        return self.encode(list(result))

    def _encode(self, value: Any, path: str, on_stack: dict[int, str]) -> Any:
        if value is None or isinstance(value, (bool, str, bytes)):
            return _exact(value)
        if isinstance(value, enum.Enum):
            return {"$enum": f"{_qualified_name(type(value))}.{value.name}"}
        if isinstance(value, int):
            return int(value)
        if isinstance(value, float):
            if math.isnan(value):
                return {"$float": "NaN"}
            if math.isinf(value):
                return {"$float": "Infinity" if value > 0 else "-Infinity"}
            return float(value)
        if isinstance(value, BaseException):
            return {ERROR_TAG: type(value).__name__, "message": str(value)}

        ancestor = on_stack.get(id(value))
        if ancestor is not None:
            return {REF_TAG: ancestor}

        on_stack[id(value)] = path
        try:
            if isinstance(value, Mapping):
                return self._encode_members(value.items(), path, on_stack)
            if isinstance(value, (list, tuple)):
                return [self._encode(item, f"{path}[{i}]", on_stack) for i, item in enumerate(value)]
            if isinstance(value, (set, frozenset)):
                members = [self._encode(item, f"{path}[*]", on_stack) for item in value]
                return {"$set": sorted(members, key=canonical_json)}
            if _is_plain_object(value):
                encoded = self._encode_members(_object_members(value), path, on_stack)
                encoded["$object"] = _qualified_name(type(value))
                return encoded
        finally:
            del on_stack[id(value)]

        kind = type(value).__name__
        self.logger.debug(f"Value of kind '{kind}' at {path} cannot be persisted, using a placeholder.")
        return {UNSUPPORTED_TAG: kind}

    def _encode_members(self, items, path: str, on_stack: dict[int, str]) -> dict:
        items = list(items)
        members = {str(key): item for key, item in items}
        if len(members) < len(items):
            # Distinct keys with the same text, e.g. 1 and "1"
            pairs = [
                [self._encode(key, f"{path}.<key>", on_stack), self._encode(item, f"{path}.{key}", on_stack)]
                for key, item in items
            ]
            return {ITEMS_TAG: sorted(pairs, key=lambda pair: (canonical_json(pair[0]), canonical_json(pair[1])))}
        return {key: self._encode(members[key], f"{path}.{key}", on_stack) for key in sorted(members)}


def encode(value: Any) -> Any:
    return FingerprintEncoder().encode(value)


def canonical_json(canonical: Any) -> str:
    return json.dumps(
        canonical,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        default=_json_default,
    )


def fingerprint_digest(canonical: Any, hash_display_length: Optional[int] = None) -> str:
    """
    Return a short SHA-256 digest of a canonical form.

    Parameters:
        canonical (Any): A value produced by FingerprintEncoder.
        hash_display_length (Optional[int]): Digest length, defaults to the configured length.

    Returns:
        str: The truncated hex digest.
    """
    if hash_display_length is None:
        hash_display_length = get_settings().get("default").hash_display_length
    digest = hashlib.sha256(canonical_json(canonical).encode("utf-8")).hexdigest()
    return truncate_hash(digest, hash_display_length)


def decode_result(result: list) -> list:
    """Rebuild a recorded error marker in the error slot of a stored callback result."""
    decoded = list(result)
    if decoded and isinstance(decoded[0], dict) and ERROR_TAG in decoded[0]:
        decoded[0] = RecordedError(decoded[0][ERROR_TAG], decoded[0].get("message", ""))
    return decoded


def _exact(value: Any) -> Any:
    # str/bytes/bool subclasses are not representable by yaml.safe_dump
    if value is None or type(value) in (bool, str, bytes):
        return value
    if isinstance(value, bool):
        return bool(value)
    if isinstance(value, str):
        return str(value)
    return bytes(value)


def _is_plain_object(value: Any) -> bool:
    if callable(value) or isinstance(value, (io.IOBase, types.ModuleType)):
        return False
    return dataclasses.is_dataclass(value) or hasattr(value, "__dict__")


def _object_members(value: Any):
    if dataclasses.is_dataclass(value):
        return [(field.name, getattr(value, field.name)) for field in dataclasses.fields(value)]
    return vars(value).items()


def _qualified_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _json_default(value: Any) -> Any:
    if isinstance(value, bytes):
        return {"$bytes": value.hex()}
    raise TypeError(f"Object of type {type(value).__name__} is not part of a canonical form")
