"""
Cache key derivation.

A key is the SHA-256 hex digest of a canonical encoding of
``[identifier, args, kwargs]``. Every argument is first reduced to a
tagged form (``["int", "3"]``, ``["list", [...]]``, ...) so that values
of different types never encode alike and mappings encode the same
regardless of insertion order.
"""

from __future__ import annotations

import dataclasses
import hashlib
from collections.abc import Mapping, Sequence
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Any
from uuid import UUID

import orjson
from pydantic import BaseModel

from ff.exceptions import SerializationError

# Scalar types encoded as [tag, str(value)]. datetime precedes date (subclass).
_STRINGLIKE: tuple[tuple[type, str], ...] = (
    (Decimal, "decimal"),
    (datetime, "datetime"),
    (date, "date"),
    (time, "time"),
    (UUID, "uuid"),
    (PurePath, "path"),
)


def _qualname(obj: Any) -> str:
    cls = type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


def _encoded(canonical: Any, path: str = "$") -> bytes:
    try:
        return orjson.dumps(canonical)
    except orjson.JSONEncodeError as e:
        raise SerializationError(
            f"Call arguments cannot be encoded: {e}",
            context={"path": path},
        ) from e


def canonicalize(value: Any) -> Any:
    """Reduce a value to its tagged canonical form.

    The result contains only lists, strings, booleans and None, so its
    JSON encoding is unambiguous.

    Raises:
        SerializationError: For circular references and unsupported types.
    """
    return _canonicalize(value, "$", set())


def _canonicalize(value: Any, path: str, active: set[int]) -> Any:
    if value is None:
        return ["none"]
    if isinstance(value, Enum):
        return ["enum", _qualname(value), _canonicalize(value.value, path, active)]
    if isinstance(value, bool):
        return ["bool", value]
    if isinstance(value, int):
        return ["int", str(value)]
    if isinstance(value, float):
        return ["float", repr(value)]
    if isinstance(value, str):
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise SerializationError(
                "String argument is not valid UTF-8",
                context={"path": path, "type": "str", "reason": str(e)},
            ) from e
        return ["str", value]
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ["bytes", bytes(value).hex()]
    for cls, tag in _STRINGLIKE:
        if isinstance(value, cls):
            return [tag, value.isoformat() if isinstance(value, (date, time)) else str(value)]

    marker = id(value)
    if marker in active:
        raise SerializationError(
            "Circular reference in call arguments",
            context={"path": path, "type": type(value).__name__},
        )
    active.add(marker)
    try:
        return _canonicalize_container(value, path, active)
    finally:
        active.discard(marker)


def _canonicalize_container(value: Any, path: str, active: set[int]) -> Any:
    if isinstance(value, list):
        return ["list", [_canonicalize(v, f"{path}[{i}]", active) for i, v in enumerate(value)]]
    if isinstance(value, tuple):
        return ["tuple", [_canonicalize(v, f"{path}[{i}]", active) for i, v in enumerate(value)]]
    if isinstance(value, (set, frozenset)):
        members = [_canonicalize(v, f"{path}{{}}", active) for v in value]
        return ["set", sorted(members, key=_encoded)]
    if isinstance(value, Mapping):
        items = [
            [
                _canonicalize(k, f"{path}<key>", active),
                _canonicalize(v, f"{path}[{k!r}]", active),
            ]
            for k, v in value.items()
        ]
        return ["dict", sorted(items, key=lambda item: _encoded(item[0]))]
    if isinstance(value, BaseModel):
        return ["model", _qualname(value), _canonicalize(value.model_dump(), path, active)]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return ["dataclass", _qualname(value), _canonicalize(fields, path, active)]

    raise SerializationError(
        "Unsupported type in call arguments",
        context={"path": path, "type": type(value).__name__},
    )


def canonical_payload(
    identifier: str,
    args: Sequence[Any] = (),
    kwargs: Mapping[str, Any] | None = None,
) -> bytes:
    """Build the pre-hash encoding of one call.

    The identifier is a separate JSON string element, so no choice of
    identifier and arguments can shift text from one into the other.
    """
    canonical_args = [_canonicalize(a, f"args[{i}]", set()) for i, a in enumerate(args)]
    canonical_kwargs = [
        [name, _canonicalize(kwargs[name], f"kwargs[{name!r}]", set())]
        for name in sorted(kwargs or {})
    ]
    return _encoded([identifier, canonical_args, canonical_kwargs], "call")


def derive_key(
    identifier: str,
    args: Sequence[Any] = (),
    kwargs: Mapping[str, Any] | None = None,
) -> str:
    """Derive the cache key for a call.

    Args:
        identifier: Qualified method identifier, e.g. ``"client.users.get"``.
        args: Positional arguments.
        kwargs: Keyword arguments.

    Returns:
        64-character SHA-256 hex digest.

    Raises:
        SerializationError: If an argument cannot be canonicalized.
    """
    return hashlib.sha256(canonical_payload(identifier, args, kwargs)).hexdigest()
