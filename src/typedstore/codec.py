# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Payload codecs: typed value <-> string payload stored under a key.

A codec must be pure (no side effects) and safe to share across concurrent
calls. Decoding problems are reported as `DecodeFailure`, never as the
underlying library's exception type.
"""

import json
from typing import Any, Generic, Protocol, TypeVar

from pydantic import TypeAdapter, ValidationError

from .errors import DecodeFailure

__all__ = [
    "Codec",
    "JsonCodec",
    "PydanticCodec",
]

T = TypeVar("T")


class Codec(Protocol[T]):
    """Protocol for value codecs."""

    def encode(self, value: T) -> str: ...

    def decode(self, payload: str) -> T:
        """Parse a payload; raise DecodeFailure if it is not a valid T."""
        ...


class PydanticCodec(Generic[T]):
    """
    JSON codec driven by a pydantic `TypeAdapter`, so any type pydantic can
    validate works: BaseModel subclasses, dataclasses, TypedDicts, builtins.
    """

    def __init__(self, tp: type[T]) -> None:
        self.type = tp
        self._adapter: TypeAdapter[T] = TypeAdapter(tp)

    def encode(self, value: T) -> str:
        return self._adapter.dump_json(value).decode("utf-8")

    def decode(self, payload: str) -> T:
        if not payload:
            raise DecodeFailure("empty payload", payload=payload)
        try:
            return self._adapter.validate_json(payload)
        except ValidationError as e:
            raise DecodeFailure(
                f"payload is not a valid {getattr(self.type, '__name__', self.type)}: {e.error_count()} error(s)",
                payload=payload,
            ) from e

    def __repr__(self) -> str:
        return f"PydanticCodec({getattr(self.type, '__name__', self.type)!r})"


class JsonCodec:
    """Plain JSON codec for JSON-like values (dict/list/scalars); no validation."""

    def encode(self, value: Any) -> str:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=True)

    def decode(self, payload: str) -> Any:
        if not payload:
            raise DecodeFailure("empty payload", payload=payload)
        try:
            return json.loads(payload)
        except ValueError as e:
            raise DecodeFailure(f"payload is not valid JSON: {e}", payload=payload) from e
