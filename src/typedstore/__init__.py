from __future__ import annotations

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("typedstore")
except Exception:  # pragma: no cover
    # running from a source tree without an install
    __version__ = "0.0.0"

from .codec import Codec, JsonCodec, PydanticCodec
from .core.config import StoreConfig
from .errors import (
    ConfigError,
    DecodeFailure,
    LockError,
    NullArgumentError,
    OptimisticLockConflict,
    TypedStoreError,
)
from .index import TypeDescriptor, TypeIndex
from .provider import DataProvider, ReadResult, ReadStatus

__all__ = [
    "Codec",
    "ConfigError",
    "DataProvider",
    "DecodeFailure",
    "JsonCodec",
    "LockError",
    "NullArgumentError",
    "OptimisticLockConflict",
    "PydanticCodec",
    "ReadResult",
    "ReadStatus",
    "StoreConfig",
    "TypeDescriptor",
    "TypeIndex",
    "TypedStoreError",
    "__version__",
]
