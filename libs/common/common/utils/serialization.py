from __future__ import annotations

from collections import deque
from collections.abc import Callable
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Final, Literal, overload

import msgspec

from common.utils.json_model import JsonModel

Serializer = Callable[[Any], Any]

type TypeEncodersMap = dict[Any, Callable[[Any], Any]]


class _EmptyEnum(Enum):
    """A sentinel enum used as placeholder."""

    EMPTY = 0


EmptyType = Literal[_EmptyEnum.EMPTY]
Empty: Final = _EmptyEnum.EMPTY


class SerializationError(Exception):
    """Encoding or decoding of an object failed."""


__all__ = (
    "SerializationError",
    "decode_json",
    "default_serializer",
    "encode_json",
)

DEFAULT_TYPE_ENCODERS: TypeEncodersMap = {
    datetime: lambda val: val.isoformat(),
    date: lambda val: val.isoformat(),
    time: lambda val: val.isoformat(),
    deque: list,
    JsonModel: lambda val: val.to_dict(mode="json"),
}

# Support subclasses of stdlib types
DEFAULT_TYPE_ENCODERS.update(
    {
        str: str,
        int: int,
        float: float,
        set: list,
        frozenset: list,
        bytes: bytes,
    },
)


def default_serializer(value: Any, type_encoders: TypeEncodersMap | None = None) -> Any:
    """Transform values non-natively supported by ``msgspec``

    Args:
        value: A value to serialize
        type_encoders: Mapping of types to callables to transform types
    Returns:
        A serialized value
    Raises:
        TypeError: if value is not supported
    """
    type_encoders = DEFAULT_TYPE_ENCODERS if type_encoders is None else {**DEFAULT_TYPE_ENCODERS, **type_encoders}

    for base in value.__class__.__mro__[:-1]:
        try:
            encoder = type_encoders[base]
            return encoder(value)
        except KeyError:
            continue

    raise TypeError(f"Unsupported type: {type(value)!r}")


_default_json_encoder = msgspec.json.Encoder(enc_hook=default_serializer, decimal_format="string")
_default_json_decoder = msgspec.json.Decoder()


def encode_json(value: Any, serializer: Serializer | None = None) -> bytes:
    """Encode a value into JSON.

    Args:
        value: Value to encode
        serializer: Optional callable to support non-natively supported types.

    Returns:
        JSON as bytes

    Raises:
        SerializationError: If error encoding ``obj``.
    """
    try:
        return msgspec.json.encode(value, enc_hook=serializer) if serializer else _default_json_encoder.encode(value)
    except (TypeError, msgspec.EncodeError) as msgspec_error:
        raise SerializationError(str(msgspec_error)) from msgspec_error


@overload
def decode_json(value: str | bytes) -> Any: ...


@overload
def decode_json[T](value: str | bytes, target_type: type[T]) -> T: ...


def decode_json[T](value: str | bytes, target_type: type[T] | EmptyType = Empty) -> T:  # type: ignore[misc]
    """Decode a JSON string/bytes into an object.

    Args:
        value: Value to decode
        target_type: An optional type to decode the data into

    Returns:
        An object

    Raises:
        SerializationError: If error decoding ``value``.
    """
    try:
        if target_type is Empty:
            return _default_json_decoder.decode(value)
        return msgspec.json.decode(value, type=target_type)
    except msgspec.DecodeError as msgspec_error:
        raise SerializationError(str(msgspec_error)) from msgspec_error
