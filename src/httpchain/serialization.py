"""Structured (de)serialization keyed by a field naming strategy.

Request bodies are encoded as JSON and response bodies decoded from JSON.
The :class:`NamingStrategy` selects how field names are rewritten on the
wire; values are never touched.

* ``NONE`` -- names are sent exactly as declared.
* ``CAMEL`` -- ``UserId`` and ``user_id`` both become ``userId``.
* ``SNAKE`` -- ``UserId`` and ``userId`` both become ``user_id``.

Decoding applies the same rule in reverse: every field of the target
Pydantic model (or dataclass) is looked up under its converted wire name,
so a model with a ``UserId`` field reads ``user_id`` from a snake-cased
payload.
"""

from __future__ import annotations

import dataclasses
import enum
import json
import re
import types
import typing
from typing import Any, Callable, Optional, Type, TypeVar, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from httpchain.exceptions import DeserializationFault

T = TypeVar("T")

JSON_MEDIA_TYPE = "application/json"

_LEADING_UNDERSCORES = re.compile(r"^_+")
_SNAKE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")


class NamingStrategy(str, enum.Enum):
    """Field-name casing applied during structured (de)serialization."""

    NONE = "none"
    CAMEL = "camel"
    SNAKE = "snake"


def to_snake_case(name: str) -> str:
    """Convert a field name to ``snake_case``.

    Leading underscores are preserved.

    >>> to_snake_case("UserId")
    'user_id'
    """
    if not name:
        return name
    prefix = _LEADING_UNDERSCORES.match(name)
    lead = prefix.group(0) if prefix else ""
    body = name[len(lead):]
    body = _ACRONYM_BOUNDARY.sub(r"\1_\2", body)
    return lead + _SNAKE_BOUNDARY.sub(r"\1_\2", body).lower()


def to_camel_case(name: str) -> str:
    """Convert a field name to ``lowerCamelCase``.

    >>> to_camel_case("UserId"), to_camel_case("user_id"), to_camel_case("URLPath")
    ('userId', 'userId', 'urlPath')
    """
    if not name:
        return name
    if "_" in name.strip("_"):
        head, *rest = [part for part in name.split("_") if part]
        return to_camel_case(head) + "".join(part[:1].upper() + part[1:] for part in rest)

    # Lower the leading run of capitals, keeping the last one when it
    # starts the next word ("URLPath" -> "urlPath").
    chars = list(name)
    for i, ch in enumerate(chars):
        if not ch.isupper():
            break
        next_is_lower = i + 1 < len(chars) and chars[i + 1].islower()
        if i > 0 and next_is_lower:
            break
        chars[i] = ch.lower()
    return "".join(chars)


def name_converter(strategy: NamingStrategy) -> Callable[[str], str]:
    """Return the function that maps a declared field name to its wire name."""
    if strategy == NamingStrategy.CAMEL:
        return to_camel_case
    if strategy == NamingStrategy.SNAKE:
        return to_snake_case
    return lambda name: name


def _to_plain(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return TypeAdapter(type(data)).dump_python(data, mode="json")
    return data


def _model_fields(target: Any) -> Optional[dict[str, Any]]:
    """Return ``{field_name: annotation}`` for models and dataclasses."""
    if isinstance(target, type) and issubclass(target, BaseModel):
        return {name: info.annotation for name, info in target.model_fields.items()}
    if isinstance(target, type) and dataclasses.is_dataclass(target):
        hints = typing.get_type_hints(target)
        return {f.name: hints.get(f.name, Any) for f in dataclasses.fields(target)}
    return None


def _matches_shape(target: Any, data: Any) -> bool:
    origin = typing.get_origin(target) or target
    if isinstance(data, list):
        return origin in (list, tuple, set, frozenset)
    if isinstance(data, dict):
        return origin is dict or _model_fields(target) is not None
    return False


def _map_fields(data: Any, target: Any, keys: Callable[[str], tuple[str, str]]) -> Any:
    """Move each field declared on *target* from one key to another.

    *keys* maps a declared field name to ``(current_key, new_key)``. Only
    model and dataclass fields are renamed; the keys of ``dict[...]``
    values are data and stay as they are.
    """
    origin = typing.get_origin(target)
    args = typing.get_args(target)

    if origin in (Union, types.UnionType):
        for arg in args:
            if arg is not type(None) and _matches_shape(arg, data):
                return _map_fields(data, arg, keys)
        return data

    if origin in (list, tuple, set, frozenset) and isinstance(data, list) and args:
        return [_map_fields(item, args[0], keys) for item in data]

    if origin is dict and isinstance(data, dict) and len(args) == 2:
        return {key: _map_fields(value, args[1], keys) for key, value in data.items()}

    fields = _model_fields(target)
    if fields is None or not isinstance(data, dict):
        return data

    renames: dict[str, tuple[str, Any]] = {}
    for name, annotation in fields.items():
        current, new = keys(name)
        source = current if current in data and new not in data else new
        renames[source] = (new, annotation)

    result = {}
    for key, value in data.items():
        if key in renames:
            new, annotation = renames[key]
            result[new] = _map_fields(value, annotation, keys)
        else:
            result[key] = value
    return result


def _to_wire(data: Any, convert: Callable[[str], str]) -> Any:
    if isinstance(data, BaseModel) or (
        dataclasses.is_dataclass(data) and not isinstance(data, type)
    ):
        return _map_fields(_to_plain(data), type(data), lambda name: (name, convert(name)))
    # Untyped mappings are treated as property bags.
    if isinstance(data, dict):
        return {
            (convert(key) if isinstance(key, str) else key): _to_wire(value, convert)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [_to_wire(item, convert) for item in data]
    return data


def encode(data: Any, strategy: NamingStrategy = NamingStrategy.CAMEL) -> bytes:
    """Serialize *data* to JSON bytes, renaming fields per *strategy*.

    Model and dataclass fields are renamed; the keys of their
    ``dict``-typed values are left alone. Plain dicts passed directly (or
    nested in plain containers) have their keys renamed as fields.
    """
    plain = _to_wire(data, name_converter(strategy))
    return json.dumps(plain, separators=(",", ":")).encode("utf-8")


# --- decoding ---


def decode(
    content: bytes | str,
    target: Type[T] | Any = Any,
    strategy: NamingStrategy = NamingStrategy.CAMEL,
) -> T:
    """Deserialize JSON *content* into *target*.

    Args:
        content: Raw response body.
        target: A Pydantic model, dataclass, or any type Pydantic can
            validate (``list[Model]``, ``dict[str, int]``...). ``Any``
            returns the parsed JSON untouched.
        strategy: Naming strategy the payload was written with.

    Raises:
        DeserializationFault: If the body is not valid JSON or does not
            validate against *target*.
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise DeserializationFault(f"Response body is not valid JSON: {exc}", cause=exc) from exc

    if target is Any:
        return data

    convert = name_converter(strategy)
    data = _map_fields(data, target, lambda name: (convert(name), name))
    try:
        return TypeAdapter(target).validate_python(data)
    except ValidationError as exc:
        raise DeserializationFault(
            f"Response body does not match {getattr(target, '__name__', target)}: {exc}",
            cause=exc,
        ) from exc
