"""Payload codec: serialise caller payloads as JSON objects.

Every stored ``json`` value is a JSON object.  Lists and tuples, at any
nesting level, are rewritten as objects keyed by their string index, so
``["a", "b"]`` becomes ``{"0":"a","1":"b"}`` and ``[]`` becomes ``{}``.

Serialisation rules (they determine the content hash byte-for-byte):
  ``json.dumps(obj, separators=(',', ':'), ensure_ascii=True, allow_nan=False)``
with key insertion order preserved.  Non-string keys are coerced the way
``json.dumps`` does (``True`` -> ``"true"``, ``1`` -> ``"1"``); keys that
collide after coercion are rejected.
"""
import json
from typing import Any, Mapping

from jsonstore_core.errors import PayloadTypeError

EMPTY_OBJECT = "{}"


def _object_key(key: Any) -> str:
    # Same coercion json.dumps applies to non-string keys.
    if isinstance(key, str):
        return key
    if key is None or isinstance(key, (bool, int, float)):
        return json.dumps(key, allow_nan=False)
    raise TypeError(f"keys must be str, int, float, bool or None, not {type(key).__name__}")


def _force_object(value: Any) -> Any:
    if isinstance(value, Mapping):
        obj: dict[str, Any] = {}
        for k, v in value.items():
            key = _object_key(k)
            if key in obj:
                raise ValueError(f"duplicate key {key!r} after string coercion")
            obj[key] = _force_object(v)
        return obj
    if isinstance(value, (list, tuple)):
        return {str(i): _force_object(v) for i, v in enumerate(value)}
    return value


def encode_payload(payload: Any) -> str:
    """Return *payload* as compact JSON object text.

    Raises
    ------
    PayloadTypeError
        If *payload* is a scalar (or otherwise not a mapping/sequence), or
        contains values JSON cannot represent (including NaN and infinity) or
        keys that collide once coerced to strings.
    """
    if not isinstance(payload, (Mapping, list, tuple)):
        raise PayloadTypeError(
            f"Payload must be a JSON object, got {type(payload).__name__}"
        )
    try:
        return json.dumps(
            _force_object(payload), separators=(",", ":"), ensure_ascii=True, allow_nan=False
        )
    except (TypeError, ValueError) as exc:
        raise PayloadTypeError(f"Payload is not JSON serialisable: {exc}") from exc


class JsonObjectCodec:
    """Default payload codec used by :class:`~jsonstore_core.session.JsonStore`."""

    def encode(self, payload: Any) -> str:
        return encode_payload(payload)
