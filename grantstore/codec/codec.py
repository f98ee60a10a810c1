"""
Value codec for attribute, metadata and claims maps.

Maps are stored as JSON in which every value carries a type tag, so that
decoding rebuilds the original Python type rather than a generic JSON
value. Only a closed set of types is accepted; anything else fails at
encode time instead of being stringified.

Encoded form of {"n": 1, "s": {"a"}}:

    {"n": {"@type": "int", "@value": 1},
     "s": {"@type": "set", "@value": [{"@type": "str", "@value": "a"}]}}
"""

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ..errors import CodecError, ErrorCode
from ..types.grant import AuthorizationGrantType


TYPE_KEY = "@type"
VALUE_KEY = "@value"
EMPTY = ""


class ValueCodec:
    """
    Encodes and decodes semi-structured maps to an opaque string.

    Supported values: None, str, bool, int, float, Decimal, list, dict
    with string keys, set and frozenset of hashable supported values,
    datetime and AuthorizationGrantType. Types are matched exactly, so
    subclasses such as str enums or IntEnum are rejected.

    The codec holds no state and is safe to share between callers.
    """

    def __init__(self):
        self._decoder_table = self._build_decoders()

    def encode(self, data: Optional[Mapping[str, Any]], path: str = "") -> str:
        """
        Encode a map to its stored string form.

        Args:
            data: Map to encode; None or empty yields the empty string
            path: Name of the map, used in error messages

        Returns:
            Encoded string

        Raises:
            CodecError: If the map holds a value of an unsupported type
        """
        if not data:
            return EMPTY
        if not isinstance(data, Mapping):
            raise CodecError(f"Expected a mapping, got {type(data).__name__}", path=path or None)

        tagged = self._encode_map(data, path)
        try:
            return json.dumps(tagged, separators=(",", ":"), ensure_ascii=False, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Failed to serialize map: {e}", path=path or None, cause=e) from e

    def decode(self, encoded: Optional[str], path: str = "") -> Dict[str, Any]:
        """
        Decode a stored string back to a map.

        Args:
            encoded: Encoded string; None or empty yields an empty map
            path: Name of the map, used in error messages

        Returns:
            Decoded map

        Raises:
            CodecError: If the string is not a valid encoding
        """
        if not encoded:
            return {}
        try:
            raw = json.loads(encoded)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Invalid encoded map: {e}", path=path or None,
                             code=ErrorCode.DECODE_FAILED, cause=e) from e

        if not isinstance(raw, dict):
            raise CodecError("Encoded value is not a map", path=path or None,
                             code=ErrorCode.DECODE_FAILED)
        return {key: self._decode_value(value, _join(path, key)) for key, value in raw.items()}

    # Encoding

    def _encode_map(self, data: Mapping, path: str) -> Dict[str, Any]:
        result = {}
        for key, value in data.items():
            if type(key) is not str:
                raise CodecError(f"Map keys must be strings, got {type(key).__name__}",
                                 path=_join(path, repr(key)))
            result[key] = self._encode_value(value, _join(path, key))
        return result

    def _encode_value(self, value: Any, path: str) -> Dict[str, Any]:
        value_type = type(value)
        if value is None:
            return _tag("null", None)
        if value_type is bool:
            return _tag("bool", value)
        if value_type is str:
            return _tag("str", value)
        if value_type is int:
            return _tag("int", value)
        if value_type is float:
            return _tag("float", value)
        if value_type is Decimal:
            return _tag("decimal", str(value))
        if value_type is datetime:
            return _tag("datetime", value.isoformat())
        if value_type is AuthorizationGrantType:
            return _tag("grant_type", value.value)
        if value_type is list:
            return _tag("list", [self._encode_value(item, f"{path}[{i}]") for i, item in enumerate(value)])
        if value_type in (set, frozenset):
            tag = "frozenset" if value_type is frozenset else "set"
            items = [self._encode_value(item, f"{path}{{}}") for item in value]
            items.sort(key=lambda item: json.dumps(item, sort_keys=True))
            return _tag(tag, items)
        if value_type is dict:
            return _tag("map", self._encode_map(value, path))

        raise CodecError(f"Unsupported value type: {value_type.__name__}", path=path or None)

    # Decoding

    def _decode_value(self, tagged: Any, path: str) -> Any:
        if not isinstance(tagged, dict) or TYPE_KEY not in tagged or VALUE_KEY not in tagged:
            raise CodecError("Value is missing its type tag", path=path or None,
                             code=ErrorCode.DECODE_FAILED)

        tag = tagged[TYPE_KEY]
        decoder = self._decoder_table.get(tag)
        if decoder is None:
            raise CodecError(f"Unknown type tag: {tag}", path=path or None, code=ErrorCode.DECODE_FAILED)

        expected, convert = decoder
        payload = tagged[VALUE_KEY]
        if expected is not None and not _payload_matches(payload, expected):
            raise CodecError(f"Malformed {tag} value", path=path or None, code=ErrorCode.DECODE_FAILED)
        try:
            return convert(payload, path)
        except CodecError:
            raise
        except (TypeError, ValueError, InvalidOperation) as e:
            raise CodecError(f"Malformed {tag} value: {e}", path=path or None,
                             code=ErrorCode.DECODE_FAILED, cause=e) from e

    def _build_decoders(self) -> Dict[str, Tuple[Optional[tuple], Callable[[Any, str], Any]]]:
        return {
            "null": ((type(None),), lambda v, p: None),
            "bool": ((bool,), lambda v, p: v),
            "str": ((str,), lambda v, p: v),
            "int": ((int,), lambda v, p: v),
            "float": ((float, int), lambda v, p: float(v)),
            "decimal": ((str,), lambda v, p: Decimal(v)),
            "datetime": ((str,), lambda v, p: datetime.fromisoformat(v)),
            "grant_type": ((str,), lambda v, p: AuthorizationGrantType(v)),
            "list": ((list,), lambda v, p: [self._decode_value(item, f"{p}[{i}]") for i, item in enumerate(v)]),
            "set": ((list,), lambda v, p: {self._decode_value(item, f"{p}{{}}") for item in v}),
            "frozenset": ((list,), lambda v, p: frozenset(self._decode_value(item, f"{p}{{}}") for item in v)),
            "map": ((dict,), lambda v, p: {key: self._decode_value(item, _join(p, key)) for key, item in v.items()}),
        }


def _tag(tag: str, value: Any) -> Dict[str, Any]:
    return {TYPE_KEY: tag, VALUE_KEY: value}


def _payload_matches(payload: Any, expected: tuple) -> bool:
    if isinstance(payload, bool) and bool not in expected:
        return False
    return isinstance(payload, expected)


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


_default_codec = ValueCodec()


def encode_map(data: Optional[Mapping[str, Any]], path: str = "") -> str:
    """Encode a map with the shared codec instance."""
    return _default_codec.encode(data, path)


def decode_map(encoded: Optional[str], path: str = "") -> Dict[str, Any]:
    """Decode a map with the shared codec instance."""
    return _default_codec.decode(encoded, path)
