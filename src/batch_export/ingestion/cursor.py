"""Key codecs: convert cursor keys to and from their checkpoint text form."""

from bson import ObjectId
from bson.errors import InvalidId

from batch_export.ingestion.models import Cursor


class KeyCodec:
    """Base codec. Subclasses define how one key type round-trips through text."""

    name = "str"

    def encode(self, key: Cursor) -> str:
        return str(key)

    def decode(self, text: str) -> Cursor:
        # Returned verbatim: surrounding whitespace is part of a string key
        if not text.strip():
            raise ValueError("empty key")
        return text


class ObjectIdCodec(KeyCodec):
    """24-character hex form, the plain `last_id.txt` layout."""

    name = "objectid"

    def encode(self, key: Cursor) -> str:
        if not isinstance(key, ObjectId):
            raise TypeError(f"expected ObjectId, got {type(key).__name__}")
        return str(key)

    def decode(self, text: str) -> Cursor:
        try:
            return ObjectId(text.strip())
        except (InvalidId, TypeError) as e:
            raise ValueError(f"invalid ObjectId: {text!r}") from e


class IntCodec(KeyCodec):
    name = "int"

    def encode(self, key: Cursor) -> str:
        return str(int(key))

    def decode(self, text: str) -> Cursor:
        return int(text.strip())


_CODECS: dict[str, type[KeyCodec]] = {
    ObjectIdCodec.name: ObjectIdCodec,
    IntCodec.name: IntCodec,
    KeyCodec.name: KeyCodec,
}


def get_codec(key_type: str) -> KeyCodec:
    """Return the codec registered for a configured key type."""
    try:
        return _CODECS[key_type]()
    except KeyError:
        raise ValueError(
            f"Unknown key type {key_type!r}; expected one of {sorted(_CODECS)}"
        ) from None
