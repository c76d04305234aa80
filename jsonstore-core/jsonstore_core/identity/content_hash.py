"""Record identity: content hash and batch-scoped row id.

The content hash is the content-addressing contract of the ledger:

  ``encode(sha256(uid + parent_uid + version + json))``

Fields are UTF-8 encoded and concatenated in that order with no separator.
A missing ``parent_uid`` contributes nothing.  The hash never includes the
revision, so an identical tuple always yields an identical hash across
revisions.

Encoders follow the ``nacl.encoding`` interface (``encode(bytes) -> bytes``).
The default is Base58, which has no ``0OIl+/`` characters and is safe in URLs
and column values.
"""
from typing import Any

import base58
import nacl.hash

from jsonstore_core.errors import ConfigurationError

#: Separator between revision and uid in the row ``id`` column.
ID_REVISION_DELIMITER = "-"


class Base58Encoder:
    """``nacl.encoding``-compatible Base58 encoder (Bitcoin alphabet)."""

    @staticmethod
    def encode(data: bytes) -> bytes:
        return base58.b58encode(data)

    @staticmethod
    def decode(data: bytes) -> bytes:
        return base58.b58decode(data)


def _hash_input(uid: str, parent_uid: str | None, version: str, json_text: str) -> bytes:
    return b"".join(
        part.encode("utf-8")
        for part in (uid, parent_uid or "", version, json_text)
    )


def content_hash(
    uid: str,
    parent_uid: str | None,
    version: str,
    json_text: str,
    encoder: Any = Base58Encoder,
) -> str:
    """Return the encoded SHA-256 digest of a record's identity and payload.

    Parameters
    ----------
    uid:
        Caller-supplied unique key.
    parent_uid:
        Optional parent key; ``None`` hashes the same as ``""``.
    version:
        Schema/payload version string.
    json_text:
        Serialised JSON object, hashed byte-for-byte.
    encoder:
        ``nacl.encoding``-style encoder applied to the raw 32-byte digest.
    """
    data = _hash_input(uid, parent_uid, version, json_text)
    return nacl.hash.sha256(data, encoder=encoder).decode("ascii")


class ContentHasher:
    """Content hash function bound to one encoder.

    The encoder is checked once here, on a sample digest, so a misconfigured
    encoder fails at construction instead of in the middle of a flush.

    Raises
    ------
    ConfigurationError
        If *encoder* has no callable ``encode`` or does not return ASCII bytes.
    """

    def __init__(self, encoder: Any = Base58Encoder) -> None:
        if not callable(getattr(encoder, "encode", None)):
            raise ConfigurationError(
                f"Encoder {encoder!r} must provide an encode(bytes) -> bytes method"
            )
        try:
            sample = encoder.encode(bytes(32))
            if not isinstance(sample, bytes):
                raise TypeError(f"encode() returned {type(sample).__name__}, not bytes")
            sample.decode("ascii")
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                f"Encoder {encoder!r} must encode a digest to ASCII bytes: {exc}"
            ) from exc
        self._encoder = encoder

    @property
    def encoder(self) -> Any:
        return self._encoder

    def digest(
        self,
        uid: str,
        parent_uid: str | None,
        version: str,
        json_text: str,
    ) -> str:
        return content_hash(uid, parent_uid, version, json_text, encoder=self._encoder)


def record_id(revision: int, uid: str) -> str:
    """Return the batch-scoped row id ``"<revision>-<uid>"``."""
    return f"{revision}{ID_REVISION_DELIMITER}{uid}"


def split_record_id(row_id: str) -> tuple[int, str]:
    """Split a row id on its first delimiter into ``(revision, uid)``.

    Raises
    ------
    ValueError
        If *row_id* has no delimiter or its revision part is not an integer.
    """
    revision, sep, uid = row_id.partition(ID_REVISION_DELIMITER)
    if not sep:
        raise ValueError(f"Row id {row_id!r} has no {ID_REVISION_DELIMITER!r} delimiter")
    return int(revision), uid
