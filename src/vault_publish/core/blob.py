"""Content addressing helpers.

Digests use git's blob scheme so that a locally computed value can be
compared directly with the ``sha`` GitHub reports for a stored file.
"""

import base64
import hashlib


def to_bytes(content: str | bytes) -> bytes:
    """Return the exact bytes that will be stored (text is UTF-8 encoded)."""
    if isinstance(content, str):
        return content.encode("utf-8")
    return bytes(content)


def git_blob_sha(content: str | bytes) -> str:
    """Compute the git blob SHA-1 of *content*.

    ``sha1(b"blob " + str(len(raw)).encode() + b"\\0" + raw)``, computed over
    the raw (pre-base64) bytes.
    """
    raw = to_bytes(content)
    header = f"blob {len(raw)}\0".encode("ascii")
    return hashlib.sha1(header + raw).hexdigest()


def encode_content(content: str | bytes) -> str:
    """Base64-encode *content* for the contents API."""
    return base64.b64encode(to_bytes(content)).decode("ascii")


def decode_content(encoded: str) -> bytes:
    """Decode a base64 payload as returned by the contents API (may contain newlines)."""
    return base64.b64decode(encoded.replace("\n", ""))
