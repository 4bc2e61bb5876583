"""Byte-level helpers used while materializing assets."""

from __future__ import annotations

import gzip
import hashlib
import mimetypes
from pathlib import Path

from .exceptions import AssetReadError


mimetypes.add_type("application/json", ".map")
mimetypes.add_type("font/woff2", ".woff2")

DEFAULT_COMPRESS_LEVEL = 9
_TEXT_CHARSET = "; charset=utf-8"
_TEXTUAL_TYPES = frozenset(
    {
        "application/javascript",
        "application/json",
        "application/xml",
        "image/svg+xml",
    }
)

# Ordered: the first matching signature wins.
_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"%PDF-", "application/pdf"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"wOFF", "font/woff"),
    (b"wOF2", "font/woff2"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
)
_HTML_PREFIXES: tuple[bytes, ...] = (
    b"<!doctype html",
    b"<html",
    b"<head",
    b"<body",
    b"<script",
    b"<!--",
)


def read_source(path: Path) -> bytes:
    """Return the raw bytes stored at ``path``."""
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise AssetReadError(f"Unable to read '{path}': {exc.strerror or exc}") from exc


def _with_charset(content_type: str) -> str:
    if "charset=" in content_type:
        return content_type
    if content_type.startswith("text/") or content_type in _TEXTUAL_TYPES:
        return content_type + _TEXT_CHARSET
    return content_type


def sniff_content_type(content: bytes) -> str:
    """Guess a MIME type from the leading bytes of ``content``."""
    for signature, content_type in _SIGNATURES:
        if content.startswith(signature):
            return content_type
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"

    head = content[:512].lstrip().lower()
    if head.startswith(_HTML_PREFIXES):
        return "text/html" + _TEXT_CHARSET
    if head.startswith(b"<?xml"):
        return "text/xml" + _TEXT_CHARSET

    window = content[:512]
    try:
        text = window.decode("utf-8")
    except UnicodeDecodeError as exc:
        # Tolerate a multibyte sequence cut at the window boundary.
        if exc.start < len(window) - 3:
            return "application/octet-stream"
        text = window[: exc.start].decode("utf-8")
    if any(ord(char) < 0x20 and char not in "\t\n\r\x0c" for char in text):
        return "application/octet-stream"
    return "text/plain" + _TEXT_CHARSET


def detect_content_type(path: Path | str, content: bytes) -> str:
    """Resolve the MIME type by extension, falling back to content sniffing."""
    guessed, _encoding = mimetypes.guess_type(str(path), strict=False)
    if guessed:
        return _with_charset(guessed)
    return sniff_content_type(content)


def compress(content: bytes, level: int = DEFAULT_COMPRESS_LEVEL) -> bytes:
    """Gzip ``content`` deterministically (no embedded timestamp)."""
    return gzip.compress(content, compresslevel=level, mtime=0)


def fingerprint(content: bytes) -> bytes:
    """Return the SHA-1 digest of ``content``."""
    return hashlib.sha1(content).digest()


__all__ = [
    "DEFAULT_COMPRESS_LEVEL",
    "compress",
    "detect_content_type",
    "fingerprint",
    "read_source",
    "sniff_content_type",
]
