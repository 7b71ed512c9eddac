"""
Content type detection.

The file extension is tried first, then the leading bytes of the content.
"""

from __future__ import annotations

import mimetypes
from pathlib import PurePosixPath

# Source and text formats that the mimetypes database lacks or maps to
# something unhelpful (".ts" is MPEG transport stream there).
_EXTENSION_OVERRIDES: dict[str, str] = {
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".ts": "text/typescript",
    ".tsx": "text/tsx",
    ".jsx": "text/jsx",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
    ".toml": "text/toml",
    ".go": "text/x-go",
    ".rs": "text/x-rust",
    ".py": "text/x-python",
    ".rb": "text/x-ruby",
    ".sh": "text/x-shellscript",
    ".bash": "text/x-shellscript",
    ".sql": "text/x-sql",
    ".dockerfile": "text/x-dockerfile",
}

_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"%PDF-", "application/pdf"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"BM", "image/bmp"),
)

_SNIFF_LENGTH = 512

DEFAULT_CONTENT_TYPE = "text/plain"
BINARY_CONTENT_TYPE = "application/octet-stream"


def guess_from_filename(filename: str) -> str | None:
    """Return the content type implied by the extension, if known."""
    if not filename:
        return None
    suffix = PurePosixPath(filename).suffix.lower()
    if suffix in _EXTENSION_OVERRIDES:
        return _EXTENSION_OVERRIDES[suffix]
    content_type, _ = mimetypes.guess_type(filename, strict=False)
    return content_type


def sniff(content: bytes) -> str:
    """Classify content by its leading bytes."""
    head = content[:_SNIFF_LENGTH]
    for signature, content_type in _SIGNATURES:
        if head.startswith(signature):
            return content_type

    stripped = head.lstrip()
    if stripped[:5].lower() in (b"<!doc", b"<html"):
        return "text/html; charset=utf-8"
    if stripped.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"

    if b"\x00" in head:
        return BINARY_CONTENT_TYPE
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte sequence cut off at the sniff boundary is still text.
        if e.start < len(head) - 3:
            return BINARY_CONTENT_TYPE
    return "text/plain; charset=utf-8"


def detect_content_type(filename: str, content: bytes | None) -> str:
    """
    Determine a content type for an upload.

    Args:
        filename: Client-supplied filename, may be empty
        content: Payload bytes, or None when not available yet

    Returns:
        MIME type string, "text/plain" when nothing else is known
    """
    by_name = guess_from_filename(filename)
    if by_name is not None:
        return by_name
    if content:
        return sniff(content)
    return DEFAULT_CONTENT_TYPE
