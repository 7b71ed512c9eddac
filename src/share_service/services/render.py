"""
Browser rendering of text content.

Markdown is rendered client-side; other text is shown as a highlighted
code block. Content is HTML-escaped before it is embedded.
"""

from __future__ import annotations

import html
from pathlib import PurePosixPath

_CODE_TYPES: tuple[str, ...] = (
    "application/json",
    "application/javascript",
    "application/typescript",
    "application/x-yaml",
    "application/xml",
)

_LANGUAGES: dict[str, str] = {
    ".py": "python",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".sh": "bash",
    ".bash": "bash",
    ".sql": "sql",
    ".html": "html",
    ".xml": "xml",
    ".css": "css",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".java": "java",
}

_CDN = "https://cdn.jsdelivr.net/npm"

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta name="robots" content="noindex, nofollow">
<title>{title}</title>
{head}
</head>
<body>
<header><a href="/{item_id}/raw">raw</a></header>
{body}
</body>
</html>
"""

_MARKDOWN_HEAD = (
    f'<script src="{_CDN}/marked/marked.min.js"></script>\n'
    f'<script src="{_CDN}/dompurify/dist/purify.min.js"></script>'
)

_MARKDOWN_BODY = """<pre id="source" hidden>{content}</pre>
<article id="content"></article>
<script>
const source = document.getElementById("source").textContent;
document.getElementById("content").innerHTML = DOMPurify.sanitize(marked.parse(source));
</script>"""

_CODE_HEAD = (
    f'<link rel="stylesheet" href="{_CDN}/@highlightjs/cdn-assets/styles/github.min.css">\n'
    f'<script src="{_CDN}/@highlightjs/cdn-assets/highlight.min.js"></script>'
)

_CODE_BODY = """<pre><code class="{language_class}">{content}</code></pre>
<script>hljs.highlightAll();</script>"""


def can_render(content_type: str) -> bool:
    """Whether content of this type benefits from an HTML view."""
    ct = content_type.lower()
    if "markdown" in ct:
        return True
    if ct.startswith("text/") and "html" not in ct:
        return True
    return any(code_type in ct for code_type in _CODE_TYPES)


def detect_language(content_type: str, filename: str) -> str:
    """Pick a highlight.js language name, or "" to let it guess."""
    suffix = PurePosixPath(filename).suffix.lower() if filename else ""
    if suffix in _LANGUAGES:
        return _LANGUAGES[suffix]
    ct = content_type.lower()
    for marker in ("json", "yaml", "xml", "javascript", "typescript", "python", "go", "rust"):
        if marker in ct:
            return marker
    return ""


def render(content_type: str, data: bytes, filename: str, item_id: str) -> bytes:
    """
    Build an HTML page for the content.

    Raises:
        UnicodeDecodeError: Content is not valid UTF-8 text
    """
    text = data.decode("utf-8")
    title = html.escape(filename or "Shared Content")
    content = html.escape(text)

    if "markdown" in content_type.lower():
        head = _MARKDOWN_HEAD
        body = _MARKDOWN_BODY.format(content=content)
    else:
        language = detect_language(content_type, filename)
        language_class = f"language-{language}" if language else ""
        head = _CODE_HEAD
        body = _CODE_BODY.format(language_class=language_class, content=content)

    page = _PAGE.format(title=title, head=head, body=body, item_id=html.escape(item_id))
    return page.encode("utf-8")
