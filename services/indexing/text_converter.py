"""Conversion of raw file content into plain text chunks.

Binary formats (pdf, docx, ...) are converted to markdown with markitdown,
the markdown is then reduced to plain text and split into chunks of at most
``max_token_size`` estimated tokens.
"""

import io
import posixpath
import re

from langchain_text_splitters import RecursiveCharacterTextSplitter
from markitdown import MarkItDown, StreamInfo

TEXT_EXTENSIONS = {"txt", "csv", "json", "xml", "html", "md", "log"}

# same estimate as the API server: one token per four characters
CHARS_PER_TOKEN = 4

_PLAIN_TEXT_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"```[\s\S]*?```"), ""),
    (re.compile(r"`([^`]+)`"), r"\1"),
    (re.compile(r"^#+\s+", re.MULTILINE), ""),
    (re.compile(r"!\[.*?\]\(data:image/[^;]+;base64,[^)]+\)"), ""),
    (re.compile(r"!\[.*?\]\([^)]+\)"), ""),
    (re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),
    (re.compile(r"^\s*>\s?", re.MULTILINE), ""),
    (re.compile(r"^\s*[-*+]\s+", re.MULTILINE), ""),
    (re.compile(r"^\s*\d+\.\s+", re.MULTILINE), ""),
    (re.compile(r"^---+$", re.MULTILINE), ""),
    (re.compile(r"\n{2,}"), "\n"),
]


def extension_of(file: str) -> str:
    return posixpath.splitext(file.replace("\\", "/"))[1].lstrip(".").lower()


def to_markdown(file: str, content: bytes) -> str:
    """
    Convert raw file content to markdown.

    Text formats are decoded as UTF-8, everything else is converted by markitdown.

    Raises:
        Exception: If markitdown cannot convert the content.
    """
    extension = extension_of(file)
    if extension in TEXT_EXTENSIONS:
        return content.decode("utf-8", errors="replace")
    result = MarkItDown().convert_stream(io.BytesIO(content), stream_info=StreamInfo(extension=f".{extension}"))
    return result.text_content or ""


def to_plain_text(markdown: str) -> str:
    """Strip markdown syntax: code blocks, headings, images, links, quotes, list markers and rules."""
    text = markdown
    for pattern, replacement in _PLAIN_TEXT_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def chunk(text: str, max_token_size: int = 1200) -> list[str]:
    """Split text into chunks of at most ``max_token_size`` estimated tokens."""
    if not text.strip():
        return []
    chunk_size = max_token_size * CHARS_PER_TOKEN
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=min(200, chunk_size // 10),
    )
    return [part for part in splitter.split_text(text) if part.strip()]


def convert(file: str, content: bytes) -> str:
    """Convert raw file content to plain text. Plain text formats other than markdown are kept as they are."""
    extension = extension_of(file)
    if extension in TEXT_EXTENSIONS and extension != "md":
        return content.decode("utf-8", errors="replace").strip()
    return to_plain_text(to_markdown(file, content))
