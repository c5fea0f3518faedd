"""Attachment ingestion. Turns a file on disk into a FileAttachment before it reaches the core."""

# Custom validators and word completers live here as well.

import base64
import mimetypes
import os

from prompt_toolkit.completion import (
    WordCompleter,
)
from prompt_toolkit.validation import Validator

from neurochat.models import FileAttachment, Session

# Extensions that mimetypes misses or labels as application/*, read as text anyway
TEXT_FILES = (
    ".md",
    ".txt",
    ".py",
    ".js",
    ".ts",
    ".tsx",
    ".json",
    ".toml",
    ".yaml",
    ".yml",
    ".ini",
    ".cfg",
    ".sh",
    ".rs",
    ".go",
    ".c",
    ".h",
    ".cpp",
    ".java",
    ".sql",
    ".csv",
    ".xml",
    ".html",
    ".css",
    ".log",
)


def guess_mime_type(path: str) -> str:
    """mimetypes guess, forced to text/plain for known text extensions"""
    mime, _ = mimetypes.guess_type(path)
    if path.lower().endswith(TEXT_FILES) and not (mime or "").startswith("text/"):
        return "text/plain"
    return mime or "application/octet-stream"


def ingest_file(path: str) -> FileAttachment:
    """
    Builds an attachment from a path.

    Text is read as-is, images are base64 encoded, anything else is replaced
    by a short placeholder naming the file.
    """

    def read_text(src: str) -> str:
        try:
            with open(src, "r", encoding="utf-8") as f:
                return f.read()
        except UnicodeDecodeError:
            with open(src, "r", encoding="latin-1") as f:
                return f.read()

    path = os.path.abspath(os.path.expanduser(path))
    if not os.path.isfile(path):
        raise FileNotFoundError(f"No such file: {path}")
    name = os.path.basename(path)
    mime = guess_mime_type(path)

    if mime.startswith("text/"):
        content = read_text(path)
    elif mime.startswith("image/"):
        with open(path, "rb") as f:
            content = base64.b64encode(f.read()).decode("ascii")
    else:
        content = f"[File: {name}, Type: {mime}]"

    return FileAttachment(name=name, mime_type=mime, content=content)


def session_completer(sessions: tuple[Session, ...]) -> WordCompleter:
    """Session title completion for !switch, !rename and !delete"""
    return WordCompleter(
        [s.title for s in sessions],
        ignore_case=True,
        sentence=True,
    )


def path_validator() -> Validator:
    """Prompt_toolkit file validator"""

    def _validator(text: str) -> bool:
        """Path validation helper for path_validator()"""
        text = os.path.abspath(os.path.expanduser(text))
        return os.path.isfile(text)

    return Validator.from_callable(
        _validator,
        error_message="Invalid file path.",
        move_cursor_to_end=True,
    )
