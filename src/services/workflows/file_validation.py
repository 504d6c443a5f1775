"""
Validation and sanitization of uploaded workflow file names and contents.
"""

import json
import re
from typing import List, Optional, Union

from src.models.schemas.workflow import FileValidationResult

MAX_FILE_SIZE_BYTES = 1024 * 1024
DEFAULT_FILE_NAME = "workflow.json"
JSON_EXTENSION = ".json"

VALID_FILE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.json$")
PARENT_SEGMENT_PATTERN = re.compile(r"\.\.(?=[/\\])|(?<=[/\\])\.\.|^\.\.$")
SEPARATOR_PATTERN = re.compile(r"[/\\]")
DISALLOWED_CHARS_PATTERN = re.compile(r"[^A-Za-z0-9._-]")
DOT_RUN_PATTERN = re.compile(r"\.{2,}")
LAST_EXTENSION_PATTERN = re.compile(r"\.[^.]*$")


def sanitize_file_name(name: Optional[str]) -> str:
    """
    Reduce an arbitrary name to a safe `<name>.json` file name.

    Parent-directory segments and separators are dropped, characters outside
    [A-Za-z0-9._-] are removed, leading dots are stripped, dot runs collapse
    to one dot and any other extension is replaced by `.json`. Falls back to
    `workflow.json` when nothing usable is left. Applying it twice gives the
    same result as applying it once.
    """
    cleaned = PARENT_SEGMENT_PATTERN.sub("", name or "")
    cleaned = SEPARATOR_PATTERN.sub("", cleaned)
    cleaned = DISALLOWED_CHARS_PATTERN.sub("", cleaned)
    cleaned = cleaned.lstrip(".")
    cleaned = DOT_RUN_PATTERN.sub(".", cleaned)

    if not cleaned.endswith(JSON_EXTENSION):
        cleaned = LAST_EXTENSION_PATTERN.sub("", cleaned)
        if not cleaned:
            return DEFAULT_FILE_NAME
        if not cleaned.endswith(JSON_EXTENSION):
            cleaned = f"{cleaned}{JSON_EXTENSION}"

    return cleaned


def validate_file(
    file_name: Optional[str],
    content: Union[str, bytes],
    size_bytes: int,
) -> FileValidationResult:
    """
    Check an uploaded workflow file, collecting every problem found.

    Args:
        file_name: Name supplied by the client
        content: Raw file content
        size_bytes: Size of the upload in bytes

    Returns:
        FileValidationResult with all errors and the sanitized file name
    """
    errors: List[str] = []

    if not file_name:
        errors.append("File name is required")
    else:
        has_traversal = bool(SEPARATOR_PATTERN.search(file_name)) or ".." in file_name
        if has_traversal:
            errors.append("File name cannot contain path separators")

        if not file_name.endswith(JSON_EXTENSION):
            errors.append("File must have .json extension")
        elif not VALID_FILE_NAME_PATTERN.match(file_name):
            errors.append("File name must contain only letters, numbers, hyphens, and underscores")

    if size_bytes > MAX_FILE_SIZE_BYTES:
        errors.append(
            f"File size exceeds maximum of {MAX_FILE_SIZE_BYTES} bytes ({size_bytes} bytes)"
        )

    try:
        json.loads(content)
    except ValueError:
        errors.append("Invalid JSON: File must contain valid JSON syntax")

    return FileValidationResult(
        valid=not errors,
        errors=errors,
        sanitized_file_name=sanitize_file_name(file_name),
    )
