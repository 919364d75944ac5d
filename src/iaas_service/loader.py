"""YAML document loading with validation.

Request and snapshot documents are read with a size limit and validated into
their pydantic model at the boundary.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_DOCUMENT_FILE_SIZE_BYTES = 1024 * 1024


class DocumentLoadError(Exception):
    """Raised when a document cannot be loaded or fails validation."""

    pass


def read_mapping(path: Path) -> dict:
    """Read a YAML mapping from ``path``.

    Raises:
        DocumentLoadError: If the file is missing, too large, not YAML, or
            not a mapping.
    """
    if not path.exists():
        raise DocumentLoadError(f"Document not found: {path}")

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise DocumentLoadError(f"Failed to stat document {path}: {e}") from e

    if file_size > MAX_DOCUMENT_FILE_SIZE_BYTES:
        raise DocumentLoadError(
            f"Document exceeds maximum size of {MAX_DOCUMENT_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentLoadError(f"Failed to read document {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise DocumentLoadError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise DocumentLoadError(f"Document must contain a YAML mapping: {path}")
    return raw_data


def load_document(path: Path, model: type[ModelT]) -> ModelT:
    """Load ``path`` and validate it as ``model``.

    Keys may use either the snake_case field names or their camelCase
    aliases.

    Raises:
        DocumentLoadError: If the document cannot be read or fails validation.
    """
    raw_data = read_mapping(path)

    try:
        document = model.model_validate(raw_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")
        error_list = "\n".join(errors)
        raise DocumentLoadError(f"Validation failed for {path}:\n{error_list}") from e

    logger.debug("Loaded %s from %s", model.__name__, path)
    return document
