"""
Validation utilities for upload requests.

Checks everything that can be known locally before the first network call,
so a publication never starts with a request the registry would reject.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .models.upload import STRUCTURE_FILE_EXPANSION, UploadRequest
from .models.vcs import is_blank


@dataclass
class ValidationResult:
    """Result of a validation check."""

    valid: bool
    errors: list[str]

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(valid=True, errors=[])

    @classmethod
    def failure(cls, *errors: str) -> ValidationResult:
        return cls(valid=False, errors=list(errors))

    def __bool__(self) -> bool:
        return self.valid


def _check_handle(role: str, handle: Any, errors: list[str]) -> None:
    if handle is None:
        return
    try:
        present = handle.exists()
    except OSError as e:
        errors.append(f"{role} file could not be checked: {e}")
        return
    if not present:
        errors.append(f"{role} file not found: {handle.name}")


def validate_upload_request(request: UploadRequest) -> ValidationResult:
    """
    Validate an upload request before planning.

    Version components, platform and stream must be non-blank; a
    file+expansion structure needs an expansion file; every file with a
    handle must exist.

    Returns:
        ValidationResult listing every problem found
    """
    errors = []

    for label, value in (
        ("version major", request.version.major),
        ("version minor", request.version.minor),
        ("version patch", request.version.patch),
        ("platform", request.platform),
        ("stream", request.stream),
    ):
        if is_blank(value):
            errors.append(f"{label} is required")

    if request.structure == STRUCTURE_FILE_EXPANSION and request.expansion_file is None:
        errors.append("structure 'file+expansion' requires an expansion file")

    _check_handle("primary", request.primary_file.handle, errors)
    if request.expansion_file is not None:
        _check_handle("expansion", request.expansion_file.handle, errors)

    return ValidationResult.failure(*errors) if errors else ValidationResult.success()
