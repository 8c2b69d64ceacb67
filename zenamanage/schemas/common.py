"""
Validators shared across request schemas.
Partial updates write only the fields a client sent, so an explicit ``null``
for a required column has to be refused before it reaches the ORM.
"""
from __future__ import annotations

from typing import Any


def reject_null(value: Any) -> Any:
    if value is None:
        raise ValueError("This field cannot be null")
    return value


def normalize_email(value: str) -> str:
    """Emails identify accounts case-insensitively; store and look them up lowercased."""
    return value.strip().lower()
