"""Table naming utilities.

Centralized validation and resolution for the changelog table name.
Names must satisfy the DynamoDB table naming rules:
- Letters, digits, underscores, hyphens and periods only
- Between 3 and 255 characters
"""

import os
import re

from .exceptions import ValidationError

DEFAULT_TABLE_NAME = "dbchangelog"
"""Default changelog table name used by ``CoordinatorConfig``."""

TABLE_ENV_VAR = "LEDGERLOCK_TABLE"
"""Environment variable for overriding the default table name."""

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

MIN_TABLE_NAME_LENGTH = 3
MAX_TABLE_NAME_LENGTH = 255


def validate_table_name(name: str) -> None:
    """
    Validate a DynamoDB table name.

    Args:
        name: The user-provided table name

    Raises:
        ValidationError: If the name is empty, too short, too long or
            contains invalid characters
    """
    if not name:
        raise ValidationError("table_name", name, "Table name cannot be empty")

    if " " in name:
        raise ValidationError(
            "table_name",
            name,
            "Contains spaces. Use hyphens or underscores instead (e.g., 'my-changelog')",
        )

    if not TABLE_NAME_PATTERN.match(name):
        raise ValidationError(
            "table_name",
            name,
            "Only letters, digits, underscores, hyphens and periods are allowed.",
        )

    if len(name) < MIN_TABLE_NAME_LENGTH:
        raise ValidationError(
            "table_name",
            name,
            f"Too short. Table names need at least {MIN_TABLE_NAME_LENGTH} characters.",
        )

    if len(name) > MAX_TABLE_NAME_LENGTH:
        raise ValidationError(
            "table_name",
            name,
            f"Too long. Table names are limited to {MAX_TABLE_NAME_LENGTH} characters.",
        )


def resolve_table_name(table_name: str | None) -> str:
    """Resolve table name from explicit arg, env var, or default.

    Resolution order: ``table_name`` arg → ``LEDGERLOCK_TABLE`` env var → ``"dbchangelog"``.

    Args:
        table_name: Explicit table name, or ``None`` to use env/default.

    Returns:
        Validated table name.
    """
    name = table_name or os.environ.get(TABLE_ENV_VAR) or DEFAULT_TABLE_NAME
    validate_table_name(name)
    return name
