"""Error hints for accounts configuration errors."""

from typing import Final


ERROR_HINTS: Final[dict[str, str]] = {
    "missing": "This field is required. Please add it to your configuration.",
    "string_type": "This field must be a text string.",
    "bool_type": "This field must be true or false.",
    "list_type": "This field must be a list/array.",
    "tuple_type": "This field must be a list/array.",
    "too_short": "At least one entry is required.",
    "string_too_short": "The text is too short. Check minimum length requirement.",
    "string_too_long": "The text is too long. Check maximum length requirement.",
    "string_pattern_mismatch": "Use letters, numbers, hyphens, or underscores only.",
    "extra_forbidden": "Unknown field. Check for typos.",
    "file_not_found": "The file does not exist. Check the file path.",
    "yaml_parse_error": "Invalid YAML syntax. Check for proper indentation and formatting.",
}

FIELD_HINTS: Final[dict[str, str]] = {
    "name": "Account name used in alerts, metrics and the cache key (e.g., 'KOOTENAI').",
    "api_key_env": "Name of the environment variable holding the API key, not the key itself.",
    "alert_user_ids": "List of Slack member ids to mention (e.g., ['UQJLHM6LV']).",
}


def get_error_hint(error_type: str, field_name: str | None = None) -> str:
    """Get a user-friendly hint for a validation error.

    Args:
        error_type: The Pydantic error type (e.g., 'missing').
        field_name: Optional dotted field path for field-specific hints.

    Returns:
        A user-friendly hint string.
    """
    if field_name:
        simple_field = field_name.split(".")[-1]
        if simple_field in FIELD_HINTS:
            return FIELD_HINTS[simple_field]

    return ERROR_HINTS.get(
        error_type, "Check the configuration documentation for valid values."
    )


def format_validation_error(
    location: str,
    message: str,
    error_type: str,
    *,
    include_hint: bool = True,
) -> str:
    """Format a validation error for CLI output.

    Args:
        location: Dotted field path.
        message: Pydantic error message.
        error_type: Pydantic error type.
        include_hint: Whether to append a remediation hint.

    Returns:
        Formatted error line.
    """
    formatted = f"{location}: {message}" if location else message
    if include_hint:
        formatted += f" (hint: {get_error_hint(error_type, location)})"
    return formatted
