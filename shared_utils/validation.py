"""
Input validation and normalization utilities.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from shared_utils.error_handler import ValidationError


class InputValidator:
    """Utility class for input validation."""

    @staticmethod
    def validate_non_empty_string(value: Any, field_name: str) -> str:
        """Validate non-empty string.

        Args:
            value: String to validate
            field_name: Name of field for error messages

        Returns:
            Validated string, stripped

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a string", context={"field": field_name})

        if not value or not value.strip():
            raise ValidationError(f"{field_name} is required", context={"field": field_name})

        return value.strip()

    @staticmethod
    def normalize_optional_text(value: Optional[str]) -> Optional[str]:
        """Strip free text; blank becomes None."""
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError("Expected a text value", context={"type": type(value).__name__})
        stripped = value.strip()
        return stripped or None

    @staticmethod
    def validate_positive_int(value: int, field_name: str, allow_zero: bool = False) -> int:
        """Validate positive integer.

        Args:
            value: Integer to validate
            field_name: Name of field for error messages
            allow_zero: Whether zero is valid

        Returns:
            Validated integer

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValidationError(f"{field_name} must be an integer")

        min_val = 0 if allow_zero else 1
        if value < min_val:
            raise ValidationError(f"{field_name} must be >= {min_val}")

        return value

    @staticmethod
    def parse_optional_datetime(value: Any) -> Optional[datetime]:
        """Permissively parse a timestamp.

        Accepts datetimes, ISO 8601 strings (including a trailing ``Z``) and
        epoch seconds. Anything unparseable yields None rather than an error.
        Naive values are taken as UTC.
        """
        if value is None or isinstance(value, bool):
            return None

        parsed: Optional[datetime] = None
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            try:
                parsed = datetime.fromtimestamp(value, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None
        elif isinstance(value, str) and value.strip():
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                return None

        if parsed is None:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
