"""
Input helpers shared by the handlers.
"""

from typing import Any, List

from .errors import ValidationError

# Club gear that can be offered on a trip and requested by members.
GEAR_VOCABULARY = ("tent", "sleeping bag", "sleeping pad", "stove", "headlamp")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def required_string(value: Any, name: str) -> str:
    """
    Return ``value`` as a trimmed string.

    Raises:
        ValidationError: If the trimmed value is empty
    """
    text = _as_text(value)
    if not text:
        raise ValidationError(f"{name} is required")
    return text


def optional_string(value: Any) -> str:
    """Return ``value`` as a trimmed string, empty when missing."""
    return _as_text(value)


def normalize_gear_list(value: Any) -> List[str]:
    """
    Normalize a gear selection against the club gear vocabulary.

    Accepts a list or a comma separated string. Items are trimmed and
    lower-cased; unknown items are dropped and duplicates collapsed while
    keeping first-seen order.

    Args:
        value: List of gear names, comma separated string, or None

    Returns:
        List of recognized gear names
    """
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = _as_text(value).split(",")

    result: List[str] = []
    for item in items:
        normalized = _as_text(item).lower()
        if normalized in GEAR_VOCABULARY and normalized not in result:
            result.append(normalized)
    return result
