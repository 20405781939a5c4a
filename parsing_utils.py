"""Utility functions for parsing production requirement specifications."""


def _validate_has_colon(text: str) -> None:
    """Validate that text contains a colon separator.

    Precondition:
        text is a non-None string

    Postcondition:
        raises ValueError if ':' not in text, otherwise returns None

    Args:
        text: string to validate

    Raises:
        ValueError: if text does not contain a colon
    """
    if ":" not in text:
        raise ValueError(f"Invalid format: '{text}'. Expected 'Item:Count' or 'Item:Count:Maintain'")


def _split_requirement_string(text: str) -> tuple[str, str, str]:
    """Split text on colons and trim whitespace from every part.

    Precondition:
        text contains one or two colon characters

    Postcondition:
        returns (item_name, count_string, maintain_string), all stripped
        maintain_string is "0" when text has a single colon

    Args:
        text: string in format "Item:Count" or "Item:Count:Maintain"

    Returns:
        tuple of (item_name, count_string, maintain_string)

    Raises:
        ValueError: if text has more than two colons
    """
    parts = [part.strip() for part in text.split(":")]
    if len(parts) > 3:
        raise ValueError(f"Invalid format: '{text}'. Too many ':' separators")
    if len(parts) == 2:
        parts.append("0")
    return parts[0], parts[1], parts[2]


def _parse_count_value(value_str: str, field: str, item: str, minimum: int) -> int:
    """Convert a count string to an int of at least minimum.

    Args:
        value_str: string representation of a whole number
        field: name of the value (for error messages)
        item: item name (for error messages)
        minimum: smallest accepted value

    Returns:
        int value of value_str

    Raises:
        ValueError: if value_str is not a whole number or is below minimum
    """
    try:
        value = int(value_str)
    except ValueError as exc:
        raise ValueError(
            f"Invalid {field} '{value_str}' for {item}. Must be a whole number."
        ) from exc
    if value < minimum:
        raise ValueError(f"Invalid {field} '{value_str}' for {item}. Must be at least {minimum}.")
    return value


def parse_requirement(text: str) -> tuple[str, int, int]:
    """Parse an 'Item:Count[:Maintain]' string into a (item, count, maintain) tuple.

    Precondition:
        text is a non-None string in format "Item:Count" or "Item:Count:Maintain"

    Postcondition:
        returns (item_name, count, maintain) where item_name is trimmed,
        count >= 1 and maintain >= 0 (0 when omitted)

    Args:
        text: String like "Steel:3" or "Steel:3:500"

    Returns:
        Tuple of (item_name, count, maintain)

    Raises:
        ValueError: If format is invalid or count / maintain is not a valid number
    """
    _validate_has_colon(text)
    item, count_str, maintain_str = _split_requirement_string(text)
    if not item:
        raise ValueError(f"Invalid format: '{text}'. Missing item name")
    count = _parse_count_value(count_str, "count", item, 1)
    maintain = _parse_count_value(maintain_str, "maintain", item, 0)
    return item, count, maintain
