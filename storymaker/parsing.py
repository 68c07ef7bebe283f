"""Shared parsing helpers for runtime and config value normalization."""

from __future__ import annotations


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_identifier_list(value: object) -> tuple[str, ...]:
    """Parse a comma-separated string or sequence into lowercase identifiers.

    Blank entries are dropped and the first occurrence of a duplicate wins, so
    `"openai, Google,,openai"` becomes `("openai", "google")`.
    """

    if value is None:
        return ()
    if isinstance(value, str):
        raw_items: list[object] = list(value.split(","))
    elif isinstance(value, list | tuple):
        raw_items = list(value)
    else:
        raise ValueError(f"Expected a comma-separated list, got `{value!r}`.")

    identifiers: list[str] = []
    for raw_item in raw_items:
        normalized = normalize_optional_string(raw_item)
        if normalized is None:
            continue
        lowered = normalized.lower()
        if lowered not in identifiers:
            identifiers.append(lowered)
    return tuple(identifiers)


def parse_float_in_range(
    value: object,
    field_name: str,
    *,
    minimum: float,
    maximum: float,
) -> float:
    """Parse a float and require it to lie in the closed `[minimum, maximum]` range."""

    if isinstance(value, bool):
        raise ValueError(f"`{field_name}` must be a number.")
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"`{field_name}` must be a number.") from exc
    if parsed != parsed or not minimum <= parsed <= maximum:
        raise ValueError(f"`{field_name}` must be between {minimum:g} and {maximum:g}.")
    return parsed
