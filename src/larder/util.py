from collections.abc import Callable, Iterable


def str_to_bool(value: str | bool | int | None) -> bool:
    """Convert common truthy / falsy strings and values to `bool`."""

    truthy_values = {"true", "1", "yes", "y", "t", "on"}
    falsy_values = {"false", "0", "no", "n", "f", "off"}

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if not isinstance(value, str):
        raise ValueError(f"Cannot convert '{value}' to a boolean.")

    value = value.strip().lower()

    if value in truthy_values:
        return True
    if value in falsy_values:
        return False
    raise ValueError(f"Cannot convert '{value}' to a boolean.")


def unique_stripped(
    values: Iterable[str | None],
    *,
    key: Callable[[str], str] | None = None,
) -> list[str]:
    """Strip ``values``, drop blanks and duplicates, keep first-seen order.

    ``key`` decides which values count as duplicates (``str.lower`` for a
    case-insensitive pass); the first spelling encountered is the one kept.
    """

    seen: set[str] = set()
    result: list[str] = []
    for raw in values:
        value = (raw or "").strip()
        if not value:
            continue
        marker = key(value) if key else value
        if marker in seen:
            continue
        seen.add(marker)
        result.append(value)
    return result
