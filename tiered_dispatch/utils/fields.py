"""Helpers for post-processing origin payloads."""

from collections.abc import Iterable, Mapping
from typing import Any


def get_ids(rows: Iterable[Any] | None, field: str) -> list[Any]:
    """
    Extract the non-empty ``field`` values from a list of records.

    Records may be mappings or objects exposing ``field`` as an attribute;
    records without the field are skipped.

    Args:
        rows: Records returned by an origin handler
        field: Name of the identifier field

    Returns:
        Identifier values in record order
    """
    ids = []
    if not rows:
        return ids

    for row in rows:
        if isinstance(row, Mapping):
            value = row.get(field)
        else:
            value = getattr(row, field, None)
        if value:
            ids.append(value)

    return ids
