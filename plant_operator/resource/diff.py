"""Structural comparison of desired and live object fields.

Live objects carry fields defaulted by the cluster that the desired state never
sets, so desired values are compared as a subset of the live values.
"""

import copy
from typing import Any

__all__ = [
    "is_subset_equal",
    "merge_fields",
    "merge_labels",
]


def _is_unset(value: Any) -> bool:
    """Return True for values that mean a field was left unset."""
    return value is None or (isinstance(value, (str, dict, list)) and not value)


def is_subset_equal(desired: Any, live: Any) -> bool:
    """Return True if every field set in desired has the same value in live.

    Mappings are compared recursively and keys only present in live are
    ignored. Lists are compared element by element and must have the same
    length. Unset values in desired match anything.
    """
    if _is_unset(desired):
        return True
    if isinstance(desired, dict):
        if not isinstance(live, dict):
            return False
        return all(
            is_subset_equal(value, live.get(key)) for key, value in desired.items()
        )
    if isinstance(desired, list):
        if not isinstance(live, list) or len(desired) != len(live):
            return False
        return all(is_subset_equal(d, l) for d, l in zip(desired, live))
    if isinstance(desired, bool) or isinstance(live, bool):
        return isinstance(live, bool) and desired is live
    return bool(desired == live)


def merge_fields(desired: dict[str, Any], live: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of live with every field set in desired written over it.

    Nested mappings are merged, lists are replaced as a whole.
    """
    result = copy.deepcopy(live)
    for key, value in desired.items():
        if _is_unset(value):
            continue
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge_fields(value, result[key])
        else:
            result[key] = copy.deepcopy(value)
    return result


def merge_labels(src: dict[str, str], dst: dict[str, str]) -> bool:
    """Add every label of src to dst, returning True if dst changed."""
    changed = False
    for key, value in src.items():
        if dst.get(key) != value:
            dst[key] = value
            changed = True
    return changed
