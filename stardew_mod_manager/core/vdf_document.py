"""Ordered key/value tree used for Steam text VDF files.

A VDF document is a plain ``dict`` (insertion ordered) whose values are either
strings or nested documents. Keys are unique per level; writing an existing key
replaces its value in place.
"""

from __future__ import annotations

import logging
from typing import TypeAlias, Union

__all__ = ["VdfDocument", "VdfValue", "find_entry", "replace_first", "documents_equal", "iter_documents"]

logger = logging.getLogger("stardewmodmgr.vdf")

VdfValue: TypeAlias = Union[str, "VdfDocument"]
VdfDocument: TypeAlias = dict[str, VdfValue]


def iter_documents(doc: VdfDocument):
    """Yields the nested documents of one level in iteration order."""
    for value in doc.values():
        if isinstance(value, dict):
            yield value


def find_entry(doc: VdfDocument, key: str) -> VdfValue | None:
    """Finds the first value stored under ``key`` anywhere in the tree.

    The search is depth-first pre-order: the current level is checked before
    any nested document is visited, so a shallow match always beats a deeper
    one on the same branch.

    Args:
        doc: Document to search.
        key: Exact (case-sensitive) key.

    Returns:
        The string or nested document found, or None if the key is absent.
    """
    if key in doc:
        return doc[key]

    for child in iter_documents(doc):
        found = find_entry(child, key)
        if found is not None:
            return found

    return None


def replace_first(doc: VdfDocument, key: str, value: VdfValue) -> bool:
    """Replaces the value of the first ``key`` found in pre-order.

    Args:
        doc: Document to mutate.
        key: Exact key to look for.
        value: New value.

    Returns:
        True if a value was replaced, False if the key is not in the tree.
    """
    if key in doc:
        doc[key] = value
        logger.debug("Replaced value for key %s", key)
        return True

    for child in iter_documents(doc):
        if replace_first(child, key, value):
            return True

    return False


def documents_equal(left: VdfDocument, right: VdfDocument) -> bool:
    """Structural equality that also compares key order at every level."""
    if list(left.keys()) != list(right.keys()):
        return False

    for key, value in left.items():
        other = right[key]
        if isinstance(value, dict) != isinstance(other, dict):
            return False
        if isinstance(value, dict):
            if not documents_equal(value, other):
                return False
        elif value != other:
            return False

    return True
