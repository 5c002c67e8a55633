"""Shared base path inference for sibling page URLs."""

from typing import Iterable


def find_url_base_path(urls: Iterable[str]) -> str:
    """Return the longest common character prefix of ``urls``.

    A single URL is returned unchanged, an empty collection yields ``""``.
    Only the lexicographic extremes need comparing: every string sorted
    between them shares at least their common prefix.
    """
    ordered = sorted(urls)
    if not ordered:
        return ""
    if len(ordered) == 1:
        return ordered[0]

    first, last = ordered[0], ordered[-1]
    i = 0
    while i < len(first) and i < len(last) and first[i] == last[i]:
        i += 1
    return first[:i]
