"""
Slice ordering for series submissions.

The series manager keeps slices in the order it receives them, so callers
sort first. Upload pipelines usually name slice files with an embedded slice
number ("IMG-0001-00012.dcm", "slice_7.dcm"); sort_sources() orders by the
last number in each name and falls back to the name itself.
"""

import re
from typing import List, Optional, Sequence, Tuple

from .retriever import SliceSource

_NUMBER_RE = re.compile(r"(\d+)")


def slice_number(name: str) -> Optional[int]:
    """
    Return the last integer embedded in a slice name, ignoring its extension.

    >>> slice_number("IMG-0001-00012.dcm")
    12
    >>> slice_number("scout") is None
    True
    """
    stem = name.rsplit("/", 1)[-1]
    if "." in stem:
        stem = stem.rsplit(".", 1)[0]
    numbers = _NUMBER_RE.findall(stem)
    if not numbers:
        return None
    return int(numbers[-1])


def _sort_key(source: SliceSource) -> Tuple[int, int, str]:
    number = slice_number(source.name)
    # Numbered slices first, unnumbered ones after in name order
    if number is None:
        return (1, 0, source.name)
    return (0, number, source.name)


def sort_sources(sources: Sequence[SliceSource]) -> List[SliceSource]:
    """
    Sort slice sources by embedded slice number.

    Args:
        sources: Slice sources in arbitrary order

    Returns:
        New list ordered by slice number, then name. The sort is stable.
    """
    return sorted(sources, key=_sort_key)
