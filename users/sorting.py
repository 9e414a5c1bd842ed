from typing import List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from users.constants import DEFAULT_SORT

SortPairs = List[Tuple[str, int]]


def parse_sort(sort: Optional[str] = DEFAULT_SORT) -> SortPairs:
    """Parse "field:dir,field:dir" into pymongo sort pairs.

    Direction "1" is ascending; anything else, including a missing direction,
    is descending. Field names are passed through unchecked. A repeated field
    keeps its first position and takes its last direction.
    """
    directions = {}
    for token in (sort or "").split(","):
        key, _, direction = token.strip().partition(":")
        key = key.strip()
        if not key:
            continue
        directions[key] = ASCENDING if direction.strip() == "1" else DESCENDING

    if not directions and sort != DEFAULT_SORT:
        return parse_sort(DEFAULT_SORT)
    return list(directions.items())
