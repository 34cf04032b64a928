# src/tradedata_export/expansion.py

import itertools
import logging
from typing import Iterator, List

from .combination import CombinationKey, key_from_values
from .request import FilterListRequest

logger = logging.getLogger(__name__)


class CombinationSpace:
    """
    The cartesian product of a request's value lists.

    Lazy and restartable: every iteration walks HS x Product x Exporter x
    Port x IEC x Country x Party (outermost first) from the start, and len()
    is the product of list lengths without enumerating anything.
    """

    def __init__(self, request: FilterListRequest):
        self.request = request
        self._from_month = request.from_serial
        self._to_month = request.to_serial

    def __len__(self) -> int:
        return self.request.total_combinations

    def __iter__(self) -> Iterator[CombinationKey]:
        for index, values in enumerate(itertools.product(*self.request.value_lists), start=1):
            yield key_from_values(index, values, self._from_month, self._to_month)

    def __bool__(self) -> bool:
        return len(self) > 0

    def preview(self, limit: int = 10) -> List[CombinationKey]:
        """First `limit` keys, for confirmation prompts and plan output."""
        return list(itertools.islice(self, limit))


def expand(request: FilterListRequest) -> CombinationSpace:
    """
    Expands a request into its combinations.

    An empty value list yields an empty space; that is "nothing to do",
    not an error.
    """
    space = CombinationSpace(request)
    logger.debug(
        "Expanded request into %d combination(s) from list sizes %s",
        len(space),
        [len(values) for values in request.value_lists],
    )
    return space
