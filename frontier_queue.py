from __future__ import annotations

from collections import deque
from typing import NamedTuple

import numpy as np


class FrontierEntry(NamedTuple):
    node_id: int
    mask: np.ndarray


class FrontierQueue:
    """FIFO of nodes waiting to be resolved, in breadth-first order.

    Masks hold 1.0 for member rows, 0.0 for rows outside the subtree and NaN
    for rows a categorical split could not route.
    """

    def __init__(self) -> None:
        self._entries: deque[FrontierEntry] = deque()

    @classmethod
    def seeded(cls, n_rows: int) -> FrontierQueue:
        queue = cls()
        queue._entries.append(FrontierEntry(1, np.ones(n_rows, dtype=np.float64)))
        return queue

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def pop(self) -> FrontierEntry:
        if not self._entries:
            raise IndexError("pop from an empty frontier")
        return self._entries.popleft()

    def push_children(
        self,
        parent_id: int,
        left_mask: np.ndarray,
        right_mask: np.ndarray,
    ) -> None:
        # Siblings always enter together so the right child sits right after
        # the left one in the finished table.
        self._entries.extend(
            (
                FrontierEntry(2 * parent_id, left_mask),
                FrontierEntry(2 * parent_id + 1, right_mask),
            )
        )
