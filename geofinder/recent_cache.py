from collections import deque
from typing import Iterable, List, Optional

import numpy as np

RECENT_CAPACITY = 4


class RecentlyUsed:
    """Bounded history of recently shown indices (oldest evicted first)."""

    def __init__(self, capacity: int = RECENT_CAPACITY, items: Iterable[int] = ()) -> None:
        self._items: deque = deque(maxlen=capacity)
        self.extend(items)

    @property
    def capacity(self) -> int:
        return self._items.maxlen

    def extend(self, items: Iterable[int]) -> None:
        for item in items:
            self.push(item)

    def push(self, item: int) -> None:
        self._items.append(int(item))

    def reset(self, items: Iterable[int] = ()) -> None:
        self._items.clear()
        self.extend(items)

    def to_list(self) -> List[int]:
        return list(self._items)

    def __contains__(self, item: int) -> bool:
        return item in self._items

    def __len__(self) -> int:
        return len(self._items)

    def pick(self, pool_size: int, rng: Optional[np.random.Generator] = None) -> int:
        """Pick an index in [0, pool_size) not used recently and remember it

        When every index was used recently, the history restarts from the pick.

        Args:
            pool_size (int): Number of candidates
            rng (np.random.Generator): Random source, a fresh generator if omitted

        Returns:
            int: The selected index
        """
        if pool_size <= 0:
            raise ValueError("pool_size must be positive")
        rng = rng if rng is not None else np.random.default_rng()
        available = np.array([i for i in range(pool_size) if i not in self._items])
        if available.size == 0:
            selected = int(rng.integers(pool_size))
            self.reset([selected])
            return selected
        selected = int(rng.choice(available))
        self.push(selected)
        return selected
