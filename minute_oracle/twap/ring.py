"""
Fixed-capacity circular store of observations.

Slots form a physical array; readers see a *logical* sequence ordered
oldest→newest. Logical index ``i`` lives in physical slot
``(write_index - count + i) % capacity``. Before the first wrap this is just
``i``; once full, slot ``write_index`` holds the oldest observation and is
the next one to be overwritten.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Optional, Tuple

from .models import Observation
from ..constants import OBSERVATIONS_LIMIT
from ..exceptions import EmptyOracle, OutOfOrderTimestamp, OutOfRange

logger = logging.getLogger(__name__)


class ObservationRing:
    """Circular buffer of observations with wraparound-aware binary search."""

    def __init__(self, capacity: int = OBSERVATIONS_LIMIT):
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            raise TypeError("capacity must be an integer")
        if not 1 <= capacity <= OBSERVATIONS_LIMIT:
            raise ValueError(f"capacity must be in [1, {OBSERVATIONS_LIMIT}], got {capacity}")
        self._capacity = capacity
        self._slots: List[Optional[Observation]] = [None] * capacity
        self.write_index: int = 0
        self.count: int = 0
        self._evicting = False

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return self.count

    # -- Logical view -------------------------------------------------------

    def _slot(self, logical_index: int) -> int:
        """Physical slot holding the logical_index-th oldest observation."""
        return (self.write_index - self.count + logical_index) % self._capacity

    def __getitem__(self, logical_index: int) -> Observation:
        if logical_index < 0:
            logical_index += self.count
        if not 0 <= logical_index < self.count:
            raise IndexError(f"Logical index {logical_index} out of range [0, {self.count})")
        return self._slots[self._slot(logical_index)]

    def __iter__(self) -> Iterator[Observation]:
        for i in range(self.count):
            yield self._slots[self._slot(i)]

    # -- Writes -------------------------------------------------------------

    def insert(self, obs: Observation) -> None:
        """
        Store ``obs`` as the newest observation, evicting the oldest one when
        full.

        Raises:
            OutOfOrderTimestamp: if ``obs`` is not strictly newer than the newest
        """
        newest = self.newest()
        if newest is not None and obs.timestamp_minute <= newest.timestamp_minute:
            raise OutOfOrderTimestamp(
                f"Observation at {obs.timestamp_minute} is not newer than "
                f"{newest.timestamp_minute}"
            )

        if self.count == self._capacity and not self._evicting:
            self._evicting = True
            logger.info(
                "Observation ring full (%d); evicting oldest at %d",
                self._capacity, self._slots[self.write_index].timestamp_minute,
            )

        self._slots[self.write_index] = obs
        if self.count < self._capacity:
            self.count += 1
        self.write_index = (self.write_index + 1) % self._capacity

    # -- Reads --------------------------------------------------------------

    def oldest(self) -> Optional[Observation]:
        if self.count == 0:
            return None
        return self._slots[self._slot(0)]

    def newest(self) -> Optional[Observation]:
        if self.count == 0:
            return None
        return self._slots[self._slot(self.count - 1)]

    def last_index(self) -> Optional[int]:
        """Physical slot of the newest observation."""
        if self.count == 0:
            return None
        return (self.write_index - 1) % self._capacity

    def find_bounds(self, target_minute: int) -> Tuple[Observation, Observation]:
        """
        Binary search for the stored observations bracketing ``target_minute``:
        the greatest at or before it and the least at or after it. Both are the
        same observation on an exact match.

        Raises:
            EmptyOracle: nothing stored yet
            OutOfRange: target outside [oldest, newest]
        """
        if self.count == 0:
            raise EmptyOracle("No observations exist yet.")

        oldest = self.oldest()
        newest = self.newest()
        if not oldest.timestamp_minute <= target_minute <= newest.timestamp_minute:
            raise OutOfRange(
                f"Timestamp {target_minute} (rounded to the minute) not in range. "
                f"The available range is [{oldest.timestamp_minute}, {newest.timestamp_minute}]"
            )

        # Invariant: self[lo] <= target < self[hi] until they are adjacent
        lo, hi = 0, self.count - 1
        if newest.timestamp_minute == target_minute:
            return newest, newest
        while hi - lo > 1:
            mid = (lo + hi) // 2
            observation_mid = self[mid]
            if observation_mid.timestamp_minute == target_minute:
                return observation_mid, observation_mid
            if observation_mid.timestamp_minute < target_minute:
                lo = mid
            else:
                hi = mid

        left = self[lo]
        if left.timestamp_minute == target_minute:
            return left, left
        return left, self[hi]
