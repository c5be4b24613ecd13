"""
Minute TWAP Oracle

Pool-embedded time-weighted average price oracle:
  - Geometric mean TWAP:  exp( (y_b - y_a) / minutes(b - a) )
  - Updated synchronously on every swap with (price_sqrt, unix seconds)
  - One observation per minute boundary crossed, holding the accumulated
    per-minute average of ln(price_sqrt)
  - Bounded history: 65535 observations in a ring, oldest evicted first
  - Point queries interpolate between the two closest stored observations

Determinism:
  - Fixed-point Decimal arithmetic with software ln/exp
  - Single rounding rule (truncation toward negative infinity)
  - Explicit overflow detection instead of wrapping
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from . import fixed_point as fp
from .accumulator import MinuteAccumulator
from .models import AccumulatedObservation, Observation, ObservationInterval
from .query import QueryEngine
from .ring import ObservationRing
from ..constants import OBSERVATIONS_LIMIT
from ..exceptions import OutOfOrderTimestamp

logger = logging.getLogger(__name__)


class TWAPOracle:
    """
    Time-weighted average price oracle for a single pool.

    The host serialises all calls; reads observe every write that happened
    before them. The observation limit is fixed at construction.
    """

    def __init__(self, pool_id: str = "", observations_limit: int = OBSERVATIONS_LIMIT):
        self.pool_id = pool_id
        self._accumulator = MinuteAccumulator()
        self._ring = ObservationRing(observations_limit)
        self._queries = QueryEngine(self._ring)

    # -- Recording ----------------------------------------------------------

    def record_trade(self, price_sqrt: fp.Number, timestamp_seconds: int) -> Optional[Observation]:
        """
        Record the pool price_sqrt at the end of a swap.

        Must be called once per swap with non-decreasing timestamps.

        Returns:
            The Observation stored by this call, if a minute boundary was crossed

        Raises:
            InvalidPrice, InvalidTimestamp, OutOfOrderTimestamp, ArithmeticOverflow.
            A rejected trade leaves the oracle unchanged.
        """
        try:
            observation = self._accumulator.record_trade(price_sqrt, timestamp_seconds)
        except OutOfOrderTimestamp as e:
            logger.warning("[%s] Trade rejected: %s", self.pool_id or "oracle", e)
            raise

        if observation is not None:
            self._ring.insert(observation)
            logger.debug(
                "[%s] Observation stored: minute=%d acc=%s (stored=%d)",
                self.pool_id or "oracle",
                observation.timestamp_minute,
                observation.price_sqrt_log_acc,
                self._ring.count,
            )
        return observation

    # -- Queries ------------------------------------------------------------

    def observation(self, seconds: int) -> AccumulatedObservation:
        """Accumulated observation at ``seconds``, rounded down to the minute."""
        return self._queries.observation(seconds)

    def observation_intervals(
        self,
        intervals_in_seconds: Iterable[Tuple[int, int]],
        strict: bool = False,
    ) -> List[ObservationInterval]:
        """Geometric-mean price_sqrt for each ``(start, end)`` pair, in order."""
        return self._queries.observation_intervals(intervals_in_seconds, strict=strict)

    def observations_limit(self) -> int:
        return self._ring.capacity

    def observations_stored(self) -> int:
        return self._ring.count

    def oldest_observation_at(self) -> Optional[int]:
        """Unix seconds of the oldest stored observation, if any."""
        oldest = self._ring.oldest()
        return oldest.timestamp_minute if oldest else None

    def newest_observation_at(self) -> Optional[int]:
        newest = self._ring.newest()
        return newest.timestamp_minute if newest else None

    def last_observation_index(self) -> Optional[int]:
        """Ring slot of the newest observation (for tests and diagnostics)."""
        return self._ring.last_index()

    def get_observations(self, count: int = 50) -> List[Observation]:
        """Return the most recent observations, oldest first."""
        stored = self._ring.count
        return [self._ring[i] for i in range(max(0, stored - count), stored)]

    @property
    def latest_price_sqrt(self):
        return self._accumulator.last_price_sqrt
