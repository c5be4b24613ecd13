"""
Point and interval queries over an ObservationRing.

Between two stored observations the accumulator is interpolated linearly in
minutes. The geometric mean of price_sqrt over ``[a, b)`` is

    exp((y_b - y_a) / minutes(b - a))
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from . import fixed_point as fp
from .accumulator import split_timestamp
from .models import AccumulatedObservation, ObservationInterval
from .ring import ObservationRing
from ..constants import SECONDS_PER_MINUTE
from ..exceptions import EmptyOracle, InvalidInterval, OracleException

logger = logging.getLogger(__name__)


def linear_interpolation(
    x_left: int,
    x_right: int,
    y_left: Decimal,
    y_right: Decimal,
    x_target: int,
) -> Decimal:
    """Interpolate y at x_target; x values are minute counts."""
    slope = fp.div(fp.sub(y_right, y_left), x_right - x_left)
    return fp.add(y_left, fp.mul(slope, x_target - x_left))


def arithmetic_mean(x_left: int, x_right: int, y_left: Decimal, y_right: Decimal) -> Decimal:
    return fp.div(fp.sub(y_right, y_left), x_right - x_left)


def geometric_mean(x_left: int, x_right: int, y_left: Decimal, y_right: Decimal) -> Decimal:
    return fp.exp(arithmetic_mean(x_left, x_right, y_left, y_right))


class QueryEngine:
    """Read-only queries; never mutates the ring."""

    def __init__(self, ring: ObservationRing):
        self._ring = ring

    def observation(self, seconds: int) -> AccumulatedObservation:
        """
        Accumulated observation at ``seconds`` rounded down to the minute.

        Exact matches return the stored observation itself; other instants
        are interpolated from the two bracketing observations.

        Raises:
            EmptyOracle, OutOfRange, ArithmeticOverflow
        """
        target, _ = split_timestamp(seconds)
        left, right = self._ring.find_bounds(target)
        if left is right:
            return left

        price_sqrt_log_acc = linear_interpolation(
            left.timestamp_minute // SECONDS_PER_MINUTE,
            right.timestamp_minute // SECONDS_PER_MINUTE,
            left.price_sqrt_log_acc,
            right.price_sqrt_log_acc,
            target // SECONDS_PER_MINUTE,
        )
        logger.debug(
            "Interpolated minute=%d between %d and %d: acc=%s",
            target, left.timestamp_minute, right.timestamp_minute, price_sqrt_log_acc,
        )
        return AccumulatedObservation(timestamp_minute=target, price_sqrt_log_acc=price_sqrt_log_acc)

    def observation_interval(self, start_seconds: int, end_seconds: int) -> ObservationInterval:
        """
        Geometric-mean price_sqrt between two instants.

        Raises:
            InvalidInterval: ends round to the same minute or are reversed
            EmptyOracle, OutOfRange, ArithmeticOverflow
        """
        start, _ = split_timestamp(start_seconds)
        end, _ = split_timestamp(end_seconds)
        if start >= end:
            raise InvalidInterval(
                f"Provided intervals in seconds must be of the type [a, b], where a/60 < b/60. "
                f"Interval [{start_seconds}, {end_seconds}] does not obey this condition."
            )

        o_left = self.observation(start)
        o_right = self.observation(end)
        price_sqrt_avg = geometric_mean(
            start // SECONDS_PER_MINUTE,
            end // SECONDS_PER_MINUTE,
            o_left.price_sqrt_log_acc,
            o_right.price_sqrt_log_acc,
        )
        return ObservationInterval(start=start, end=end, price_sqrt_avg=price_sqrt_avg)

    def observation_intervals(
        self,
        intervals_in_seconds: Iterable[Tuple[int, int]],
        strict: bool = False,
    ) -> List[ObservationInterval]:
        """
        Geometric means for several intervals, in input order.

        Args:
            intervals_in_seconds: ``(start, end)`` pairs in unix seconds
            strict: raise the first per-interval failure instead of recording it

        Raises:
            EmptyOracle: before the first observation is stored
        """
        if len(self._ring) == 0:
            raise EmptyOracle("No observations exist yet.")

        results: List[ObservationInterval] = []
        for start_seconds, end_seconds in intervals_in_seconds:
            try:
                results.append(self.observation_interval(start_seconds, end_seconds))
            except OracleException as e:
                if strict:
                    raise
                logger.warning("Interval [%s, %s] failed: %s", start_seconds, end_seconds, e)
                results.append(ObservationInterval(
                    start=_floor_minute(start_seconds),
                    end=_floor_minute(end_seconds),
                    price_sqrt_avg=None,
                    error=e,
                ))
        return results


def _floor_minute(seconds) -> Optional[int]:
    if isinstance(seconds, int) and not isinstance(seconds, bool):
        return seconds - seconds % SECONDS_PER_MINUTE
    return None
