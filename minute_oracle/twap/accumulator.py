"""
Per-minute log-price accumulator.

Folds the trades of the live minute into a time-weighted average of
``ln(price_sqrt)`` and, whenever a trade lands in a later minute, closes the
finished span and emits the next ``Observation``:

    acc_new = acc + avg_log(closed minute) + (a - 1) * ln(last price_sqrt)

where ``a`` is the number of minutes between the closed minute and the new
one. Idle minutes are priced at the last observed value.

Within a minute the price is held constant between trades: every trade
weights the *previous* price by the seconds elapsed since the previous
trade, and the seconds of a new minute before its first trade are priced at
the last price of the previous minute. The very first minute is averaged
over the seconds actually observed.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from . import fixed_point as fp
from .models import Observation
from ..constants import SECONDS_PER_MINUTE
from ..exceptions import InvalidTimestamp, OutOfOrderTimestamp

logger = logging.getLogger(__name__)


def split_timestamp(timestamp_seconds: int) -> tuple:
    """Return ``(minute_start_seconds, second_of_minute)``."""
    if isinstance(timestamp_seconds, bool) or not isinstance(timestamp_seconds, int):
        raise InvalidTimestamp(f"Timestamp must be an integer, got {timestamp_seconds!r}")
    if timestamp_seconds < 0:
        raise InvalidTimestamp(f"Timestamp must be non-negative, got {timestamp_seconds}")
    second = timestamp_seconds % SECONDS_PER_MINUTE
    return timestamp_seconds - second, second


class MinuteAccumulator:
    """
    Transient state of the minute being accumulated.

    Created empty; the first trade seeds it. All fields are recomputed
    before any of them is assigned, so a rejected trade leaves the state
    untouched.
    """

    def __init__(self) -> None:
        self.current_minute: Optional[int] = None
        self.weighted_log_sum: Decimal = fp.ZERO
        self.last_price_sqrt: Optional[Decimal] = None
        self.last_log_price_sqrt: Decimal = fp.ZERO
        self.last_trade_second: int = 0
        # Accumulated log of every closed minute, baseline zero
        self.price_sqrt_log_acc: Decimal = fp.ZERO
        # Second of the very first trade, until the first minute closes
        self._first_second: Optional[int] = None

    @property
    def started(self) -> bool:
        return self.current_minute is not None

    def record_trade(self, price_sqrt: fp.Number, timestamp_seconds: int) -> Optional[Observation]:
        """
        Feed one swap into the accumulator.

        Args:
            price_sqrt: pool price_sqrt after the swap (positive)
            timestamp_seconds: unix time of the swap

        Returns:
            The Observation closing the previous span when a minute boundary
            was crossed, otherwise None.

        Raises:
            InvalidPrice: non-positive or non-numeric price_sqrt
            InvalidTimestamp: negative or non-integer timestamp
            OutOfOrderTimestamp: timestamp earlier than the last trade
            ArithmeticOverflow: accumulator leaves the representable range
        """
        price = fp.to_price_sqrt(price_sqrt)
        minute, second = split_timestamp(timestamp_seconds)

        if not self.started:
            log_price = fp.ln(price)
            self.current_minute = minute
            self.last_price_sqrt = price
            self.last_log_price_sqrt = log_price
            self.last_trade_second = second
            self._first_second = second
            logger.debug("Accumulator seeded at minute=%d second=%d", minute, second)
            return None

        if minute < self.current_minute or (
            minute == self.current_minute and second < self.last_trade_second
        ):
            raise OutOfOrderTimestamp(
                f"Trade at {timestamp_seconds} precedes the last trade at "
                f"{self.current_minute + self.last_trade_second}"
            )

        log_price = fp.ln(price)

        if minute == self.current_minute:
            elapsed = second - self.last_trade_second
            weighted = fp.add(
                self.weighted_log_sum, fp.mul(self.last_log_price_sqrt, elapsed)
            )
            self.weighted_log_sum = weighted
            self.last_price_sqrt = price
            self.last_log_price_sqrt = log_price
            self.last_trade_second = second
            return None

        observation = self._close(minute)
        carried = fp.mul(self.last_log_price_sqrt, second)

        self.price_sqrt_log_acc = observation.price_sqrt_log_acc
        self.current_minute = minute
        self.weighted_log_sum = carried
        self.last_price_sqrt = price
        self.last_log_price_sqrt = log_price
        self.last_trade_second = second
        self._first_second = None
        return observation

    def minute_average(self) -> Decimal:
        """
        Time-weighted average of ln(price_sqrt) over the live minute, as if it
        closed now without further trades.
        """
        if not self.started:
            return fp.ZERO
        remaining = SECONDS_PER_MINUTE - self.last_trade_second
        total = fp.add(self.weighted_log_sum, fp.mul(self.last_log_price_sqrt, remaining))
        if self._first_second is not None:
            duration = SECONDS_PER_MINUTE - self._first_second
        else:
            duration = SECONDS_PER_MINUTE
        return fp.div(total, duration)

    def _close(self, minute: int) -> Observation:
        minutes_since_last = (minute - self.current_minute) // SECONDS_PER_MINUTE
        acc = fp.add(self.price_sqrt_log_acc, self.minute_average())
        if minutes_since_last > 1:
            acc = fp.add(acc, fp.mul(self.last_log_price_sqrt, minutes_since_last - 1))
        return Observation(timestamp_minute=minute, price_sqrt_log_acc=acc)
