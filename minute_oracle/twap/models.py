"""Value types exchanged between the oracle components and their callers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..exceptions import OracleException


@dataclass(frozen=True)
class Observation:
    """
    Accumulated log-price at a minute boundary.

    ``price_sqrt_log_acc`` is the sum of the per-minute time-weighted averages
    of ``ln(price_sqrt)`` over every completed minute strictly before
    ``timestamp_minute``.
    """
    timestamp_minute: int           # unix seconds, multiple of 60
    price_sqrt_log_acc: Decimal


# Query results share the stored representation.
AccumulatedObservation = Observation


@dataclass(frozen=True)
class ObservationInterval:
    """Geometric-mean price_sqrt over ``[start, end)``, both minute-aligned."""
    start: int
    end: int
    price_sqrt_avg: Optional[Decimal]
    error: Optional[OracleException] = None

    @property
    def ok(self) -> bool:
        return self.error is None
