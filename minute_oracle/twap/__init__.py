"""
Minute TWAP Oracle Engine

Per-pool price oracle fed synchronously by swaps.

Components:
  - Fixed-point ln/exp primitives (deterministic Decimal arithmetic)
  - Minute accumulator (time-weighted log-price per minute)
  - Observation ring (65535 slots, overwrite-oldest)
  - Query engine (binary search, interpolation, geometric means)
  - Pool hooks (afterInstantiate / afterSwap integration)
"""

from .models import (
    Observation,
    AccumulatedObservation,
    ObservationInterval,
)
from .accumulator import MinuteAccumulator
from .ring import ObservationRing
from .query import (
    QueryEngine,
    linear_interpolation,
    arithmetic_mean,
    geometric_mean,
)
from .oracle import TWAPOracle
from .hooks import (
    HookFlags,
    HookContext,
    HookResult,
    HookRegistry,
    OracleHook,
)

__all__ = [
    # Models
    "Observation", "AccumulatedObservation", "ObservationInterval",
    # Components
    "MinuteAccumulator", "ObservationRing", "QueryEngine",
    "linear_interpolation", "arithmetic_mean", "geometric_mean",
    # Facade
    "TWAPOracle",
    # Hooks
    "HookFlags", "HookContext", "HookResult", "HookRegistry", "OracleHook",
]
