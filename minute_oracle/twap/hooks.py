"""
Pool Hook Integration

Lets a liquidity pool drive the oracle without knowing about it:
  - afterInstantiate: the pool announces its address and token pair
  - afterSwap: the pool reports price_sqrt and the swap timestamp

Hooks run synchronously within the swap transaction. A hook that raises
turns into a revert result, so the host aborts the whole transaction and
the oracle state stays untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Flag, auto
from typing import Any, Dict, List, Optional, Protocol, Tuple

from .models import AccumulatedObservation, ObservationInterval
from .oracle import TWAPOracle

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Hook flags: which callbacks a plugin wants to receive
# ---------------------------------------------------------------------------

class HookFlags(Flag):
    NONE = 0
    AFTER_INSTANTIATE = auto()
    AFTER_SWAP = auto()
    ALL = AFTER_INSTANTIATE | AFTER_SWAP


# ---------------------------------------------------------------------------
# Hook context: data passed to hooks
# ---------------------------------------------------------------------------

@dataclass
class HookContext:
    """Data passed to hook callbacks."""
    pool_id: str = ""
    token_x: str = ""
    token_y: str = ""
    price_sqrt: Optional[Decimal] = None
    timestamp: int = 0
    amount_in: Decimal = ZERO
    amount_out: Decimal = ZERO
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HookResult:
    """Result from a hook execution."""
    allow: bool = True        # False = revert the operation
    reason: str = ""          # reason for revert (if allow=False)


class PoolHook(Protocol):
    """Protocol that pool hooks must implement."""

    @property
    def flags(self) -> HookFlags: ...

    def on_after_instantiate(self, ctx: HookContext) -> HookResult: ...
    def on_after_swap(self, ctx: HookContext) -> HookResult: ...


# ---------------------------------------------------------------------------
# Hook Registry: manages all registered hooks
# ---------------------------------------------------------------------------

class HookRegistry:
    """
    Registry of pool hooks.

    Hooks are executed in registration order. If any hook
    returns allow=False (or raises), the operation is reverted.
    """

    def __init__(self) -> None:
        self._hooks: List[PoolHook] = []

    def register(self, hook: PoolHook) -> None:
        self._hooks.append(hook)
        logger.info("Hook registered: %s (flags=%s)", type(hook).__name__, hook.flags)

    def unregister(self, hook: PoolHook) -> None:
        self._hooks = [h for h in self._hooks if h is not hook]

    @property
    def hook_count(self) -> int:
        return len(self._hooks)

    def run_after_instantiate(self, ctx: HookContext) -> HookResult:
        return self._run(HookFlags.AFTER_INSTANTIATE, "on_after_instantiate", ctx)

    def run_after_swap(self, ctx: HookContext) -> HookResult:
        return self._run(HookFlags.AFTER_SWAP, "on_after_swap", ctx)

    def _run(self, flag: HookFlags, method: str, ctx: HookContext) -> HookResult:
        for hook in self._hooks:
            if flag in hook.flags:
                try:
                    result = getattr(hook, method)(ctx)
                    if not result.allow:
                        return result
                except Exception as e:
                    logger.error("Hook %s.%s failed: %s", type(hook).__name__, method, e)
                    return HookResult(allow=False, reason=f"Hook error: {e}")
        return HookResult(allow=True)


# ---------------------------------------------------------------------------
# Oracle hook: records every swap into a TWAPOracle
# ---------------------------------------------------------------------------

class OracleHook:
    """
    Oracle attached to a single pool through its hook interface.

    Read operations are delegated to the underlying TWAPOracle so consumers
    can query the hook directly.
    """

    def __init__(self, oracle: Optional[TWAPOracle] = None):
        self.oracle = oracle if oracle is not None else TWAPOracle()
        self.pool_id: Optional[str] = None
        self.token_x: Optional[str] = None
        self.token_y: Optional[str] = None

    @property
    def flags(self) -> HookFlags:
        return HookFlags.AFTER_INSTANTIATE | HookFlags.AFTER_SWAP

    def on_after_instantiate(self, ctx: HookContext) -> HookResult:
        if self.pool_id is not None and self.pool_id != ctx.pool_id:
            return HookResult(
                allow=False,
                reason=f"Oracle already bound to pool {self.pool_id}",
            )
        self.pool_id = ctx.pool_id
        self.token_x = ctx.token_x
        self.token_y = ctx.token_y
        if not self.oracle.pool_id:
            self.oracle.pool_id = ctx.pool_id
        logger.debug(
            "[ORACLE HOOK] Bound to pool %s (%s/%s), stored=%d",
            ctx.pool_id, ctx.token_x, ctx.token_y, self.oracle.observations_stored(),
        )
        return HookResult(allow=True)

    def on_after_swap(self, ctx: HookContext) -> HookResult:
        if self.pool_id is not None and ctx.pool_id != self.pool_id:
            return HookResult(
                allow=False,
                reason=f"Swap from pool {ctx.pool_id} reported to oracle of {self.pool_id}",
            )
        if ctx.price_sqrt is None:
            return HookResult(allow=False, reason="Swap context carries no price_sqrt")
        self.oracle.record_trade(ctx.price_sqrt, ctx.timestamp)
        return HookResult(allow=True)

    # -- Read API -----------------------------------------------------------

    def observation(self, seconds: int) -> AccumulatedObservation:
        return self.oracle.observation(seconds)

    def observation_intervals(
        self, intervals: List[Tuple[int, int]], strict: bool = False
    ) -> List[ObservationInterval]:
        return self.oracle.observation_intervals(intervals, strict=strict)

    def observations_limit(self) -> int:
        return self.oracle.observations_limit()

    def observations_stored(self) -> int:
        return self.oracle.observations_stored()

    def oldest_observation_at(self) -> Optional[int]:
        return self.oracle.oldest_observation_at()

    def last_observation_index(self) -> Optional[int]:
        return self.oracle.last_observation_index()
