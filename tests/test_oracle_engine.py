"""
Test suite for the Minute TWAP Oracle engine

Covers:
  1  Fixed-point ln / exp primitives
  2  Minute accumulator
  3  Observation ring
  4  Query engine (interpolation, geometric means)
  5  TWAPOracle facade
  +  Accumulation properties (exact match, capacity, averaging,
     idle extrapolation, interval round-trip, range, ordering)
"""

import decimal
import logging
import math
import random
from decimal import Decimal

import pytest

from minute_oracle.constants import DECIMAL_MAX, OBSERVATIONS_LIMIT
from minute_oracle.exceptions import (
    ArithmeticOverflow,
    EmptyOracle,
    InvalidInterval,
    InvalidPrice,
    InvalidTimestamp,
    OracleException,
    OutOfOrderTimestamp,
    OutOfRange,
)
from minute_oracle.twap import fixed_point as fp
from minute_oracle.twap.accumulator import MinuteAccumulator
from minute_oracle.twap.models import Observation
from minute_oracle.twap.oracle import TWAPOracle
from minute_oracle.twap.query import QueryEngine, geometric_mean, linear_interpolation
from minute_oracle.twap.ring import ObservationRing

# Minute-aligned unix time (2023-11-14)
BASE = 28_333_333 * 60


def minute(n: int) -> int:
    return BASE + 60 * n


def weighted_average(pairs, duration):
    """Expected per-minute average from (price, seconds) pairs."""
    total = fp.ZERO
    for price, seconds in pairs:
        total = fp.add(total, fp.mul(fp.ln(Decimal(price)), seconds))
    return fp.div(total, duration)


# ============================================================================
#  §1  FIXED-POINT PRIMITIVES
# ============================================================================

class TestFixedPoint:
    """Deterministic ln / exp over 18-digit fixed point."""

    def test_ln_of_one_is_zero(self):
        assert fp.ln(Decimal("1")) == Decimal("0")

    def test_ln_has_eighteen_digits(self):
        assert fp.ln(Decimal("2")).as_tuple().exponent == -18

    def test_ln_truncates_toward_negative_infinity(self):
        precise = decimal.Context(prec=100)
        for x in (Decimal("0.5"), Decimal("2"), Decimal("3.7"), Decimal("1e-10")):
            exact = precise.ln(x)
            value = fp.ln(x)
            assert value <= exact
            assert exact - value < Decimal("1e-18")

    def test_ln_rejects_non_positive(self):
        with pytest.raises(InvalidPrice):
            fp.ln(Decimal("0"))

    def test_exp_of_zero_is_one(self):
        assert fp.exp(Decimal("0")) == Decimal("1")

    def test_exp_inverts_ln(self):
        assert abs(fp.exp(fp.ln(Decimal("2"))) - Decimal("2")) < Decimal("1e-17")

    def test_exp_overflow_detected(self):
        with pytest.raises(ArithmeticOverflow):
            fp.exp(Decimal("100"))

    def test_exp_underflows_to_zero(self):
        assert fp.exp(Decimal("-1000")) == Decimal("0")

    def test_checked_rejects_out_of_range(self):
        with pytest.raises(ArithmeticOverflow):
            fp.checked(fp.CONTEXT.add(DECIMAL_MAX, 1))
        with pytest.raises(ArithmeticOverflow):
            fp.checked(fp.CONTEXT.minus(fp.CONTEXT.add(DECIMAL_MAX, 1)))

    def test_checked_rejects_one_unit_past_bound(self):
        assert fp.checked(DECIMAL_MAX) == DECIMAL_MAX
        assert fp.checked(fp.CONTEXT.minus(DECIMAL_MAX)) == fp.CONTEXT.minus(DECIMAL_MAX)
        just_past = fp.CONTEXT.add(DECIMAL_MAX, fp.QUANTUM)
        with pytest.raises(ArithmeticOverflow):
            fp.checked(just_past)
        with pytest.raises(ArithmeticOverflow):
            fp.checked(fp.CONTEXT.minus(just_past))

    def test_bound_is_exact(self):
        assert DECIMAL_MAX == Decimal("3138550867693340381917894711603833208051.177722232017256447")
        assert DECIMAL_MAX.as_tuple().exponent == -18
        assert DECIMAL_MAX.scaleb(18, context=fp.CONTEXT) == Decimal(2**191 - 1)

    def test_independent_of_caller_context(self):
        expected = fp.ln(Decimal("7"))
        with decimal.localcontext() as ctx:
            ctx.prec = 5
            ctx.rounding = decimal.ROUND_UP
            assert fp.ln(Decimal("7")) == expected

    def test_overflow_detected_under_coarse_caller_context(self):
        too_large = fp.CONTEXT.multiply(DECIMAL_MAX, Decimal("1.001"))
        just_past = fp.CONTEXT.add(DECIMAL_MAX, fp.QUANTUM)
        with decimal.localcontext() as ctx:
            ctx.prec = 2
            ctx.rounding = decimal.ROUND_DOWN
            with pytest.raises(ArithmeticOverflow):
                fp.add(too_large, Decimal("0"))
            with pytest.raises(ArithmeticOverflow):
                fp.checked(fp.CONTEXT.minus(just_past))
            with pytest.raises(InvalidPrice):
                fp.to_price_sqrt(just_past)
            assert fp.add(DECIMAL_MAX, Decimal("0")) == DECIMAL_MAX

    def test_price_sqrt_from_float_uses_decimal_text(self):
        assert fp.to_price_sqrt(1.1) == Decimal("1.1")

    def test_price_sqrt_accepts_str_and_int(self):
        assert fp.to_price_sqrt("2.5") == Decimal("2.5")
        assert fp.to_price_sqrt(3) == Decimal("3")

    @pytest.mark.parametrize("bad", [0, -1, "0", "abc", "nan", "inf", float("nan"), True, None])
    def test_price_sqrt_rejects_invalid(self, bad):
        with pytest.raises(InvalidPrice):
            fp.to_price_sqrt(bad)

    def test_price_sqrt_below_resolution_rejected(self):
        with pytest.raises(InvalidPrice):
            fp.to_price_sqrt(Decimal("1e-40"))


# ============================================================================
#  §2  MINUTE ACCUMULATOR
# ============================================================================

class TestMinuteAccumulator:
    """Time-weighted log-price per minute and rollover."""

    def test_first_trade_seeds_without_observation(self):
        acc = MinuteAccumulator()
        assert acc.record_trade(Decimal("2"), minute(0) + 15) is None
        assert acc.started
        assert acc.current_minute == minute(0)
        assert acc.last_trade_second == 15
        assert acc.price_sqrt_log_acc == Decimal("0")

    def test_same_minute_trades_return_nothing(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("2"), minute(0) + 10)
        assert acc.record_trade(Decimal("3"), minute(0) + 40) is None
        assert acc.weighted_log_sum == fp.mul(fp.ln(Decimal("2")), 30)
        assert acc.last_price_sqrt == Decimal("3")
        assert acc.last_trade_second == 40

    def test_rollover_stamps_new_minute(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("2"), minute(0))
        obs = acc.record_trade(Decimal("2"), minute(1) + 5)
        assert obs == Observation(minute(1), fp.ln(Decimal("2")))
        assert acc.current_minute == minute(1)

    def test_same_minute_averaging_after_first_minute(self):
        p0, p1, p2, p3 = "1.5", "2", "3", "4"
        acc = MinuteAccumulator()
        acc.record_trade(Decimal(p0), minute(0))
        acc.record_trade(Decimal(p1), minute(1) + 10)
        acc.record_trade(Decimal(p2), minute(1) + 20)
        acc.record_trade(Decimal(p3), minute(1) + 50)
        obs = acc.record_trade(Decimal(p0), minute(2))

        # Previous price holds until the first trade of the minute
        expected_avg = weighted_average([(p0, 10), (p1, 10), (p2, 30), (p3, 10)], 60)
        assert obs.price_sqrt_log_acc == fp.add(fp.ln(Decimal(p0)), expected_avg)

    def test_first_minute_averaged_over_observed_seconds(self):
        p1, p2, p3 = "2", "3", "4"
        acc = MinuteAccumulator()
        acc.record_trade(Decimal(p1), minute(0) + 10)
        acc.record_trade(Decimal(p2), minute(0) + 20)
        acc.record_trade(Decimal(p3), minute(0) + 50)
        obs = acc.record_trade(Decimal(p1), minute(1))

        expected = weighted_average([(p1, 10), (p2, 30), (p3, 10)], 50)
        assert obs.price_sqrt_log_acc == expected

    def test_same_second_keeps_last_price_only(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("2"), minute(0))
        acc.record_trade(Decimal("100"), minute(0) + 30)
        acc.record_trade(Decimal("3"), minute(0) + 30)
        obs = acc.record_trade(Decimal("3"), minute(1))
        assert obs.price_sqrt_log_acc == weighted_average([("2", 30), ("3", 30)], 60)

    def test_idle_minutes_extrapolate_last_price(self):
        price = Decimal("1.25")
        acc = MinuteAccumulator()
        acc.record_trade(price, minute(0))
        obs = acc.record_trade(Decimal("9"), minute(5) + 7)
        assert obs.timestamp_minute == minute(5)
        # minute-0 contribution plus 4 idle minutes at the same price
        assert obs.price_sqrt_log_acc == fp.mul(fp.ln(price), 5)
        assert acc.weighted_log_sum == fp.mul(fp.ln(price), 7)

    def test_idle_extrapolation_uses_last_trade_not_average(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("2"), minute(0))
        acc.record_trade(Decimal("4"), minute(0) + 30)
        obs = acc.record_trade(Decimal("1"), minute(3))
        expected = fp.add(
            weighted_average([("2", 30), ("4", 30)], 60),
            fp.mul(fp.ln(Decimal("4")), 2),
        )
        assert obs.price_sqrt_log_acc == expected

    def test_accumulator_keeps_running_sum(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("2"), minute(0))
        first = acc.record_trade(Decimal("3"), minute(1))
        second = acc.record_trade(Decimal("3"), minute(2))
        assert second.price_sqrt_log_acc == fp.add(first.price_sqrt_log_acc, fp.ln(Decimal("3")))

    def test_price_below_one_contributes_negative_log(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("0.5"), minute(0))
        obs = acc.record_trade(Decimal("0.5"), minute(1))
        assert obs.price_sqrt_log_acc < 0

    def test_earlier_minute_rejected(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("2"), minute(3))
        with pytest.raises(OutOfOrderTimestamp):
            acc.record_trade(Decimal("2"), minute(2) + 59)

    def test_earlier_second_in_same_minute_rejected(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("2"), minute(0) + 30)
        with pytest.raises(OutOfOrderTimestamp):
            acc.record_trade(Decimal("2"), minute(0) + 29)

    def test_rejected_trade_leaves_state_untouched(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("2"), minute(0) + 10)
        acc.record_trade(Decimal("3"), minute(0) + 20)
        snapshot = dict(vars(acc))
        with pytest.raises(OutOfOrderTimestamp):
            acc.record_trade(Decimal("5"), minute(0) + 5)
        with pytest.raises(InvalidPrice):
            acc.record_trade(Decimal("-5"), minute(0) + 30)
        assert vars(acc) == snapshot

    @pytest.mark.parametrize("bad", [-1, 1.5, "60", None, True])
    def test_invalid_timestamp_rejected(self, bad):
        acc = MinuteAccumulator()
        with pytest.raises(InvalidTimestamp):
            acc.record_trade(Decimal("2"), bad)

    def test_overflow_detected_before_mutation(self):
        acc = MinuteAccumulator()
        acc.record_trade(Decimal("1e30"), 0)
        snapshot = dict(vars(acc))
        with pytest.raises(ArithmeticOverflow):
            acc.record_trade(Decimal("1"), 60 * 10**38)
        assert vars(acc) == snapshot


# ============================================================================
#  §3  OBSERVATION RING
# ============================================================================

def _obs(ts: int, acc: str = "0") -> Observation:
    return Observation(timestamp_minute=ts, price_sqrt_log_acc=Decimal(acc))


def _filled_ring(capacity, timestamps):
    ring = ObservationRing(capacity)
    for i, ts in enumerate(timestamps):
        ring.insert(_obs(ts, str(i)))
    return ring


class TestObservationRing:
    """Circular buffer ordering, eviction and wraparound search."""

    def test_empty_ring(self):
        ring = ObservationRing(4)
        assert ring.count == 0
        assert ring.oldest() is None
        assert ring.newest() is None
        assert ring.last_index() is None
        with pytest.raises(EmptyOracle):
            ring.find_bounds(60)

    def test_default_capacity(self):
        assert ObservationRing().capacity == OBSERVATIONS_LIMIT == 65535

    @pytest.mark.parametrize("capacity", [0, -1, 65536])
    def test_invalid_capacity(self, capacity):
        with pytest.raises(ValueError):
            ObservationRing(capacity)

    def test_insert_before_wrap(self):
        ring = _filled_ring(5, [60, 120, 180])
        assert ring.count == 3
        assert ring.write_index == 3
        assert ring.oldest().timestamp_minute == 60
        assert ring.newest().timestamp_minute == 180
        assert ring.last_index() == 2

    def test_overwrites_oldest_when_full(self):
        ring = _filled_ring(5, [60 * i for i in range(1, 8)])
        assert ring.count == 5
        assert ring.write_index == 2
        assert ring.last_index() == 1
        assert [o.timestamp_minute for o in ring] == [180, 240, 300, 360, 420]
        assert ring.oldest().timestamp_minute == 180
        assert ring.newest().timestamp_minute == 420

    def test_eviction_logged_once(self, caplog):
        with caplog.at_level(logging.INFO, logger="minute_oracle.twap.ring"):
            _filled_ring(3, [60 * i for i in range(1, 11)])
        evictions = [r for r in caplog.records if "evicting oldest" in r.getMessage()]
        assert len(evictions) == 1
        assert "evicting oldest at 60" in evictions[0].getMessage()

    def test_logical_indexing(self):
        ring = _filled_ring(3, [60, 120, 180, 240])
        assert ring[0].timestamp_minute == 120
        assert ring[-1].timestamp_minute == 240
        with pytest.raises(IndexError):
            ring[3]

    def test_rejects_non_increasing_insert(self):
        ring = _filled_ring(3, [60, 120])
        with pytest.raises(OutOfOrderTimestamp):
            ring.insert(_obs(120))
        with pytest.raises(OutOfOrderTimestamp):
            ring.insert(_obs(60))
        assert ring.count == 2
        assert ring.write_index == 2

    def test_find_bounds_exact_match(self):
        ring = _filled_ring(5, [60, 180, 300])
        left, right = ring.find_bounds(180)
        assert left is right
        assert left.timestamp_minute == 180

    def test_find_bounds_edges(self):
        ring = _filled_ring(5, [60, 180, 300])
        assert ring.find_bounds(60)[0].timestamp_minute == 60
        assert ring.find_bounds(300)[1].timestamp_minute == 300

    def test_find_bounds_brackets_gap(self):
        ring = _filled_ring(5, [60, 180, 300, 600])
        left, right = ring.find_bounds(420)
        assert (left.timestamp_minute, right.timestamp_minute) == (300, 600)

    def test_find_bounds_after_wraparound(self):
        timestamps = [60, 180, 300, 600, 900, 1200, 1500]
        ring = _filled_ring(5, timestamps)
        # Logical order [300, 600, 900, 1200, 1500] spans the physical wrap
        for target, expected in [
            (360, (300, 600)),
            (660, (600, 900)),
            (960, (900, 1200)),
            (1260, (1200, 1500)),
        ]:
            left, right = ring.find_bounds(target)
            assert (left.timestamp_minute, right.timestamp_minute) == expected
        for ts in timestamps[2:]:
            left, right = ring.find_bounds(ts)
            assert left is right and left.timestamp_minute == ts

    def test_find_bounds_out_of_range(self):
        ring = _filled_ring(3, [60, 120, 180, 240])
        with pytest.raises(OutOfRange, match="not in range"):
            ring.find_bounds(60)
        with pytest.raises(OutOfRange):
            ring.find_bounds(300)

    def test_single_observation(self):
        ring = _filled_ring(1, [60, 120])
        assert ring.count == 1
        assert ring.find_bounds(120)[0].timestamp_minute == 120
        with pytest.raises(OutOfRange):
            ring.find_bounds(60)

    def test_full_capacity_evicts_first_k(self):
        k = 3
        ring = ObservationRing()
        for i in range(OBSERVATIONS_LIMIT + k):
            ring.insert(_obs(60 * (i + 1)))
        assert ring.count == OBSERVATIONS_LIMIT
        # The first k inserted observations are gone
        assert ring.oldest().timestamp_minute == 60 * (k + 1)
        assert ring.newest().timestamp_minute == 60 * (OBSERVATIONS_LIMIT + k)
        assert ring.last_index() == k - 1
        target = 60 * (OBSERVATIONS_LIMIT // 2)
        assert ring.find_bounds(target)[0].timestamp_minute == target


# ============================================================================
#  §4  QUERY ENGINE
# ============================================================================

class TestQueryEngine:
    """Interpolation and geometric means over the ring."""

    def test_linear_interpolation(self):
        y = linear_interpolation(10, 14, Decimal("1"), Decimal("3"), 11)
        assert y == Decimal("1.5")

    def test_interpolation_truncates_slope(self):
        # slope = 1/3 truncated to 18 digits, times 2
        y = linear_interpolation(0, 3, Decimal("0"), Decimal("1"), 2)
        assert y == Decimal("0.666666666666666666")

    def test_geometric_mean(self):
        ln4 = fp.ln(Decimal("4"))
        value = geometric_mean(0, 3, Decimal("0"), fp.mul(ln4, 3))
        assert abs(value - Decimal("4")) < Decimal("1e-16")

    def test_point_query_interpolates(self):
        ring = ObservationRing(10)
        ring.insert(_obs(minute(1), "1"))
        ring.insert(_obs(minute(5), "9"))
        engine = QueryEngine(ring)
        obs = engine.observation(minute(2) + 45)
        assert obs.timestamp_minute == minute(2)
        assert obs.price_sqrt_log_acc == Decimal("3")

    def test_point_query_exact_returns_stored(self):
        ring = ObservationRing(10)
        stored = _obs(minute(1), "1.25")
        ring.insert(stored)
        ring.insert(_obs(minute(2), "2"))
        assert QueryEngine(ring).observation(minute(1) + 59) is stored

    def test_queries_do_not_mutate(self):
        ring = _filled_ring(4, [minute(1), minute(3)])
        engine = QueryEngine(ring)
        before = (ring.count, ring.write_index, list(ring))
        engine.observation(minute(2))
        engine.observation_intervals([(minute(1), minute(3)), (minute(0), minute(3))])
        assert (ring.count, ring.write_index, list(ring)) == before

    def test_empty_raises(self):
        engine = QueryEngine(ObservationRing(4))
        with pytest.raises(EmptyOracle):
            engine.observation(minute(1))
        with pytest.raises(EmptyOracle):
            engine.observation_intervals([(minute(1), minute(2))])


# ============================================================================
#  §5  TWAP ORACLE FACADE
# ============================================================================

def _stepped_oracle(**kwargs) -> TWAPOracle:
    """
    Price 2 during minute 0, then 4 from minute 1 on; trades at minutes 0, 1, 4.
    Stored: minute 1 (acc ln2) and minute 4 (acc ln2 + 3 ln4).
    """
    oracle = TWAPOracle(pool_id="TEST:POOL", **kwargs)
    oracle.record_trade(Decimal("2"), minute(0))
    oracle.record_trade(Decimal("4"), minute(1))
    oracle.record_trade(Decimal("4"), minute(4))
    return oracle


class TestTWAPOracle:
    """Boundary operations."""

    def test_limits(self):
        oracle = TWAPOracle()
        assert oracle.observations_limit() == 65535
        assert oracle.observations_stored() == 0
        assert oracle.oldest_observation_at() is None
        assert oracle.last_observation_index() is None

    def test_record_returns_stored_observation(self):
        oracle = TWAPOracle()
        assert oracle.record_trade("2", minute(0) + 3) is None
        obs = oracle.record_trade("2", minute(1) + 3)
        assert obs.timestamp_minute == minute(1)
        assert oracle.observations_stored() == 1
        assert oracle.oldest_observation_at() == minute(1)
        assert oracle.newest_observation_at() == minute(1)
        assert oracle.last_observation_index() == 0
        assert oracle.latest_price_sqrt == Decimal("2")

    def test_query_before_first_observation(self):
        oracle = TWAPOracle()
        oracle.record_trade("2", minute(0))
        with pytest.raises(EmptyOracle):
            oracle.observation(minute(0))

    def test_point_queries(self):
        oracle = _stepped_oracle()
        ln2, ln4 = fp.ln(Decimal("2")), fp.ln(Decimal("4"))
        assert oracle.observation(minute(1)).price_sqrt_log_acc == ln2
        assert oracle.observation(minute(4) + 30).price_sqrt_log_acc == fp.add(ln2, fp.mul(ln4, 3))
        assert oracle.observation(minute(2)).price_sqrt_log_acc == fp.add(ln2, ln4)

    def test_interval_geometric_mean(self):
        oracle = _stepped_oracle()
        [result] = oracle.observation_intervals([(minute(1) + 59, minute(4) + 30)])
        assert result.ok
        assert (result.start, result.end) == (minute(1), minute(4))
        assert abs(result.price_sqrt_avg - Decimal("4")) < Decimal("1e-16")

    def test_interval_order_preserved_and_partial(self):
        oracle = _stepped_oracle()
        results = oracle.observation_intervals([
            (minute(1), minute(4)),
            (minute(0), minute(4)),
            (minute(2), minute(2) + 30),
            (minute(1), minute(3)),
        ])
        assert len(results) == 4
        assert results[0].ok and results[3].ok
        assert isinstance(results[1].error, OutOfRange)
        assert results[1].price_sqrt_avg is None
        assert isinstance(results[2].error, InvalidInterval)

    def test_interval_strict_raises(self):
        oracle = _stepped_oracle()
        with pytest.raises(OutOfRange):
            oracle.observation_intervals([(minute(1), minute(4)), (minute(0), minute(4))], strict=True)
        with pytest.raises(InvalidInterval):
            oracle.observation_intervals([(minute(4), minute(1))], strict=True)

    def test_small_limit_evicts(self):
        oracle = TWAPOracle(observations_limit=3)
        for i in range(6):
            oracle.record_trade("1.5", minute(i))
        assert oracle.observations_stored() == 3
        assert oracle.oldest_observation_at() == minute(3)
        assert oracle.last_observation_index() == 1
        with pytest.raises(OutOfRange):
            oracle.observation(minute(2))

    def test_get_observations(self):
        oracle = TWAPOracle()
        for i in range(5):
            oracle.record_trade("1.5", minute(i))
        recent = oracle.get_observations(2)
        assert [o.timestamp_minute for o in recent] == [minute(3), minute(4)]

    def test_rejected_trade_does_not_store(self):
        oracle = _stepped_oracle()
        stored = oracle.observations_stored()
        with pytest.raises(OutOfOrderTimestamp):
            oracle.record_trade("4", minute(3))
        assert oracle.observations_stored() == stored

    def test_overflow_leaves_oracle_unchanged(self):
        oracle = TWAPOracle()
        oracle.record_trade(Decimal("1e30"), 0)
        with pytest.raises(ArithmeticOverflow):
            oracle.record_trade(Decimal("1"), 60 * 10**38)
        assert oracle.observations_stored() == 0

    def test_errors_share_base_class(self):
        oracle = TWAPOracle()
        with pytest.raises(OracleException):
            oracle.observation(minute(0))
        with pytest.raises(LookupError):
            oracle.observation(minute(0))


# ============================================================================
#  PROPERTIES
# ============================================================================

class TestAccumulationProperties:
    """End-to-end properties of the oracle."""

    def _random_oracle(self, seed: int, trades: int = 400, limit: int = OBSERVATIONS_LIMIT):
        rng = random.Random(seed)
        oracle = TWAPOracle(observations_limit=limit)
        t = BASE + rng.randrange(60)
        for _ in range(trades):
            price = Decimal(rng.randint(1, 10_000)) / Decimal(1000)
            oracle.record_trade(price, t)
            t += rng.choice([0, 0, 1, 7, 30, 59, 60, 61, 125, 600])
        return oracle

    def test_exact_match_property(self):
        oracle = self._random_oracle(seed=1)
        for stored in oracle.get_observations(oracle.observations_stored()):
            assert oracle.observation(stored.timestamp_minute).price_sqrt_log_acc == stored.price_sqrt_log_acc

    def test_monotonic_insertion_order(self):
        for seed in range(5):
            oracle = self._random_oracle(seed=seed, limit=50)
            stamps = [o.timestamp_minute for o in oracle.get_observations(oracle.observations_stored())]
            assert stamps == sorted(set(stamps))
            assert all(ts % 60 == 0 for ts in stamps)

    def test_out_of_range_rejection(self):
        oracle = self._random_oracle(seed=3, limit=20)
        oldest = oracle.oldest_observation_at()
        newest = oracle.newest_observation_at()
        with pytest.raises(OutOfRange):
            oracle.observation(oldest - 1)
        with pytest.raises(OutOfRange):
            oracle.observation(newest + 60)
        # Inside the range every minute resolves
        for ts in range(oldest, newest + 1, 60):
            assert oracle.observation(ts).timestamp_minute == ts

    def test_interval_matches_direct_recomputation(self):
        """Geometric mean from the accumulator equals the mean of per-minute log averages."""
        seconds = [5, 25, 45]
        prices = {
            i: [1.0 + 0.1 * i, 2.0 - 0.05 * i, 1.5 + 0.02 * i * i]
            for i in range(10)
        }

        oracle = TWAPOracle()
        for i in range(10):
            for s, p in zip(seconds, prices[i]):
                oracle.record_trade(str(p), minute(i) + s)
        oracle.record_trade("1", minute(10))

        per_minute_log = {}
        previous = None
        for i in range(10):
            a, b, c = (math.log(p) for p in prices[i])
            if previous is None:
                per_minute_log[i] = (20 * a + 20 * b + 15 * c) / 55
            else:
                per_minute_log[i] = (5 * previous + 20 * a + 20 * b + 15 * c) / 60
            previous = c

        for start, end in [(2, 7), (1, 10), (4, 5), (3, 9)]:
            [result] = oracle.observation_intervals([(minute(start), minute(end))], strict=True)
            expected = math.exp(sum(per_minute_log[i] for i in range(start, end)) / (end - start))
            assert abs(float(result.price_sqrt_avg) - expected) < 1e-12

    def test_constant_price_gives_that_price(self):
        oracle = TWAPOracle()
        for i in range(0, 30, 3):
            oracle.record_trade("1.7", minute(i) + 13)
        [result] = oracle.observation_intervals([(minute(3), minute(27))], strict=True)
        assert abs(result.price_sqrt_avg - Decimal("1.7")) < Decimal("1e-15")

    def test_capacity_property_through_trades(self):
        limit, k = 8, 3
        oracle = TWAPOracle(observations_limit=limit)
        # limit + k observations need limit + k + 1 trades
        for i in range(limit + k + 1):
            oracle.record_trade("2", minute(i))
        assert oracle.observations_stored() == limit
        # Observations start at minute 1; the first k are evicted
        assert oracle.oldest_observation_at() == minute(k + 1)
