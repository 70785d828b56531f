"""Tick-range math for concentrated-liquidity positions. No I/O."""

from decimal import Decimal, getcontext

from battle_agent.models import PositionAnalysis

getcontext().prec = 40

Q96 = Decimal(2**96)


def is_in_range(tick: int, tick_lower: int, tick_upper: int) -> bool:
    """Lower bound inclusive, upper bound exclusive."""
    return tick_lower <= tick < tick_upper


def analyze_position(tick: int, tick_lower: int, tick_upper: int) -> PositionAnalysis:
    range_width = tick_upper - tick_lower
    range_mid = tick_lower + range_width / 2
    tick_distance = abs(tick - range_mid)

    # 0 = at the lower bound, 1 = at the upper bound
    if range_width > 0:
        position_in_range = (tick - tick_lower) / range_width
        position_in_range = max(0.0, min(1.0, position_in_range))
    else:
        position_in_range = 0.0

    return PositionAnalysis(
        in_range=is_in_range(tick, tick_lower, tick_upper),
        tick_distance=tick_distance,
        range_width=range_width,
        position_in_range=position_in_range,
    )


def sqrt_price_to_price(sqrt_price_x96: int, decimals0: int = 18, decimals1: int = 18) -> float:
    """Derive the token1/token0 price from sqrtPriceX96.

    Formula: price = (sqrtPriceX96 / 2^96)^2 * 10^(decimals0 - decimals1)
    Display and scoring only.
    """
    sqrt_price = Decimal(sqrt_price_x96) / Q96
    return float(sqrt_price**2 * Decimal(10) ** (decimals0 - decimals1))


def tick_to_price(tick: int, decimals0: int = 18, decimals1: int = 18) -> float:
    """Formula: price = 1.0001^tick * 10^(decimals0 - decimals1)"""
    return float(Decimal("1.0001") ** tick * Decimal(10) ** (decimals0 - decimals1))
