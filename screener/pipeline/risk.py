"""Position sizing — pure math, no I/O.

Calculates how many shares to buy from account capital, risk percentage
and the stop-loss distance, capped by the maximum share of capital a
single position may use.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class PositionSizing:
    """Sized long position for one entry/stop pair."""

    shares: int
    position_value: float
    risk_per_share: float
    target: float
    potential_profit: float
    potential_loss: float
    capital_used_pct: float
    is_capped: bool


def calculate_position_size(
    capital: float,
    risk_pct: float,
    entry_price: float,
    stop_loss: float,
    max_capital_risk: float = 8.0,
    risk_reward: float = 2.0,
) -> PositionSizing:
    """Calculate a whole-share position size.

    Formula::

        risk_amount    = capital × (risk_pct / 100)
        risk_per_share = entry − stop_loss
        shares         = floor(risk_amount / risk_per_share)

    If ``shares × entry`` exceeds ``max_capital_risk`` % of capital the
    position is capped at ``floor(max_position / entry)`` shares.

    Args:
        capital: Account capital (e.g. 1_000_000.0).
        risk_pct: Percentage of capital to risk on the trade (e.g. 1.5).
        entry_price: Planned entry price.
        stop_loss: Stop-loss price, below entry.
        max_capital_risk: Largest share of capital one position may use, in %.
        risk_reward: Reward multiple used for the target price.

    Raises:
        ValueError: If any amount is non-positive or the stop is not below entry.
    """
    if capital <= 0:
        raise ValueError(f"capital must be positive, got {capital}")
    if risk_pct <= 0:
        raise ValueError(f"risk_pct must be positive, got {risk_pct}")
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")
    if max_capital_risk <= 0:
        raise ValueError(f"max_capital_risk must be positive, got {max_capital_risk}")
    if stop_loss >= entry_price:
        raise ValueError(f"stop_loss ({stop_loss}) must be below entry_price ({entry_price})")

    risk_amount = capital * (risk_pct / 100.0)
    risk_per_share = entry_price - stop_loss

    shares = math.floor(risk_amount / risk_per_share)
    max_position = capital * (max_capital_risk / 100.0)
    is_capped = shares * entry_price > max_position
    if is_capped:
        shares = math.floor(max_position / entry_price)

    position_value = shares * entry_price
    target = entry_price + risk_per_share * risk_reward

    return PositionSizing(
        shares=shares,
        position_value=round(position_value, 2),
        risk_per_share=round(risk_per_share, 2),
        target=round(target, 2),
        potential_profit=round(shares * (target - entry_price), 2),
        potential_loss=round(shares * risk_per_share, 2),
        capital_used_pct=round(position_value / capital * 100.0, 2),
        is_capped=is_capped,
    )
