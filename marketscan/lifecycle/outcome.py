"""Risk-multiple and outcome calculations, pure functions.

Stop-loss closes always book exactly -1R and timeouts exactly 0R,
whatever the actual fill or mark price.  Only take-profit hits derive
the multiple from price.
"""

import logging
from datetime import datetime

from marketscan.lifecycle.models import (
    BREAKEVEN,
    HIT_SL,
    HIT_TIMEOUT,
    LONG,
    LOSS,
    TIMEOUT,
    WIN,
    OutcomeDetail,
)

logger = logging.getLogger("marketscan.outcome")

SL_RISK_MULTIPLE = -1.0
TIMEOUT_RISK_MULTIPLE = 0.0


def calculate_risk_multiple(
    direction: str,
    entry: float,
    stop_loss: float,
    hit: str,
    hit_price: float,
) -> float:
    """R-multiple of a close of kind *hit* at *hit_price*.

    A zero risk unit (entry equal to stop) yields 0 and logs a warning.
    """
    risk_unit = abs(entry - stop_loss)
    if risk_unit == 0:
        logger.warning(
            "Zero risk unit (entry=%s stop_loss=%s), R-multiple forced to 0",
            entry, stop_loss,
        )
        return 0.0

    if hit == HIT_SL:
        return SL_RISK_MULTIPLE
    if hit == HIT_TIMEOUT:
        return TIMEOUT_RISK_MULTIPLE
    if not hit.startswith("tp"):
        raise ValueError(f"Unknown hit kind: {hit!r}")

    if direction == LONG:
        return (hit_price - entry) / risk_unit
    return (entry - hit_price) / risk_unit


def determine_outcome(hit: str, risk_multiple: float) -> str:
    """Map a hit kind and R-multiple onto a terminal outcome."""
    if hit == HIT_SL:
        return LOSS
    if hit == HIT_TIMEOUT:
        return TIMEOUT
    if risk_multiple > 0:
        return WIN
    if risk_multiple == 0:
        return BREAKEVEN
    logger.warning("Take-profit %s closed at negative R %.2f", hit, risk_multiple)
    return LOSS


def build_outcome_detail(
    hit: str, risk_multiple: float, hit_price: float, hit_time: datetime
) -> OutcomeDetail:
    return OutcomeDetail(
        hit=hit,
        risk_multiple=round(risk_multiple, 2),
        hit_price=hit_price,
        hit_time=hit_time,
    )
