"""Trade proposal validation (pure function, no I/O)."""

import math
from typing import Optional

from marketscan.decision.base import TradeProposal
from marketscan.errors import ProposalValidationError
from marketscan.lifecycle.models import DIRECTIONS, LONG

MAX_TAKE_PROFITS = 3


def _positive(value) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value > 0


def validate_proposal(
    proposal: TradeProposal,
    atr: Optional[float] = None,
    min_atr_multiple: float = 0.5,
    max_atr_multiple: float = 3.0,
) -> None:
    """Check *proposal* for internal consistency.

    Collects every violated rule and raises ``ProposalValidationError``
    carrying all of them.  The stop distance is only checked against ATR
    when a positive *atr* is given.
    """
    violations: list[str] = []

    if proposal.direction not in DIRECTIONS:
        violations.append(
            f"Invalid direction: {proposal.direction!r}. Must be one of: long, short"
        )
        raise ProposalValidationError(violations)

    is_long = proposal.direction == LONG
    entry, stop = proposal.entry, proposal.stop_loss
    tps = list(proposal.take_profits)

    if not _positive(entry):
        violations.append("Entry must be a positive number")
    if not _positive(stop):
        violations.append("Stop loss must be a positive number")
    if violations:
        raise ProposalValidationError(violations)

    if is_long and entry <= stop:
        violations.append("For long trades, entry must be above stop_loss")
    if not is_long and entry >= stop:
        violations.append("For short trades, entry must be below stop_loss")

    if not tps:
        violations.append("Take profits must have at least one target")
    if len(tps) > MAX_TAKE_PROFITS:
        violations.append(f"Take profits must have at most {MAX_TAKE_PROFITS} targets")
    for i, tp in enumerate(tps):
        if not _positive(tp):
            violations.append(f"Take profit {i + 1} must be a positive number")

    if is_long:
        if any(tp <= entry for tp in tps):
            violations.append("For long trades, all take profits must be above entry")
        if any(b <= a for a, b in zip(tps, tps[1:])):
            violations.append("For long trades, take profits must be in ascending order")
    else:
        if any(tp >= entry for tp in tps):
            violations.append("For short trades, all take profits must be below entry")
        if any(b >= a for a, b in zip(tps, tps[1:])):
            violations.append("For short trades, take profits must be in descending order")

    if atr and atr > 0:
        multiple = abs(entry - stop) / atr
        if multiple < min_atr_multiple:
            violations.append(
                f"SL distance too tight: {multiple:.2f} ATR < {min_atr_multiple} ATR minimum"
            )
        if multiple > max_atr_multiple:
            violations.append(
                f"SL distance too wide: {multiple:.2f} ATR > {max_atr_multiple} ATR maximum"
            )

    if not isinstance(proposal.confidence, (int, float)) or not (
        0.0 <= proposal.confidence <= 1.0
    ):
        violations.append("Confidence must be a number between 0 and 1")
    if not proposal.reason or not proposal.reason.strip():
        violations.append("Reason is required and must be a non-empty string")

    if violations:
        raise ProposalValidationError(violations)
