"""
RiskGate - projected exposure ceiling for a single intent.

The check runs against the brokerage's shared account position, not a
per-agent sub-ledger, so one agent's fills consume another's headroom.
Unfilled orders and other agents' intents this tick are not counted.
"""
import logging

from ..schemas import OrderIntent, RiskCheckResult

logger = logging.getLogger("arena_trader.engine.risk_gate")

PRICE_EPSILON = 1e-6


def projected_exposure(intent: OrderIntent, current_qty: float, price: float) -> float:
    delta_qty = intent.notional_usd / max(price, PRICE_EPSILON)
    if intent.side == "sell":
        delta_qty = -delta_qty
    return abs(current_qty + delta_qty) * price


class RiskGate:
    def __init__(self, max_position_usd: float):
        self.max_position_usd = max_position_usd

    def check(self, intent: OrderIntent, current_qty: float, price: float) -> RiskCheckResult:
        if price <= 0:
            return RiskCheckResult(allowed=False, notes=f"no_price: {intent.symbol} has no usable price this tick")

        exposure = projected_exposure(intent, current_qty, price)
        if exposure > self.max_position_usd:
            return RiskCheckResult(
                allowed=False,
                notes=(
                    f"max_position: projected ${exposure:.2f} exceeds "
                    f"${self.max_position_usd:.2f} on {intent.symbol}"
                ),
                projected_exposure_usd=exposure,
            )
        return RiskCheckResult(allowed=True, notes="ok", projected_exposure_usd=exposure)
