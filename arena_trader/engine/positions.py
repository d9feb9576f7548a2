"""
PositionReader - normalizes brokerage positions to signed quantities.
"""
import logging
from typing import List

from ..schemas import PositionSnapshot

logger = logging.getLogger("arena_trader.engine.positions")


def normalize_position(raw: dict) -> PositionSnapshot:
    """Short positions become negative quantities regardless of how the broker signs qty."""
    qty = abs(float(raw.get("qty") or 0))
    side = str(raw.get("side", "long")).lower()
    avg = raw.get("avg_entry_price")
    return PositionSnapshot(
        symbol=str(raw.get("symbol", "")).upper(),
        qty=-qty if side == "short" else qty,
        avg_price=float(avg) if avg not in (None, "") else None,
    )


class PositionReader:
    def __init__(self, broker):
        self.broker = broker

    async def read(self) -> List[PositionSnapshot]:
        """Current positions; empty when the brokerage cannot be reached."""
        try:
            raw_positions = await self.broker.get_positions()
        except Exception as e:
            logger.warning(f"Positions unavailable, treating as flat: {e}")
            return []

        positions: List[PositionSnapshot] = []
        for raw in raw_positions:
            try:
                positions.append(normalize_position(raw))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed position {raw}: {e}")
        return positions
