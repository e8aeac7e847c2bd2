# src/eduquest/rewards/memory_ledger.py

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def xp_for_level(level: int) -> int:
    """XP needed to go from `level` to `level + 1` (exponential curve)."""
    return int(100 * (1.5 ** (level - 1)))


@dataclass(slots=True)
class LevelState:
    level: int = 1
    current_xp: int = 0
    total_xp: int = 0


class InMemoryRewardLedger:
    """
    Offline RewardLedger used for demos when no backend is configured.

    Behavior mirrors the backend functions closely enough for local runs:
    - wallet balance per user (non-positive amounts are ignored)
    - XP with the same level-up curve
    - repeated (kind, source_id) grants are deduplicated
    """

    def __init__(self) -> None:
        self.balances: dict[str, int] = defaultdict(int)
        self.levels: dict[str, LevelState] = defaultdict(LevelState)
        self._seen: set[tuple[str, str]] = set()

    def _first_time(self, kind: str, source_id: str) -> bool:
        key = (kind, source_id)
        if key in self._seen:
            logger.info("Ledger: duplicate %s grant for %s ignored", kind, source_id)
            return False
        self._seen.add(key)
        return True

    async def add_currency(self, amount: int, *, user_id: str, source_id: str) -> None:
        if amount <= 0 or not self._first_time("currency", source_id):
            return
        self.balances[user_id] += int(amount)
        logger.info("Ledger: +%d currency user=%s balance=%d", amount, user_id, self.balances[user_id])

    async def add_xp(self, amount: int, *, user_id: str, source_id: str) -> None:
        if amount <= 0 or not self._first_time("xp", source_id):
            return
        st = self.levels[user_id]
        st.current_xp += int(amount)
        st.total_xp += int(amount)
        while st.current_xp >= xp_for_level(st.level):
            st.current_xp -= xp_for_level(st.level)
            st.level += 1
            logger.info("Ledger: user=%s levelled up to %d", user_id, st.level)

    def level_of(self, user_id: str) -> int:
        return self.levels[user_id].level
