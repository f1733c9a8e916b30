"""游戏进度（链上状态的本地镜像）"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from game.phase import get_next_phase
from models.game_models import ActionKind, Phase


@dataclass
class GameProgress:
    """单局游戏的本地阶段镜像，只在本地观察到确认结果后更新"""
    game_id: int
    phase: Phase = Phase.LOBBY
    round: int = 0
    voting_closed: bool = False
    last_transaction: Optional[str] = None

    def apply(self, kind: ActionKind, handle: str) -> None:
        """应用一个已确认的动作"""
        self.last_transaction = handle
        next_phase = get_next_phase(kind)
        if next_phase is None:
            return

        if kind == ActionKind.START_GAME:
            self.round = 1
        elif kind == ActionKind.PASS_DAY:
            # 完整日夜循环后回合递增
            self.round += 1

        self.voting_closed = kind == ActionKind.END_VOTING
        self.phase = next_phase

    def to_dict(self) -> dict:
        return {
            "game_id": self.game_id,
            "phase": self.phase.value,
            "round": self.round,
            "voting_closed": self.voting_closed,
            "last_transaction": self.last_transaction,
        }
