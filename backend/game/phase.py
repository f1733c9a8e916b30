"""游戏阶段状态机"""

from __future__ import annotations

from models.game_models import ActionKind, Phase


# 已确认的阶段推进动作 -> 目标阶段
PHASE_TRANSITIONS: dict[ActionKind, Phase] = {
    ActionKind.START_GAME: Phase.NIGHT,
    ActionKind.PASS_NIGHT: Phase.DAY,
    ActionKind.PASS_DAY: Phase.NIGHT,
    ActionKind.END_VOTING: Phase.DAY,  # 只关闭投票子阶段，主阶段不变
}

# 各推进动作在本地镜像中预期的起始阶段
EXPECTED_SOURCE: dict[ActionKind, tuple[Phase, ...]] = {
    ActionKind.START_GAME: (Phase.LOBBY,),
    ActionKind.PASS_NIGHT: (Phase.NIGHT,),
    ActionKind.PASS_DAY: (Phase.DAY, Phase.VOTING),
    ActionKind.END_VOTING: (Phase.DAY, Phase.VOTING),
}


def get_next_phase(kind: ActionKind) -> Phase | None:
    """获取动作确认后的阶段，非推进动作返回 None"""
    return PHASE_TRANSITIONS.get(kind)


def is_expected_transition(current: Phase, kind: ActionKind) -> bool:
    """本地镜像是否与该推进动作的起始阶段一致（仅用于告警，链上为准）"""
    sources = EXPECTED_SOURCE.get(kind)
    if sources is None:
        return True
    return current in sources
