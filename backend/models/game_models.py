"""游戏相关数据模型（纯数据类，不依赖链上客户端）"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Union


class Role(str, Enum):
    """角色标签，规则由链上合约执行，本地只用于编排剧本"""
    WEREWOLF = "werewolf"
    WITCH = "witch"
    GUARD = "guard"
    SEER = "seer"
    HUNTER = "hunter"
    CUPID = "cupid"
    VILLAGER = "villager"


class Phase(str, Enum):
    LOBBY = "LOBBY"
    NIGHT = "NIGHT"
    DAY = "DAY"
    VOTING = "VOTING"
    ENDED = "ENDED"


class ActionKind(str, Enum):
    """动作类型，取值即合约入口名"""
    START_GAME = "start_game"
    VOTE = "vote"
    NIGHT_ACTION = "night_action"
    CUPID_ACTION = "cupid_action"
    WITCH_ACTION = "witch_action"
    HUNTER_ACTION = "hunter_action"
    PASS_NIGHT = "pass_night"
    PASS_DAY = "pass_day"
    END_VOTING = "end_voting"


# 合约必须暴露的全部入口
REQUIRED_ENTRYPOINTS = tuple(kind.value for kind in ActionKind)

# 会推进阶段的动作
PHASE_TRANSITION_KINDS = (
    ActionKind.START_GAME,
    ActionKind.PASS_NIGHT,
    ActionKind.PASS_DAY,
    ActionKind.END_VOTING,
)


@dataclass(frozen=True)
class AccountIdentity:
    """签名身份，注册后不可变"""
    address: str
    signing_key: str = field(repr=False)


# ========== 动作 ==========

@dataclass(frozen=True, kw_only=True)
class GameAction:
    """动作基类：构造、提交、丢弃"""
    kind: ClassVar[ActionKind]
    # None 表示使用默认重试次数
    max_attempts: ClassVar[Optional[int]] = None

    game_id: int
    actor: Optional[str] = None

    @property
    def entrypoint(self) -> str:
        return self.kind.value

    def calldata(self) -> list:
        """按合约参数顺序展开 calldata"""
        return [self.game_id]


@dataclass(frozen=True, kw_only=True)
class StartGame(GameAction):
    kind = ActionKind.START_GAME

    players: tuple[str, ...]

    def calldata(self) -> list:
        # 数组参数：先长度，后元素
        return [self.game_id, len(self.players), *self.players]


@dataclass(frozen=True, kw_only=True)
class Vote(GameAction):
    kind = ActionKind.VOTE

    target: str

    def calldata(self) -> list:
        return [self.game_id, self.target]


@dataclass(frozen=True, kw_only=True)
class NightAction(GameAction):
    """狼人击杀 / 守卫守护共用的夜晚入口"""
    kind = ActionKind.NIGHT_ACTION
    max_attempts = 1

    target: str

    def calldata(self) -> list:
        return [self.game_id, self.target]


@dataclass(frozen=True, kw_only=True)
class CupidAction(GameAction):
    kind = ActionKind.CUPID_ACTION

    lover1: str
    lover2: str

    def calldata(self) -> list:
        return [self.game_id, self.lover1, self.lover2]


@dataclass(frozen=True, kw_only=True)
class WitchAction(GameAction):
    kind = ActionKind.WITCH_ACTION

    target: str
    save: bool = False
    poison: bool = False

    def calldata(self) -> list:
        return [self.game_id, self.target, 1 if self.save else 0, 1 if self.poison else 0]


@dataclass(frozen=True, kw_only=True)
class HunterAction(GameAction):
    kind = ActionKind.HUNTER_ACTION

    target: str

    def calldata(self) -> list:
        return [self.game_id, self.target]


@dataclass(frozen=True, kw_only=True)
class PassNight(GameAction):
    kind = ActionKind.PASS_NIGHT


@dataclass(frozen=True, kw_only=True)
class PassDay(GameAction):
    kind = ActionKind.PASS_DAY


@dataclass(frozen=True, kw_only=True)
class EndVoting(GameAction):
    kind = ActionKind.END_VOTING


# ========== 交易结果 ==========

@dataclass(frozen=True)
class Confirmed:
    """链上已接受并最终确认"""
    handle: str
    attempts: int = 1

    status: ClassVar[str] = "confirmed"
    ok: ClassVar[bool] = True

    def raise_for_failure(self) -> None:
        return None


@dataclass(frozen=True)
class Sentinel:
    """被链上以已知业务原因拒绝，视为正常游戏事件"""
    reason: str
    attempts: int = 1
    message: str = ""

    status: ClassVar[str] = "sentinel"
    ok: ClassVar[bool] = True

    def raise_for_failure(self) -> None:
        return None


@dataclass(frozen=True)
class Failed:
    """重试耗尽或不可恢复的错误"""
    error: BaseException
    attempts: int = 1

    status: ClassVar[str] = "failed"
    ok: ClassVar[bool] = False

    def raise_for_failure(self) -> None:
        """原样抛出底层错误"""
        raise self.error


TransactionOutcome = Union[Confirmed, Sentinel, Failed]
