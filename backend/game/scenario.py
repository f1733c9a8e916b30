"""参考剧本驱动 — 按固定顺序执行一局完整游戏"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence

from game.orchestrator import GameOrchestrator
from models.game_models import (
    GameAction, Role, StartGame, Vote, NightAction, CupidAction, WitchAction,
    HunterAction, PassNight, PassDay, EndVoting, Failed, TransactionOutcome,
)

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

# 角色分配顺序（与 PLAYER0..PLAYER7 对应）
ROSTER_ORDER = (
    Role.WEREWOLF, Role.WITCH, Role.GUARD, Role.SEER,
    Role.HUNTER, Role.CUPID, Role.VILLAGER, Role.VILLAGER,
)


@dataclass(frozen=True)
class RoleRoster:
    """角色 -> 地址的显式配置"""
    werewolf: str
    witch: str
    guard: str
    seer: str
    hunter: str
    cupid: str
    villager1: str
    villager2: str

    @classmethod
    def from_addresses(cls, addresses: Sequence[str]) -> RoleRoster:
        if len(addresses) != len(ROSTER_ORDER):
            raise ValueError(f"需要 {len(ROSTER_ORDER)} 个玩家地址，实际 {len(addresses)}")
        return cls(*addresses)

    @property
    def players(self) -> list[str]:
        return [
            self.werewolf, self.witch, self.guard, self.seer,
            self.hunter, self.cupid, self.villager1, self.villager2,
        ]

    def roles(self) -> dict[str, Role]:
        """地址 -> 角色"""
        return dict(zip(self.players, ROSTER_ORDER))


@dataclass(frozen=True)
class ScenarioStep:
    description: str
    action: GameAction
    delay_ms: int = 0


@dataclass
class ScenarioReport:
    outcomes: list[tuple[ScenarioStep, TransactionOutcome]] = field(default_factory=list)
    aborted: bool = False
    error: BaseException | None = None

    @property
    def completed(self) -> bool:
        return not self.aborted


def build_reference_scenario(
    game_id: int,
    roster: RoleRoster,
    short_delay_ms: int = 1000,
    phase_delay_ms: int = 2000,
) -> list[ScenarioStep]:
    """四夜剧本：狼人最终获胜，只剩狼人存活"""
    r = roster
    short, phase = short_delay_ms, phase_delay_ms

    def step(description: str, action: GameAction, delay: int = short) -> ScenarioStep:
        return ScenarioStep(description, action, delay)

    def votes(pairs: Sequence[tuple[str, str]]) -> list[ScenarioStep]:
        return [step("投票", Vote(game_id=game_id, target=target, actor=voter)) for target, voter in pairs]

    steps = [
        step("开始游戏", StartGame(game_id=game_id, players=tuple(r.players), actor=r.werewolf), 0),
        # 第一夜
        step("丘比特连接恋人", CupidAction(game_id=game_id, lover1=r.villager1, lover2=r.seer, actor=r.cupid)),
        step("守卫守护预言家", NightAction(game_id=game_id, target=r.seer, actor=r.guard)),
        step("进入白天", PassNight(game_id=game_id), phase),
        *votes([(r.hunter, r.werewolf), (r.hunter, r.witch), (r.hunter, r.guard), (r.werewolf, r.cupid)]),
        step("结束投票", EndVoting(game_id=game_id), phase),
        step("猎人开枪", HunterAction(game_id=game_id, target=r.cupid, actor=r.hunter), phase),
        step("进入夜晚", PassDay(game_id=game_id), phase),
        # 第二夜
        step("守卫守护女巫", NightAction(game_id=game_id, target=r.witch, actor=r.guard)),
        step("狼人击杀村民2", NightAction(game_id=game_id, target=r.villager2, actor=r.werewolf)),
        step("女巫救村民2", WitchAction(game_id=game_id, target=r.villager2, save=True, poison=False, actor=r.witch)),
        step("进入白天", PassNight(game_id=game_id), phase),
        *votes([(r.guard, r.werewolf), (r.guard, r.witch), (r.villager1, r.guard), (r.guard, r.villager1)]),
        step("结束投票", EndVoting(game_id=game_id), phase),
        step("进入夜晚", PassDay(game_id=game_id), phase),
        # 第三夜
        step("狼人击杀村民2", NightAction(game_id=game_id, target=r.villager2, actor=r.werewolf)),
        step("进入白天", PassNight(game_id=game_id), phase),
        *votes([(r.witch, r.werewolf), (r.werewolf, r.witch), (r.witch, r.villager1)]),
        step("结束投票", EndVoting(game_id=game_id), phase),
        step("进入夜晚", PassDay(game_id=game_id), phase),
        # 第四夜
        step("狼人击杀村民1", NightAction(game_id=game_id, target=r.villager1, actor=r.werewolf)),
        step("进入白天", PassNight(game_id=game_id), phase),
    ]
    return steps


async def run_scenario(
    orchestrator: GameOrchestrator,
    steps: Sequence[ScenarioStep],
    sleep: SleepFn = asyncio.sleep,
) -> ScenarioReport:
    """顺序执行剧本；Confirmed / Sentinel 继续，Failed 或身份缺失时中止"""
    report = ScenarioReport()
    for i, s in enumerate(steps, start=1):
        logger.info(f"[{i}/{len(steps)}] {s.description}...")
        try:
            outcome = await orchestrator.execute(s.action)
        except Exception as e:
            logger.error(f"剧本中止于 {s.description}: {e}")
            report.aborted = True
            report.error = e
            return report

        report.outcomes.append((s, outcome))
        if isinstance(outcome, Failed):
            logger.error(f"剧本中止于 {s.description}: {outcome.error}")
            report.aborted = True
            report.error = outcome.error
            return report

        if s.delay_ms:
            await sleep(s.delay_ms / 1000)

    logger.info("剧本执行完毕 — 狼人获胜，只剩狼人存活")
    return report
