"""游戏编排器 — 把逻辑动作变成链上交易，并维护本地阶段镜像"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from chain.base import LedgerClient, TransactionOptions
from chain.contract import ContractInterface
from game.accounts import AccountRegistry
from game.errors import GAME_EXISTS
from game.phase import is_expected_transition
from game.retry import RetryExecutor
from game.state import GameProgress
from models.game_models import (
    AccountIdentity, GameAction, Phase, REQUIRED_ENTRYPOINTS, PHASE_TRANSITION_KINDS,
    StartGame, Vote, NightAction, CupidAction, WitchAction, HunterAction,
    PassNight, PassDay, EndVoting,
    Confirmed, Sentinel, TransactionOutcome,
)

logger = logging.getLogger(__name__)

DEFAULT_GAME_STATE_VIEW = "get_game_state"


class GameOrchestrator:
    """
    链上狼人杀动作编排器。

    每个动作：解析签名身份 → 构建 calldata → 经 RetryExecutor 提交并等待确认
    → 确认后推进本地阶段。规则校验全部交给链上合约，本地只对错误分类。
    同一实例同一时刻只处理一个动作。
    """

    def __init__(
        self,
        ledger: LedgerClient,
        accounts: AccountRegistry,
        contract: ContractInterface,
        executor: RetryExecutor | None = None,
        options: TransactionOptions | None = None,
        game_state_view: str = DEFAULT_GAME_STATE_VIEW,
    ):
        contract.require(REQUIRED_ENTRYPOINTS)
        self.ledger = ledger
        self.accounts = accounts
        self.contract = contract
        self.executor = executor or RetryExecutor()
        self.options = options or TransactionOptions()
        self.game_state_view = game_state_view
        self._games: dict[int, GameProgress] = {}
        self._lock = asyncio.Lock()

    # ========== 阶段镜像 ==========

    def progress(self, game_id: int) -> GameProgress:
        if game_id not in self._games:
            self._games[game_id] = GameProgress(game_id=game_id)
        return self._games[game_id]

    def peek(self, game_id: int) -> GameProgress:
        """只读查询，未知游戏返回初始进度且不登记"""
        return self._games.get(game_id) or GameProgress(game_id=game_id)

    def phase(self, game_id: int) -> Phase:
        return self.peek(game_id).phase

    def mark_ended(self, game_id: int) -> None:
        """游戏结束由外部推断，这里只做记账"""
        self.progress(game_id).phase = Phase.ENDED
        logger.info(f"游戏 {game_id} 标记为结束")

    # ========== 动作入口 ==========

    async def start_game(self, game_id: int, players: Sequence[str], actor: str) -> TransactionOutcome:
        return await self.execute(StartGame(game_id=game_id, players=tuple(players), actor=actor))

    async def vote(self, game_id: int, target: str, actor: str) -> TransactionOutcome:
        return await self.execute(Vote(game_id=game_id, target=target, actor=actor))

    async def night_action(self, game_id: int, target: str, actor: str) -> TransactionOutcome:
        """狼人击杀 / 守卫守护；目标被守护时返回 Sentinel("target_protected")"""
        return await self.execute(NightAction(game_id=game_id, target=target, actor=actor))

    async def cupid_action(self, game_id: int, lover1: str, lover2: str, actor: str) -> TransactionOutcome:
        return await self.execute(CupidAction(game_id=game_id, lover1=lover1, lover2=lover2, actor=actor))

    async def witch_action(
        self, game_id: int, target: str, save: bool, poison: bool, actor: str,
    ) -> TransactionOutcome:
        return await self.execute(
            WitchAction(game_id=game_id, target=target, save=save, poison=poison, actor=actor)
        )

    async def hunter_action(self, game_id: int, target: str, actor: str) -> TransactionOutcome:
        return await self.execute(HunterAction(game_id=game_id, target=target, actor=actor))

    async def pass_night(self, game_id: int, actor: Optional[str] = None) -> TransactionOutcome:
        return await self.execute(PassNight(game_id=game_id, actor=actor))

    async def pass_day(self, game_id: int, actor: Optional[str] = None) -> TransactionOutcome:
        return await self.execute(PassDay(game_id=game_id, actor=actor))

    async def end_voting(self, game_id: int, actor: Optional[str] = None) -> TransactionOutcome:
        return await self.execute(EndVoting(game_id=game_id, actor=actor))

    # ========== 通用执行 ==========

    async def execute(
        self,
        action: GameAction,
        max_attempts: int | None = None,
        backoff_ms: int | None = None,
    ) -> TransactionOutcome:
        """
        执行任意动作。

        Args:
            action: 动作实例
            max_attempts: 覆盖默认重试次数；动作自带固定次数时（夜晚行动）以动作为准
            backoff_ms: 覆盖默认重试间隔

        Raises:
            AccountNotFound / NoAccountsAvailable: 身份缺失，不重试
        """
        async with self._lock:
            identity = self._resolve_actor(action)

            if isinstance(action, StartGame):
                existing = await self._find_existing_game(action.game_id)
                if existing is not None:
                    logger.info(f"游戏 {action.game_id} 已存在，跳过创建: {existing}")
                    return Sentinel(reason=GAME_EXISTS, attempts=0, message="Game already exists with this ID")

            calldata = action.calldata()

            async def submit_and_confirm() -> str:
                handle = await self.ledger.submit(
                    identity, self.contract.address, action.entrypoint, calldata, self.options,
                )
                logger.info(f"{action.entrypoint} 已发送，等待确认...")
                await self.ledger.await_confirmation(handle)
                return handle

            attempts = action.max_attempts if action.max_attempts is not None else max_attempts
            outcome = await self.executor.run(submit_and_confirm, max_attempts=attempts, backoff_ms=backoff_ms)

            if isinstance(outcome, Confirmed):
                self._on_confirmed(action, outcome)
            elif isinstance(outcome, Sentinel):
                logger.info(f"游戏 {action.game_id} {action.entrypoint} 被链上拒绝（{outcome.reason}），游戏继续")
            else:
                logger.error(f"游戏 {action.game_id} {action.entrypoint} 失败: {outcome.error}")
            return outcome

    def _resolve_actor(self, action: GameAction) -> AccountIdentity:
        # 阶段推进动作不绑定角色，未指定时任选一个账户
        if action.actor is None:
            return self.accounts.any()
        return self.accounts.resolve(action.actor)

    async def _find_existing_game(self, game_id: int):
        """查询链上游戏状态；查询失败视为游戏不存在"""
        try:
            return await self.ledger.query_state(self.contract.address, self.game_state_view, [game_id])
        except Exception as e:
            logger.info(f"未找到游戏 {game_id} 的链上状态，创建新游戏 ({e})")
            return None

    def _on_confirmed(self, action: GameAction, outcome: Confirmed) -> None:
        progress = self.progress(action.game_id)
        if action.kind in PHASE_TRANSITION_KINDS:
            if not is_expected_transition(progress.phase, action.kind):
                logger.warning(
                    f"游戏 {action.game_id} 本地阶段 {progress.phase.value} 与 {action.entrypoint} 不符，以链上确认为准"
                )
            previous = progress.phase
            progress.apply(action.kind, outcome.handle)
            logger.info(f"游戏 {action.game_id} 阶段 {previous.value} → {progress.phase.value}（第 {progress.round} 回合）")
        else:
            progress.apply(action.kind, outcome.handle)
            logger.info(f"游戏 {action.game_id} {action.entrypoint} 已确认")
