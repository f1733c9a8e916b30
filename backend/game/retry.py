"""有界重试执行器"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from game.errors import ErrorClassifier
from models.game_models import Confirmed, Failed, Sentinel, TransactionOutcome

logger = logging.getLogger(__name__)

# 默认重试策略
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_MS = 2000

Operation = Callable[[], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[None]]


class RetryExecutor:
    """按分类结果决定重试、短路或失败"""

    def __init__(
        self,
        classifier: ErrorClassifier | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_ms: int = DEFAULT_BACKOFF_MS,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.classifier = classifier or ErrorClassifier()
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms
        self._sleep = sleep

    async def run(
        self,
        operation: Operation,
        max_attempts: int | None = None,
        backoff_ms: int | None = None,
    ) -> TransactionOutcome:
        """
        执行 operation，最多 max_attempts 次。

        Args:
            operation: 无参协程函数，返回交易句柄
            max_attempts: 本次调用的最大尝试次数，None 使用默认值
            backoff_ms: 可重试错误之间的固定等待毫秒数，None 使用默认值

        Returns:
            Confirmed / Sentinel / Failed
        """
        attempts_allowed = self.max_attempts if max_attempts is None else max_attempts
        delay_ms = self.backoff_ms if backoff_ms is None else backoff_ms
        if attempts_allowed < 1:
            raise ValueError(f"max_attempts 必须 >= 1，实际 {attempts_allowed}")

        last_error: BaseException | None = None
        for attempt in range(1, attempts_allowed + 1):
            try:
                handle = await operation()
                return Confirmed(handle=str(handle), attempts=attempt)
            except Exception as e:
                last_error = e
                verdict = self.classifier.classify(e)

                # 业务哨兵重试也不会成功，直接返回
                if verdict.is_sentinel:
                    logger.info(f"链上拒绝（业务事件 {verdict.reason}），不再重试")
                    return Sentinel(reason=verdict.reason or "", attempts=attempt, message=str(e))

                if not verdict.is_transient:
                    logger.error(f"第 {attempt} 次尝试出现不可恢复错误: {e}")
                    return Failed(error=e, attempts=attempt)

                if attempt < attempts_allowed:
                    logger.warning(f"第 {attempt} 次尝试失败（{verdict.reason}），{delay_ms}ms 后重试...")
                    await self._sleep(delay_ms / 1000)
                elif attempts_allowed > 1:
                    # 单次尝试由调用方自行处理，不输出汇总
                    logger.error(f"全部 {attempts_allowed} 次尝试均失败")

        return Failed(error=last_error, attempts=attempts_allowed)
