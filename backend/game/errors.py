"""链上错误分类 — 可重试 / 业务哨兵 / 致命"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

import httpx
from pydantic import BaseModel, PrivateAttr, field_validator

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    SENTINEL = "sentinel"
    FATAL = "fatal"


class ErrorRule(BaseModel):
    """分类规则：按错误消息正则和/或结构化错误码匹配"""
    kind: ErrorKind
    pattern: Optional[str] = None
    codes: list[int] = []
    reason: Optional[str] = None
    ignore_case: bool = False

    _regex: Optional[re.Pattern] = PrivateAttr(default=None)

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"非法的正则表达式 {v!r}: {e}")
        return v

    def model_post_init(self, __context) -> None:
        if self.pattern is not None:
            self._regex = re.compile(self.pattern, re.IGNORECASE if self.ignore_case else 0)

    def matches(self, message: str, code: Optional[int]) -> bool:
        if code is not None and code in self.codes:
            return True
        if self._regex is None:
            return False
        return self._regex.search(message) is not None


@dataclass(frozen=True)
class Classification:
    kind: ErrorKind
    reason: Optional[str] = None

    @property
    def is_transient(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT

    @property
    def is_sentinel(self) -> bool:
        return self.kind == ErrorKind.SENTINEL


TARGET_PROTECTED = "target_protected"
GAME_EXISTS = "game_exists"

# 有序规则表，先匹配先生效。哨兵消息保持与合约一致的大小写精确匹配
DEFAULT_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(kind=ErrorKind.SENTINEL, pattern=r"Target protected", reason=TARGET_PROTECTED),
    ErrorRule(kind=ErrorKind.SENTINEL, pattern=r"Game started|Game already exists", reason=GAME_EXISTS),
    # 52: INVALID_TRANSACTION_NONCE
    ErrorRule(kind=ErrorKind.TRANSIENT, pattern=r"nonce", codes=[52], reason="nonce_conflict", ignore_case=True),
    ErrorRule(kind=ErrorKind.TRANSIENT, pattern=r"time(d)?\s?out", reason="timeout", ignore_case=True),
    ErrorRule(
        kind=ErrorKind.TRANSIENT,
        pattern=(
            r"unavailable|connection (refused|reset|closed)|ECONNREFUSED|ECONNRESET"
            r"|too many requests|bad gateway|Node returned HTTP (429|502|503|504)\b"
        ),
        reason="node_unavailable",
        ignore_case=True,
    ),
)

_FATAL = Classification(ErrorKind.FATAL)


class ErrorClassifier:
    """按有序规则表分类链上返回的错误"""

    def __init__(self, rules: Iterable[ErrorRule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def extend(self, rules: Iterable[ErrorRule]) -> ErrorClassifier:
        """返回新分类器，新规则排在内置规则之前"""
        return ErrorClassifier((*rules, *self.rules))

    def classify(self, error: BaseException | str) -> Classification:
        # 网络层超时/断连不看消息内容，直接可重试
        if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
            return Classification(ErrorKind.TRANSIENT, "node_unavailable")

        message = error if isinstance(error, str) else str(error)
        code = None if isinstance(error, str) else getattr(error, "code", None)
        if not isinstance(code, int):
            code = None

        for rule in self.rules:
            if rule.matches(message, code):
                return Classification(rule.kind, rule.reason)

        logger.debug(f"未识别的错误，按致命处理: {message[:200]}")
        return _FATAL
