"""链上提交接口定义"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from models.game_models import AccountIdentity

# 链上最新交易格式版本
TRANSACTION_VERSION_V3 = "0x3"


class LedgerError(Exception):
    """链节点返回的错误（JSON-RPC 错误、回滚、确认超时等）"""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


@dataclass(frozen=True)
class TransactionOptions:
    """交易选项，版本必须显式指定"""
    version: str = TRANSACTION_VERSION_V3


class LedgerClient(Protocol):
    """编排器依赖的链上提交/确认/查询原语"""

    async def submit(
        self,
        identity: AccountIdentity,
        contract_address: str,
        entrypoint: str,
        calldata: list,
        options: TransactionOptions,
    ) -> str:
        """提交交易，返回交易哈希"""
        ...

    async def await_confirmation(self, handle: str) -> Any:
        """等待交易最终确认，失败或回滚时抛出异常"""
        ...

    async def query_state(self, contract_address: str, view_entrypoint: str, args: list) -> Any:
        """调用只读入口，状态不存在时抛出异常"""
        ...


def to_felt(value: Any) -> str:
    """calldata 元素编码为 felt 十六进制字符串"""
    if isinstance(value, bool):
        return "0x1" if value else "0x0"
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"felt 不支持负数: {value}")
        return hex(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return hex(int(text, 16))
        return hex(int(text))
    raise TypeError(f"无法编码为 felt: {value!r}")


def encode_calldata(calldata: list) -> list[str]:
    return [to_felt(v) for v in calldata]
