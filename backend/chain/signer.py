"""签名后端插件 — 私钥管理与签名细节由外部实现"""

from __future__ import annotations

import importlib
from typing import Any, Protocol

from chain.base import TransactionOptions
from models.game_models import AccountIdentity


class SigningBackendError(Exception):
    """签名后端加载失败"""
    pass


class SigningBackend(Protocol):

    def selector(self, entrypoint: str) -> str:
        """入口名 -> 入口选择器（十六进制）"""
        ...

    def sign_invoke(
        self,
        identity: AccountIdentity,
        calls: list[dict],
        nonce: str,
        options: TransactionOptions,
    ) -> dict:
        """
        构建并签名 invoke 交易。

        Args:
            identity: 发送方签名身份
            calls: [{"contract_address", "entry_point_selector", "calldata"}]
            nonce: 发送方当前 nonce
            options: 交易选项（版本）

        Returns:
            可直接作为 starknet_addInvokeTransaction 参数的交易字典
        """
        ...


def load_signing_backend(path: str) -> SigningBackend:
    """按 "模块路径:属性名" 加载签名后端；属性为类或工厂时无参调用"""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise SigningBackendError(f"签名后端路径格式应为 'module:attr'，实际: {path!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise SigningBackendError(f"无法导入签名后端模块 {module_name}: {e}") from e

    target: Any = getattr(module, attr, None)
    if target is None:
        raise SigningBackendError(f"模块 {module_name} 中不存在 {attr}")

    if isinstance(target, type) or (callable(target) and not hasattr(target, "sign_invoke")):
        backend = target()
    else:
        backend = target
    if not hasattr(backend, "sign_invoke") or not hasattr(backend, "selector"):
        raise SigningBackendError(f"{path} 不是有效的签名后端")
    return backend
