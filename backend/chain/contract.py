"""合约接口描述（ABI JSON）加载"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Iterable

logger = logging.getLogger(__name__)


class ContractInterfaceError(Exception):
    """ABI 缺失或格式异常"""
    pass


@dataclass
class ContractInterface:
    """已部署合约的地址与入口列表"""
    address: str
    functions: dict[str, dict] = field(default_factory=dict)

    @classmethod
    def from_abi(cls, address: str, abi: list) -> ContractInterface:
        functions: dict[str, dict] = {}
        for item in abi:
            _collect_functions(item, functions)
        return cls(address=address, functions=functions)

    @classmethod
    def load(cls, path: str, address: str) -> ContractInterface:
        """从 JSON 文件读取 ABI，文件顶层需包含 "abi" 数组"""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ContractInterfaceError(f"ABI 文件不存在: {path}") from e
        except json.JSONDecodeError as e:
            raise ContractInterfaceError(f"ABI 文件不是合法 JSON: {path}: {e}") from e

        abi = data.get("abi") if isinstance(data, dict) else None
        if not isinstance(abi, list):
            raise ContractInterfaceError(f"ABI 文件缺少 abi 数组: {path}")

        contract = cls.from_abi(address, abi)
        logger.info(f"加载 ABI {path}，共 {len(contract.functions)} 个入口")
        return contract

    def has(self, name: str) -> bool:
        return name in self.functions

    def require(self, names: Iterable[str]) -> None:
        missing = [n for n in names if n not in self.functions]
        if missing:
            raise ContractInterfaceError(f"合约缺少入口: {', '.join(missing)}")


def _collect_functions(item: dict, out: dict[str, dict]) -> None:
    # Cairo 1 ABI 中函数可能嵌套在 interface 条目的 items 里
    if not isinstance(item, dict):
        return
    item_type = item.get("type")
    if item_type == "function" and item.get("name"):
        out[item["name"]] = item
    elif item_type == "interface":
        for sub in item.get("items", []):
            _collect_functions(sub, out)
