"""账户注册表：地址 -> 签名身份"""

from __future__ import annotations

import logging

from models.game_models import AccountIdentity

logger = logging.getLogger(__name__)


class AccountNotFound(Exception):
    """地址未注册"""

    def __init__(self, address: str):
        super().__init__(f"账户未注册: {address}")
        self.address = address


class NoAccountsAvailable(Exception):
    """注册表为空"""
    pass


class AccountRegistry:
    """持有所有签名身份，按地址索引"""

    def __init__(self):
        # dict 保持插入顺序，any() 固定返回最早注册的身份
        self._accounts: dict[str, AccountIdentity] = {}

    def register(self, address: str, signing_key: str) -> None:
        """注册或覆盖地址对应的签名身份"""
        self._accounts[address] = AccountIdentity(address=address, signing_key=signing_key)
        logger.debug(f"注册账户 {address}")

    def resolve(self, address: str) -> AccountIdentity:
        identity = self._accounts.get(address)
        if identity is None:
            raise AccountNotFound(address)
        return identity

    def any(self) -> AccountIdentity:
        """返回任意一个已注册身份（用于非角色绑定的动作，如结束投票）"""
        for identity in self._accounts.values():
            return identity
        raise NoAccountsAvailable("没有可用的账户")

    def addresses(self) -> list[str]:
        return list(self._accounts)

    def __contains__(self, address: str) -> bool:
        return address in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)
