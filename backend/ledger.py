"""链节点连接与编排器装配"""

from __future__ import annotations

import logging

from config import Settings, get_settings, load_player_accounts
from chain.base import TransactionOptions
from chain.contract import ContractInterface
from chain.rpc import RpcLedgerClient
from chain.signer import load_signing_backend
from game.accounts import AccountRegistry
from game.errors import ErrorClassifier
from game.orchestrator import GameOrchestrator
from game.retry import RetryExecutor

logger = logging.getLogger(__name__)


def build_accounts(settings: Settings) -> AccountRegistry:
    """从环境变量注册全部玩家账户"""
    registry = AccountRegistry()
    for address, private_key in load_player_accounts(settings.player_count):
        registry.register(address, private_key)
    return registry


def build_orchestrator(settings: Settings | None = None, accounts: AccountRegistry | None = None) -> GameOrchestrator:
    """按配置装配 RPC 客户端、ABI、重试策略与账户"""
    settings = settings or get_settings()
    signer = load_signing_backend(settings.signing_backend)

    ledger = RpcLedgerClient(
        settings.node_url,
        signer,
        timeout=settings.rpc_timeout,
        poll_interval=settings.confirmation_poll_interval,
        confirmation_timeout=settings.confirmation_timeout,
    )
    contract = ContractInterface.load(settings.abi_path, settings.contract_address)
    executor = RetryExecutor(
        classifier=ErrorClassifier().extend(settings.error_rules),
        max_attempts=settings.max_attempts,
        backoff_ms=settings.backoff_ms,
    )

    orchestrator = GameOrchestrator(
        ledger,
        accounts if accounts is not None else build_accounts(settings),
        contract,
        executor=executor,
        options=TransactionOptions(version=settings.transaction_version),
        game_state_view=settings.game_state_view,
    )
    logger.info(f"编排器就绪: 节点 {settings.node_url}，合约 {settings.contract_address}")
    return orchestrator
