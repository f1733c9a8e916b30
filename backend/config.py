"""链上狼人杀后端应用配置"""

import os
from functools import lru_cache

from dotenv import find_dotenv, load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings

from chain.base import TRANSACTION_VERSION_V3
from game.errors import ErrorRule


class Settings(BaseSettings):
    """应用配置，从环境变量或 .env 文件读取"""

    # 应用基础
    app_name: str = "链上狼人杀"
    debug: bool = False

    # 链节点与合约
    node_url: str = "https://api.cartridge.gg/x/starknet/sepolia"
    contract_address: str = "0x02f5c289133869e42ddf01b1c6dbf6b17d06f19ebf2105b118ac892cb3a1b8c9"
    abi_path: str = "abi_actions.json"
    game_state_view: str = "get_game_state"

    # 交易版本必须显式指定（链上同时支持多个不兼容版本）
    transaction_version: str = TRANSACTION_VERSION_V3

    # 签名后端，格式 "模块路径:属性名"
    signing_backend: str = ""

    # 重试策略
    max_attempts: int = 5
    backoff_ms: int = 2000

    # RPC 超时（秒）
    rpc_timeout: float = 30.0
    confirmation_poll_interval: float = 2.0
    confirmation_timeout: float = 180.0

    # 额外的错误分类规则（优先于内置规则匹配）
    error_rules: list[ErrorRule] = []

    # 参考剧本
    player_count: int = 8
    short_delay_ms: int = 1000
    phase_delay_ms: int = 2000

    # CORS
    cors_origins: list[str] = ["http://localhost:3003", "http://localhost:5173", "http://localhost:3000"]

    @field_validator("transaction_version")
    @classmethod
    def validate_transaction_version(cls, v: str) -> str:
        if v.lower() != TRANSACTION_VERSION_V3:
            raise ValueError(f"只支持最新交易版本 {TRANSACTION_VERSION_V3}，实际: {v}")
        return TRANSACTION_VERSION_V3

    model_config = {"env_file": ".env", "env_prefix": "STARKWOLF_"}


@lru_cache
def get_settings() -> Settings:
    return Settings()


def load_player_accounts(count: int) -> list[tuple[str, str]]:
    """读取 PLAYER{i}_ADDRESS / PLAYER{i}_PRIVATE_KEY 环境变量，返回 (地址, 私钥) 列表"""
    # 与 Settings 一致，从当前工作目录查找 .env
    load_dotenv(find_dotenv(usecwd=True))
    accounts = []
    for i in range(count):
        address = os.environ.get(f"PLAYER{i}_ADDRESS")
        private_key = os.environ.get(f"PLAYER{i}_PRIVATE_KEY")
        if not address or not private_key:
            raise ValueError(f"缺少玩家 {i} 的环境变量 PLAYER{i}_ADDRESS / PLAYER{i}_PRIVATE_KEY")
        accounts.append((address, private_key))
    return accounts
