"""Starknet JSON-RPC 客户端 — 提交、等待确认、只读查询"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

import httpx

from chain.base import LedgerError, TransactionOptions, encode_calldata
from chain.signer import SigningBackend
from models.game_models import AccountIdentity

logger = logging.getLogger(__name__)

# 默认超时（秒）
DEFAULT_TIMEOUT = 30
# JSON-RPC 错误码：交易哈希尚未被节点收录
TXN_HASH_NOT_FOUND = 29

ACCEPTED_STATUSES = ("ACCEPTED_ON_L2", "ACCEPTED_ON_L1")


class RpcLedgerClient:
    """基于 httpx 的链节点客户端，实现 LedgerClient 接口"""

    def __init__(
        self,
        node_url: str,
        signer: SigningBackend,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = 2.0,
        confirmation_timeout: float = 180.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.node_url = node_url
        self.signer = signer
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.confirmation_timeout = confirmation_timeout
        self._transport = transport
        self._ids = itertools.count(1)

    async def _request(self, method: str, params: dict) -> Any:
        """
        发送单个 JSON-RPC 请求。

        Raises:
            LedgerError: 节点返回错误对象、HTTP 错误状态或网络异常
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.post(self.node_url, json=payload)
                resp.raise_for_status()
                data = resp.json()
            except httpx.HTTPStatusError as e:
                body = e.response.text[:300] if e.response else ""
                raise LedgerError(f"Node returned HTTP {e.response.status_code}: {body}")
            except httpx.TimeoutException:
                raise LedgerError(f"RPC request timed out: {method}")
            except httpx.TransportError as e:
                raise LedgerError(f"Node unavailable: {e}")
            except ValueError:
                raise LedgerError(f"Malformed RPC response for {method}")

        error = data.get("error")
        if error:
            message = error.get("message", "unknown error")
            detail = error.get("data")
            if detail:
                message = f"{message}: {detail}"
            raise LedgerError(message, code=error.get("code"), data=detail)
        return data.get("result")

    async def query_state(self, contract_address: str, view_entrypoint: str, args: list) -> Any:
        return await self._request("starknet_call", {
            "request": {
                "contract_address": contract_address,
                "entry_point_selector": self.signer.selector(view_entrypoint),
                "calldata": encode_calldata(args),
            },
            "block_id": "latest",
        })

    async def get_nonce(self, address: str) -> str:
        return await self._request("starknet_getNonce", {
            "block_id": "pending",
            "contract_address": address,
        })

    async def submit(
        self,
        identity: AccountIdentity,
        contract_address: str,
        entrypoint: str,
        calldata: list,
        options: TransactionOptions,
    ) -> str:
        nonce = await self.get_nonce(identity.address)
        calls = [{
            "contract_address": contract_address,
            "entry_point_selector": self.signer.selector(entrypoint),
            "calldata": encode_calldata(calldata),
        }]
        tx = self.signer.sign_invoke(identity, calls, nonce, options)
        result = await self._request("starknet_addInvokeTransaction", {"invoke_transaction": tx})
        tx_hash = result["transaction_hash"]
        logger.info(f"交易已发送 {entrypoint} (version={options.version}): {tx_hash}")
        return tx_hash

    async def await_confirmation(self, handle: str) -> dict:
        """轮询交易回执直到 L2 接受；回滚或超时抛出 LedgerError"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.confirmation_timeout

        while True:
            try:
                receipt = await self._request("starknet_getTransactionReceipt", {"transaction_hash": handle})
            except LedgerError as e:
                if e.code != TXN_HASH_NOT_FOUND:
                    raise
                receipt = None

            if receipt:
                if receipt.get("execution_status") == "REVERTED":
                    reason = receipt.get("revert_reason") or "Transaction reverted"
                    raise LedgerError(reason, data=receipt)
                if receipt.get("finality_status") in ACCEPTED_STATUSES:
                    logger.info(f"交易已确认: {handle}")
                    return receipt

            if loop.time() >= deadline:
                raise LedgerError(f"Transaction confirmation timed out: {handle}")
            await asyncio.sleep(self.poll_interval)
