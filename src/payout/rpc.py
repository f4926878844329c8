"""Network access for a payout.

The engine only talks to the ledger through ``LedgerClient``; ``SolanaRpc`` is
the production implementation over solana-py's ``AsyncClient``. Tests supply
an in-memory client instead.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Protocol

import httpx
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from payout.config import NetworkConfig
from payout.errors import NetworkError, SubmissionError
from payout.models import SignatureStatus

log = logging.getLogger("payout.rpc")


@dataclass(frozen=True)
class AccountData:
    owner: Pubkey
    data: bytes
    lamports: int


class LedgerClient(Protocol):
    async def get_balance(self, address: Pubkey) -> int: ...
    async def get_account(self, address: Pubkey) -> AccountData | None: ...
    async def account_exists(self, address: Pubkey) -> bool: ...
    async def get_token_balance(self, token_account: Pubkey) -> int: ...
    async def latest_blockhash(self) -> Hash: ...
    async def fee_for_message(self, message: MessageV0) -> int | None: ...
    async def minimum_balance_for_rent_exemption(self, size: int) -> int: ...
    async def send_transaction(self, transaction: VersionedTransaction) -> str: ...
    async def signature_status(self, signature: str) -> SignatureStatus | None: ...
    async def close(self) -> None: ...


class SolanaRpc:
    """LedgerClient backed by a Solana JSON-RPC node, reading at ``confirmed``."""

    def __init__(self, network: NetworkConfig, *, client: AsyncClient | None = None):
        self.network = network
        self.client = client or AsyncClient(network.rpc_url, commitment=Confirmed, timeout=network.rpc_timeout)

    async def _rpc(self, call: Awaitable[Any], method: str) -> Any:
        try:
            return await call
        except (SolanaRpcException, RPCException) as e:
            raise NetworkError(f"{method} failed on {self.network.name} ({self.network.rpc_url}): {e}") from e

    async def get_balance(self, address: Pubkey) -> int:
        resp = await self._rpc(self.client.get_balance(address), "getBalance")
        return int(resp.value)

    async def get_account(self, address: Pubkey) -> AccountData | None:
        resp = await self._rpc(self.client.get_account_info(address), "getAccountInfo")
        acct = resp.value
        if acct is None:
            return None
        return AccountData(owner=acct.owner, data=bytes(acct.data), lamports=acct.lamports)

    async def account_exists(self, address: Pubkey) -> bool:
        return await self.get_account(address) is not None

    async def get_token_balance(self, token_account: Pubkey) -> int:
        resp = await self._rpc(self.client.get_token_account_balance(token_account), "getTokenAccountBalance")
        return int(resp.value.amount)

    async def latest_blockhash(self) -> Hash:
        resp = await self._rpc(self.client.get_latest_blockhash(Confirmed), "getLatestBlockhash")
        return resp.value.blockhash

    async def fee_for_message(self, message: MessageV0) -> int | None:
        resp = await self._rpc(self.client.get_fee_for_message(message), "getFeeForMessage")
        return resp.value

    async def minimum_balance_for_rent_exemption(self, size: int) -> int:
        resp = await self._rpc(
            self.client.get_minimum_balance_for_rent_exemption(size), "getMinimumBalanceForRentExemption"
        )
        return int(resp.value)

    async def send_transaction(self, transaction: VersionedTransaction) -> str:
        opts = TxOpts(skip_confirmation=True, skip_preflight=False, preflight_commitment=Confirmed)
        try:
            resp = await self.client.send_transaction(transaction, opts=opts)
        except RPCException as e:
            err = e.args[0] if e.args else e
            message = getattr(err, "message", None) or str(err)
            logs = getattr(getattr(err, "data", None), "logs", None)
            raise SubmissionError(f"Transaction failed to send: {message}", logs) from e
        except SolanaRpcException as e:
            raise SubmissionError(f"Transaction failed to send: {e}") from e
        return str(resp.value)

    async def signature_status(self, signature: str) -> SignatureStatus | None:
        resp = await self._rpc(
            self.client.get_signature_statuses([Signature.from_string(signature)]), "getSignatureStatuses"
        )
        status = resp.value[0]
        if status is None:
            return None
        confirmation = None
        if status.confirmation_status is not None:
            # TransactionConfirmationStatus.Confirmed -> "confirmed"
            confirmation = str(status.confirmation_status).rsplit(".", 1)[-1].lower()
        err = None
        if status.err is not None:
            try:
                err = json.loads(status.to_json()).get("err")
            except (AttributeError, ValueError):
                err = str(status.err)
        return SignatureStatus(confirmation_status=confirmation, err=err)

    async def close(self) -> None:
        await self.client.close()


def _health_failure(body: Any) -> str | None:
    """None for a healthy getHealth reply, otherwise why it is not healthy."""
    if not isinstance(body, dict):
        return f"unexpected response: {body!r}"
    if body.get("result") == "ok":
        return None
    error = body.get("error")
    if isinstance(error, dict):
        return str(error.get("message", error))
    if error is not None:
        return str(error)
    return f"unexpected response: {body!r}"


async def probe_rpc(url: str, *, timeout: float, max_retries: int = 3, retry_delay: float = 2.0) -> None:
    """Probe the RPC endpoint with getHealth until it reports ok.

    Args:
        url: RPC endpoint URL
        timeout: Seconds allowed for each request
        max_retries: Maximum number of attempts
        retry_delay: Seconds to wait between attempts
    """
    payload = {"jsonrpc": "2.0", "id": 1, "method": "getHealth"}

    for attempt in range(1, max_retries + 1):
        try:
            async with httpx.AsyncClient(timeout=timeout) as http:
                r = await http.post(url, json=payload)
                r.raise_for_status()
                body = r.json()
            reason = _health_failure(body)
            if reason is None:
                log.info(f"RPC endpoint healthy (attempt {attempt}/{max_retries})")
                return
        except (httpx.HTTPError, ValueError) as e:
            reason = f"{e.__class__.__name__} - {e}"

        if attempt < max_retries:
            log.info(f"RPC not ready yet (attempt {attempt}/{max_retries}): {reason} - retrying in {retry_delay}s...")
            await asyncio.sleep(retry_delay)
        else:
            log.error(f"RPC failed after {max_retries} attempts")
            raise NetworkError(f"RPC endpoint {url} is not healthy: {reason}")
