"""Test SolanaRpc's translation of solana-py responses and errors."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
from solana.rpc.core import RPCException
from solders.keypair import Keypair
from solders.transaction_status import TransactionConfirmationStatus

from ledger_fakes import LOCALNET
from payout.errors import NetworkError, SubmissionError
from payout.rpc import SolanaRpc, probe_rpc

SIG = str(Keypair().sign_message(b"payout"))


def value(v):
    return SimpleNamespace(value=v)


class TestSolanaRpc(IsolatedAsyncioTestCase):
    def setUp(self):
        self.client = MagicMock()
        self.rpc = SolanaRpc(LOCALNET, client=self.client)

    async def test_missing_account(self):
        self.client.get_account_info = AsyncMock(return_value=value(None))
        self.assertIsNone(await self.rpc.get_account(Keypair().pubkey()))
        self.assertFalse(await self.rpc.account_exists(Keypair().pubkey()))

    async def test_rpc_errors_become_network_errors(self):
        self.client.get_balance = AsyncMock(side_effect=RPCException("node is behind"))
        with self.assertRaisesRegex(NetworkError, "getBalance failed on localnet"):
            await self.rpc.get_balance(Keypair().pubkey())

    async def test_preflight_failure_carries_logs(self):
        err = SimpleNamespace(
            message="Transaction simulation failed: Error processing Instruction 0",
            data=SimpleNamespace(logs=["Program log: Error: insufficient funds"]),
        )
        self.client.send_transaction = AsyncMock(side_effect=RPCException(err))
        with self.assertRaises(SubmissionError) as cm:
            await self.rpc.send_transaction(MagicMock())
        self.assertEqual(cm.exception.logs, ["Program log: Error: insufficient funds"])
        self.assertIn("Transaction simulation failed", str(cm.exception))

    async def test_unknown_signature(self):
        self.client.get_signature_statuses = AsyncMock(return_value=value([None]))
        self.assertIsNone(await self.rpc.signature_status(SIG))

    async def test_confirmed_status(self):
        status = SimpleNamespace(confirmation_status=TransactionConfirmationStatus.Confirmed, err=None)
        self.client.get_signature_statuses = AsyncMock(return_value=value([status]))
        result = await self.rpc.signature_status(SIG)
        self.assertEqual(result.confirmation_status, "confirmed")
        self.assertIsNone(result.err)

    async def test_failed_status_keeps_the_json_error(self):
        err = {"InstructionError": [0, {"Custom": 1}]}
        status = SimpleNamespace(
            confirmation_status=TransactionConfirmationStatus.Finalized,
            err=object(),
            to_json=lambda: json.dumps({"err": err, "confirmationStatus": "finalized"}),
        )
        self.client.get_signature_statuses = AsyncMock(return_value=value([status]))
        result = await self.rpc.signature_status(SIG)
        self.assertEqual(result.confirmation_status, "finalized")
        self.assertEqual(result.err, err)

    async def test_close(self):
        self.client.close = AsyncMock()
        await self.rpc.close()
        self.client.close.assert_awaited_once()


class TestProbeRpc(IsolatedAsyncioTestCase):
    def transport(self, *bodies):
        responses = iter(bodies)

        def handler(request):
            return httpx.Response(200, json=next(responses))

        real_client = httpx.AsyncClient
        return patch(
            "payout.rpc.httpx.AsyncClient",
            side_effect=lambda **kw: real_client(transport=httpx.MockTransport(handler), **kw),
        )

    @patch("payout.rpc.asyncio.sleep", new_callable=AsyncMock)
    async def test_healthy_after_a_retry(self, sleep):
        behind = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "Node is behind"}}
        with self.transport(behind, {"jsonrpc": "2.0", "id": 1, "result": "ok"}):
            await probe_rpc("http://rpc.test", timeout=LOCALNET.rpc_timeout, max_retries=3, retry_delay=0.5)
        sleep.assert_awaited_once_with(0.5)

    @patch("payout.rpc.asyncio.sleep", new_callable=AsyncMock)
    async def test_unhealthy_raises(self, sleep):
        behind = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "Node is behind"}}
        with self.transport(behind, behind):
            with self.assertRaisesRegex(NetworkError, "Node is behind"):
                await probe_rpc("http://rpc.test", timeout=LOCALNET.rpc_timeout, max_retries=2, retry_delay=0.5)
        self.assertEqual(sleep.await_count, 1)

    @patch("payout.rpc.asyncio.sleep", new_callable=AsyncMock)
    async def test_malformed_replies_are_reported_not_raised(self, sleep):
        replies = [
            {"jsonrpc": "2.0", "id": 1, "error": "Node is unhealthy"},
            ["not", "an", "object"],
            {"jsonrpc": "2.0", "id": 1},
        ]
        for reply in replies:
            with self.subTest(reply=reply):
                with self.transport(reply):
                    with self.assertRaises(NetworkError) as cm:
                        await probe_rpc("http://rpc.test", timeout=LOCALNET.rpc_timeout, max_retries=1)
                self.assertIn("is not healthy", str(cm.exception))
        sleep.assert_not_awaited()
