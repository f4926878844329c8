"""In-memory stand-ins for the ledger, the event sink and the poller's sleep."""

from __future__ import annotations

import logging
import struct

from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.transaction import VersionedTransaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import get_associated_token_address

from payout.config import NetworkConfig
from payout.constants import LAMPORTS_PER_SOL
from payout.models import SignatureStatus
from payout.rpc import AccountData

TOKEN_ACCOUNT_SIZE = 165

LOCALNET = NetworkConfig(
    name="localnet",
    rpc_url="http://127.0.0.1:8899",
    fee_buffer=5000,
    account_creation_cost=2_039_280,
    explorer_cluster="custom",
    rpc_timeout=30.0,
)


def sol(amount: float) -> int:
    return int(amount * LAMPORTS_PER_SOL)


def mint_data(decimals: int, supply: int = 1_000_000_000_000, initialized: bool = True) -> bytes:
    authority = bytes(Keypair().pubkey())
    return struct.pack("<I32sQBBI32s", 1, authority, supply, decimals, int(initialized), 0, bytes(32))


def off_curve_address() -> Pubkey:
    pda, _ = Pubkey.find_program_address([b"payout-test"], TOKEN_PROGRAM_ID)
    return pda


class FakeLedger:
    """LedgerClient that keeps accounts in dicts and records every call by name."""

    def __init__(self, *, fee: int | None = 5000, rent: int = 890_880, statuses: list | None = None):
        self.accounts: dict[Pubkey, AccountData] = {}
        self.token_balances: dict[Pubkey, int] = {}
        self.fee = fee
        self.rent = rent
        self.statuses: list[SignatureStatus | None] = list(statuses or [SignatureStatus("confirmed")])
        self.send_error: Exception | None = None
        self.sent: list[VersionedTransaction] = []
        self.calls: list[str] = []
        self.closed = False

    # -- setup helpers --------------------------------------------------------
    def fund(self, address: Pubkey, lamports: int) -> None:
        self.accounts[address] = AccountData(owner=SYSTEM_PROGRAM_ID, data=b"", lamports=lamports)

    def add_mint(self, mint: Pubkey, decimals: int, *, owner: Pubkey = TOKEN_PROGRAM_ID, data: bytes | None = None) -> None:
        self.accounts[mint] = AccountData(owner=owner, data=mint_data(decimals) if data is None else data, lamports=1_461_600)

    def add_token_account(self, owner: Pubkey, mint: Pubkey, amount: int) -> Pubkey:
        ata = get_associated_token_address(owner, mint)
        self.accounts[ata] = AccountData(owner=TOKEN_PROGRAM_ID, data=bytes(TOKEN_ACCOUNT_SIZE), lamports=2_039_280)
        self.token_balances[ata] = amount
        return ata

    # -- LedgerClient ---------------------------------------------------------
    async def get_balance(self, address: Pubkey) -> int:
        self.calls.append("get_balance")
        acct = self.accounts.get(address)
        return acct.lamports if acct else 0

    async def get_account(self, address: Pubkey) -> AccountData | None:
        self.calls.append("get_account")
        return self.accounts.get(address)

    async def account_exists(self, address: Pubkey) -> bool:
        self.calls.append("account_exists")
        return address in self.accounts

    async def get_token_balance(self, token_account: Pubkey) -> int:
        self.calls.append("get_token_balance")
        return self.token_balances[token_account]

    async def latest_blockhash(self) -> Hash:
        self.calls.append("latest_blockhash")
        return Hash.new_unique()

    async def fee_for_message(self, message) -> int | None:
        self.calls.append("fee_for_message")
        return self.fee

    async def minimum_balance_for_rent_exemption(self, size: int) -> int:
        self.calls.append("minimum_balance_for_rent_exemption")
        return self.rent

    async def send_transaction(self, transaction: VersionedTransaction) -> str:
        self.calls.append("send_transaction")
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(transaction)
        return str(transaction.signatures[0])

    async def signature_status(self, signature: str) -> SignatureStatus | None:
        self.calls.append("signature_status")
        # the last queued status repeats forever
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0] if self.statuses else None

    async def close(self) -> None:
        self.closed = True


class RecordingEvents:
    def __init__(self) -> None:
        self.events: list[tuple[str, int, dict]] = []

    def emit(self, event: str, *, level: int = logging.INFO, **fields) -> None:
        self.events.append((event, level, fields))

    def names(self) -> list[str]:
        return [name for name, _, _ in self.events]

    def at(self, level: int) -> list[str]:
        return [name for name, lvl, _ in self.events if lvl == level]


class FakeSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
