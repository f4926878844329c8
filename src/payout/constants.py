from decimal import Decimal
from enum import StrEnum
from typing import Final


class Network(StrEnum):
    MAINNET_BETA = "mainnet-beta"
    DEVNET       = "devnet"
    TESTNET      = "testnet"
    LOCALNET     = "localnet"


class Commitment(StrEnum):
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


class ConfirmationState(StrEnum):
    PENDING   = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED    = "FAILED"
    TIMED_OUT = "TIMED_OUT"


# A status at any of these levels satisfies a "confirmed" requirement.
COMMITMENT_REACHED: Final = frozenset({Commitment.CONFIRMED, Commitment.FINALIZED})

LAMPORTS_PER_SOL: Final = 1_000_000_000
SOL_DECIMALS: Final = 9
# Largest amount an on-chain transfer can carry, in base units.
U64_MAX: Final = 2**64 - 1
NATIVE: Final = "NATIVE"
NATIVE_DESIGNATORS: Final = frozenset({NATIVE, "SOL"})

# SPL token mint account layout
MINT_SIZE: Final = 82
# A plain system account carries no data.
BASE_ACCOUNT_SIZE: Final = 0

POLL_INTERVAL = 1.0  # seconds between signature status checks
DEFAULT_TIMEOUT_MS = 300_000

EXPLORER_TX_URL: Final = "https://explorer.solana.com/tx/{signature}?cluster={cluster}"
SOLSCAN_TX_URL: Final = "https://solscan.io/tx/{signature}?cluster={cluster}"


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL


__all__ = [
    "BASE_ACCOUNT_SIZE",
    "COMMITMENT_REACHED",
    "DEFAULT_TIMEOUT_MS",
    "EXPLORER_TX_URL",
    "LAMPORTS_PER_SOL",
    "MINT_SIZE",
    "NATIVE",
    "NATIVE_DESIGNATORS",
    "POLL_INTERVAL",
    "SOLSCAN_TX_URL",
    "SOL_DECIMALS",
    "U64_MAX",
    "lamports_to_sol",

    ######
    "Commitment",
    "ConfirmationState",
    "Network",
]
