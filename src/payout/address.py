import json
import logging

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from payout.constants import lamports_to_sol
from payout.errors import ConfigurationError, InvalidAddressError
from payout.logging_config import EventSink
from payout.rpc import LedgerClient

PUBKEY_LENGTH = 32
SECRET_KEY_LENGTH = 64
SEED_LENGTH = 32

BAD_SECRET = "Invalid wallet secret format. Please provide a valid base58 encoded private key."


def parse_address(address: str) -> Pubkey:
    """Decode a base58 address into a Pubkey without judging what kind of account it is."""
    try:
        raw = base58.b58decode(address.strip())
    except ValueError as e:
        raise InvalidAddressError(f"Invalid wallet address format: {address}") from e
    if len(raw) != PUBKEY_LENGTH:
        raise InvalidAddressError(f"Invalid wallet address format: {address}")
    return Pubkey(raw)


def validate_address(address: str) -> Pubkey:
    """A wallet address must also be a usable ed25519 verification key.

    Program derived addresses decode fine but sit off the curve, so nothing can
    ever sign for them.
    """
    pubkey = parse_address(address)
    if not pubkey.is_on_curve():
        raise InvalidAddressError(f"Invalid wallet address format: {address} is not on the ed25519 curve")
    return pubkey


def load_keypair(secret: str) -> Keypair:
    """Load the sender keypair from a base58 secret key, a base58 seed or an id.json byte array."""
    secret = secret.strip()
    if not secret:
        raise ConfigurationError(BAD_SECRET)
    try:
        if secret.startswith("["):
            raw = bytes(json.loads(secret))
        else:
            raw = base58.b58decode(secret)
        if len(raw) == SECRET_KEY_LENGTH:
            return Keypair.from_bytes(raw)
        if len(raw) == SEED_LENGTH:
            return Keypair.from_seed(raw)
    except (ValueError, TypeError):
        # decoder messages may echo secret material
        raise ConfigurationError(BAD_SECRET) from None
    raise ConfigurationError(BAD_SECRET)


async def log_wallet_balance(client: LedgerClient, pubkey: Pubkey, events: EventSink, *, network: str) -> int:
    """Look up a balance for diagnostics only. A zero balance is never an error here."""
    balance = await client.get_balance(pubkey)
    events.emit("wallet_balance", address=pubkey, sol=lamports_to_sol(balance), lamports=balance)
    if balance == 0:
        events.emit("wallet_empty", level=logging.WARNING, address=pubkey, network=network)
    return balance
