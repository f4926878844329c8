import struct
from decimal import ROUND_FLOOR, Decimal

from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID

from payout.address import parse_address
from payout.constants import MINT_SIZE
from payout.errors import InvalidAddressError, InvalidTokenError, NetworkError
from payout.logging_config import EventSink
from payout.models import TokenMetadata
from payout.rpc import LedgerClient

# mint_authority: COption<Pubkey>, supply: u64, decimals: u8, is_initialized: bool
_MINT_HEAD = struct.Struct("<I32sQBB")


def to_raw_units(amount: Decimal, decimals: int) -> int:
    """Convert a human amount to integer base units, rounding down.

    Rounding down means a payout can come out one base unit short but never over.
    """
    return int(Decimal(amount).scaleb(decimals).to_integral_value(rounding=ROUND_FLOOR))


def decode_mint(mint: Pubkey, owner: Pubkey, data: bytes) -> TokenMetadata:
    if owner != TOKEN_PROGRAM_ID:
        raise InvalidTokenError(f"Invalid SPL token: {mint}. Error: account is owned by {owner}, not the token program")
    if len(data) < MINT_SIZE:
        raise InvalidTokenError(f"Invalid SPL token: {mint}. Error: account data is {len(data)} bytes, not a mint")
    _, _, supply, decimals, is_initialized = _MINT_HEAD.unpack_from(data)
    if not is_initialized:
        raise InvalidTokenError(f"Invalid SPL token: {mint}. Error: mint is not initialized")
    return TokenMetadata(mint=mint, supply=supply, decimals=decimals)


async def fetch_token_metadata(client: LedgerClient, token: str, events: EventSink) -> TokenMetadata:
    events.emit("token_address", token=token)
    try:
        mint = parse_address(token)
    except InvalidAddressError as e:
        raise InvalidTokenError(f"Invalid SPL token: {token}. Error: {e}") from e
    try:
        account = await client.get_account(mint)
    except NetworkError as e:
        raise InvalidTokenError(f"Invalid SPL token: {token}. Error: {e}") from e
    if account is None:
        raise InvalidTokenError(f"Invalid SPL token: {token}. Error: mint account not found")
    meta = decode_mint(mint, account.owner, account.data)
    events.emit("token_metadata", mint=mint, supply=meta.supply, decimals=meta.decimals)
    return meta
