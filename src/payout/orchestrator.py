"""Single payout pipeline.

``initialize`` resolves and validates everything that can be checked before
money moves; ``execute_payment`` then runs guard -> assemble -> submit ->
confirm for either a native SOL transfer or an SPL token transfer. Any stage
failure short-circuits the rest, and nothing is retried here.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field

from payout.address import load_keypair, log_wallet_balance, validate_address
from payout.assembler import (
    assemble,
    native_transfer_instructions,
    plan_token_transfer,
    token_transfer_instructions,
)
from payout.balance import check_native_balance, check_token_balance, native_requirement
from payout.config import NetworkConfig
from payout.constants import EXPLORER_TX_URL, SOL_DECIMALS, SOLSCAN_TX_URL, U64_MAX
from payout.errors import ConfigurationError, NetworkError, PayoutError
from payout.logging_config import EventSink, LogEventSink
from payout.models import AssembledTransaction, PayoutOutcome, PayoutRequest, ResolvedAccounts
from payout.poller import Clock, Sleep, wait_for_confirmation
from payout.rpc import LedgerClient, SolanaRpc
from payout.submitter import submit
from payout.token import fetch_token_metadata, to_raw_units


@dataclass(frozen=True)
class PayoutContext:
    """Capabilities a payout runs against. Holds no request state."""

    client: LedgerClient
    network: NetworkConfig
    events: EventSink = field(default_factory=LogEventSink)
    sleep: Sleep = asyncio.sleep
    clock: Clock = time.monotonic


def explorer_links(signature: str, network: NetworkConfig) -> dict[str, str]:
    cluster = network.explorer_cluster
    return {
        "explorer": EXPLORER_TX_URL.format(signature=signature, cluster=cluster),
        "solscan": SOLSCAN_TX_URL.format(signature=signature, cluster=cluster),
    }


def native_lamports(request: PayoutRequest) -> int:
    lamports = to_raw_units(request.amount, SOL_DECIMALS)
    if lamports <= 0:
        raise ConfigurationError(f"Amount {request.amount} SOL is smaller than one lamport")
    if lamports > U64_MAX:
        raise ConfigurationError(f"Amount {request.amount} SOL is larger than a transfer can carry")
    return lamports


async def initialize(ctx: PayoutContext, request: PayoutRequest) -> ResolvedAccounts:
    """Validate amount, sender, recipient and token.

    The native amount and both addresses get their local checks before any
    network call, so bad input fails without touching the ledger.
    """
    ev = ctx.events
    ev.emit("payout_started", network=ctx.network.name, rpc_url=ctx.network.rpc_url)
    if request.is_token_transfer:
        ev.emit("token_transfer", token=request.token, amount=request.amount)
    else:
        ev.emit("sol_transfer", amount=request.amount)
        native_lamports(request)

    sender = load_keypair(request.sender_secret.get_secret_value())
    validate_address(str(sender.pubkey()))
    recipient = validate_address(request.recipient)
    ev.emit("wallets", sender=sender.pubkey(), recipient=recipient)

    await log_wallet_balance(ctx.client, sender.pubkey(), ev, network=ctx.network.name)
    await log_wallet_balance(ctx.client, recipient, ev, network=ctx.network.name)

    token = None
    if request.is_token_transfer:
        token = await fetch_token_metadata(ctx.client, request.token, ev)
    ev.emit("initialized")
    return ResolvedAccounts(sender=sender, recipient=recipient, token=token)


async def _estimate_fee(ctx: PayoutContext, assembled: AssembledTransaction) -> int:
    fee = await ctx.client.fee_for_message(assembled.transaction.message)
    if fee is None:
        raise NetworkError(
            f"Unable to estimate the transaction fee on {ctx.network.name}: blockhash {assembled.blockhash} is no longer valid"
        )
    ctx.events.emit("fee_estimate", lamports=fee)
    return fee


async def _submit_and_confirm(ctx: PayoutContext, request: PayoutRequest, assembled: AssembledTransaction) -> str:
    signature = await submit(ctx.client, assembled, ctx.events)
    ctx.events.emit("transaction_links", **explorer_links(signature, ctx.network))
    await wait_for_confirmation(
        ctx.client,
        signature,
        request.timeout_ms,
        events=ctx.events,
        sleep=ctx.sleep,
        clock=ctx.clock,
    )
    return signature


async def execute_native_transfer(ctx: PayoutContext, request: PayoutRequest, accounts: ResolvedAccounts) -> str:
    lamports = native_lamports(request)
    instructions = native_transfer_instructions(accounts.sender_address, accounts.recipient, lamports)
    assembled = await assemble(ctx.client, instructions, accounts.sender, ctx.events)

    fee = await _estimate_fee(ctx, assembled)
    balance = await ctx.client.get_balance(accounts.sender_address)
    req = native_requirement(fee, ctx.network, transfer_amount=lamports)
    check_native_balance(balance, req, ctx.network, ctx.events)

    return await _submit_and_confirm(ctx, request, assembled)


async def execute_token_transfer(ctx: PayoutContext, request: PayoutRequest, accounts: ResolvedAccounts) -> str:
    token = accounts.token
    if token is None:
        raise ConfigurationError("Token mint information not initialized")

    plan = await plan_token_transfer(ctx.client, accounts, request.amount, ctx.events)
    if plan.raw_amount <= 0:
        raise ConfigurationError(
            f"Amount {request.amount} is smaller than one base unit of {token.mint} ({token.decimals} decimals)"
        )
    if plan.raw_amount > U64_MAX:
        raise ConfigurationError(f"Amount {request.amount} of {token.mint} is larger than a transfer can carry")

    token_balance = await ctx.client.get_token_balance(plan.sender_token_account)
    check_token_balance(token_balance, plan.raw_amount, token, ctx.events)

    instructions = token_transfer_instructions(plan, accounts)
    assembled = await assemble(ctx.client, instructions, accounts.sender, ctx.events)

    fee = await _estimate_fee(ctx, assembled)
    balance = await ctx.client.get_balance(accounts.sender_address)
    req = native_requirement(fee, ctx.network, accounts_to_create=plan.accounts_to_create)
    check_native_balance(balance, req, ctx.network, ctx.events)

    return await _submit_and_confirm(ctx, request, assembled)


async def execute_payment(ctx: PayoutContext, request: PayoutRequest, accounts: ResolvedAccounts) -> str:
    if request.is_token_transfer:
        signature = await execute_token_transfer(ctx, request, accounts)
    else:
        signature = await execute_native_transfer(ctx, request, accounts)

    ctx.events.emit(
        "transaction_summary",
        type=f"{request.token} token transfer" if request.is_token_transfer else "SOL transfer",
        amount=f"{request.amount} {request.token if request.is_token_transfer else 'SOL'}",
        sender=accounts.sender_address,
        recipient=accounts.recipient,
        network=ctx.network.name,
        signature=signature,
    )
    return signature


async def run_payout(
    request: PayoutRequest,
    network: NetworkConfig,
    *,
    client: LedgerClient | None = None,
    events: EventSink | None = None,
    sleep: Sleep = asyncio.sleep,
    clock: Clock = time.monotonic,
) -> PayoutOutcome:
    """Run one payout end to end and fold the result into a PayoutOutcome.

    A client passed in is left open for the caller; one created here is
    closed before returning.
    """
    events = events or LogEventSink()
    owned = client is None
    if client is None:
        client = SolanaRpc(network)
    ctx = PayoutContext(client=client, network=network, events=events, sleep=sleep, clock=clock)
    try:
        accounts = await initialize(ctx, request)
        signature = await execute_payment(ctx, request, accounts)
    except PayoutError as e:
        events.emit("payout_failed", level=logging.ERROR, error_type=type(e).__name__, error=str(e))
        return PayoutOutcome.failed(str(e))
    finally:
        if owned:
            await client.close()
    return PayoutOutcome.succeeded(signature)
