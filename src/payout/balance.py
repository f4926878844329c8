"""Balance sufficiency checks.

The native coin check and the token check are kept apart so a failure says
either "top up SOL for fees" or "top up the token", never both at once.
"""
import logging

from payout.config import NetworkConfig
from payout.constants import lamports_to_sol
from payout.errors import InsufficientNativeBalance, InsufficientTokenBalance
from payout.logging_config import EventSink
from payout.models import FeeRequirement, TokenMetadata


def native_requirement(
    fee_estimate: int,
    network: NetworkConfig,
    *,
    transfer_amount: int = 0,
    accounts_to_create: int = 0,
) -> FeeRequirement:
    return FeeRequirement(
        fee_estimate=fee_estimate,
        fee_buffer=network.fee_buffer,
        accounts_to_create=accounts_to_create,
        account_creation_cost=network.account_creation_cost,
        transfer_amount=transfer_amount,
    )


def _sol(lamports: int) -> str:
    return f"{lamports_to_sol(lamports):f} SOL ({lamports} lamports)"


def describe_requirement(req: FeeRequirement) -> str:
    parts = [f"{_sol(req.fee_estimate)} estimated fee", f"{_sol(req.fee_buffer)} fee buffer"]
    if req.accounts_to_create:
        parts.append(f"{_sol(req.provisioning)} for creating {req.accounts_to_create} account(s)")
    if req.transfer_amount:
        parts.append(f"{_sol(req.transfer_amount)} transfer amount")
    return " + ".join(parts)


def check_native_balance(
    balance: int, req: FeeRequirement, network: NetworkConfig, events: EventSink | None = None
) -> None:
    if events is not None:
        events.emit(
            "native_requirement",
            balance=balance,
            fee_estimate=req.fee_estimate,
            fee_buffer=req.fee_buffer,
            accounts_to_create=req.accounts_to_create,
            provisioning=req.provisioning,
            transfer_amount=req.transfer_amount,
            total=req.total,
        )
    if balance >= req.total:
        return
    driver = req.driver(balance)
    message = (
        f"Insufficient funds in sender wallet on {network.name} network. "
        f"Balance: {_sol(balance)}, Required: {_sol(req.total)} "
        f"({describe_requirement(req)}). Shortfall of {req.total - balance} lamports is driven by the {driver}."
    )
    if events is not None:
        events.emit("insufficient_native_balance", level=logging.ERROR, balance=balance, total=req.total, driver=driver)
    raise InsufficientNativeBalance(message, balance=balance, requirement=req)


def check_token_balance(balance: int, required: int, token: TokenMetadata, events: EventSink | None = None) -> None:
    """Both amounts are raw integer units of the token."""
    if events is not None:
        events.emit("token_requirement", mint=token.mint, balance=balance, required=required)
    if balance >= required:
        return
    raise InsufficientTokenBalance(
        f"Insufficient token balance for {token.mint}. "
        f"Balance: {balance} raw units, Required: {required} raw units ({token.decimals} decimals).",
        mint=str(token.mint),
        balance=balance,
        required=required,
    )
