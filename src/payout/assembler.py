"""Instruction lists and signed versioned transactions for a payout."""
from decimal import Decimal

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import TransferParams as TokenTransferParams
from spl.token.instructions import create_associated_token_account
from spl.token.instructions import transfer as token_transfer

from payout.constants import BASE_ACCOUNT_SIZE
from payout.errors import SenderTokenAccountMissing
from payout.logging_config import EventSink
from payout.models import AssembledTransaction, ResolvedAccounts, TokenTransferPlan
from payout.rpc import LedgerClient
from payout.token import to_raw_units


def native_transfer_instructions(sender: Pubkey, recipient: Pubkey, lamports: int) -> list[Instruction]:
    return [transfer(TransferParams(from_pubkey=sender, to_pubkey=recipient, lamports=lamports))]


async def plan_token_transfer(
    client: LedgerClient, accounts: ResolvedAccounts, amount: Decimal, events: EventSink
) -> TokenTransferPlan:
    """Work out which accounts the token transfer has to provision.

    The checks run one after another: the sender's token account first, since
    nothing else matters without it, then the recipient's base account, then
    the recipient's token account.
    """
    token = accounts.token
    if token is None:
        raise ValueError("plan_token_transfer requires token metadata")

    sender_ata = accounts.sender_token_account
    events.emit("sender_token_account", address=sender_ata)
    if not await client.account_exists(sender_ata):
        raise SenderTokenAccountMissing(str(sender_ata), str(token.mint))

    # Only a plain transfer can bring the recipient's base account into being,
    # since creating it outright would need the recipient's signature.
    recipient_funding = 0
    if not await client.account_exists(accounts.recipient):
        recipient_funding = await client.minimum_balance_for_rent_exemption(BASE_ACCOUNT_SIZE)
        events.emit("recipient_account_missing", address=accounts.recipient, funding_lamports=recipient_funding)

    recipient_ata = accounts.recipient_token_account
    events.emit("recipient_token_account", address=recipient_ata)
    create_ata = not await client.account_exists(recipient_ata)
    if create_ata:
        events.emit("recipient_token_account_missing", address=recipient_ata)

    return TokenTransferPlan(
        sender_token_account=sender_ata,
        recipient_token_account=recipient_ata,
        raw_amount=to_raw_units(amount, token.decimals),
        recipient_funding=recipient_funding,
        create_recipient_token_account=create_ata,
    )


def token_transfer_instructions(plan: TokenTransferPlan, accounts: ResolvedAccounts) -> list[Instruction]:
    """Funding, then token account creation, then the transfer itself."""
    token = accounts.token
    if token is None:
        raise ValueError("token_transfer_instructions requires token metadata")
    sender = accounts.sender_address

    instructions: list[Instruction] = []
    if plan.recipient_funding:
        instructions.extend(native_transfer_instructions(sender, accounts.recipient, plan.recipient_funding))
    if plan.create_recipient_token_account:
        instructions.append(create_associated_token_account(payer=sender, owner=accounts.recipient, mint=token.mint))
    instructions.append(
        token_transfer(
            TokenTransferParams(
                program_id=TOKEN_PROGRAM_ID,
                source=plan.sender_token_account,
                dest=plan.recipient_token_account,
                owner=sender,
                amount=plan.raw_amount,
            )
        )
    )
    return instructions


def build_transaction(instructions: list[Instruction], payer: Keypair, blockhash: Hash) -> AssembledTransaction:
    message = MessageV0.try_compile(payer.pubkey(), instructions, [], blockhash)
    transaction = VersionedTransaction(message, [payer])
    return AssembledTransaction(transaction=transaction, blockhash=blockhash, instructions=list(instructions))


async def assemble(
    client: LedgerClient, instructions: list[Instruction], payer: Keypair, events: EventSink
) -> AssembledTransaction:
    """Bind the instructions to the latest blockhash and sign once.

    The result expires with its blockhash, so it is built right before use and
    never kept around.
    """
    blockhash = await client.latest_blockhash()
    events.emit("latest_blockhash", blockhash=blockhash)
    assembled = build_transaction(instructions, payer, blockhash)
    events.emit("transaction_built", instructions=len(instructions), signature=assembled.signature)
    return assembled
