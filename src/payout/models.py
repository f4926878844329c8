from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, SecretStr, field_validator
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction
from spl.token.instructions import get_associated_token_address

from payout.constants import DEFAULT_TIMEOUT_MS, NATIVE, NATIVE_DESIGNATORS, Network
from payout.errors import ConfigurationError


class PayoutRequest(BaseModel):
    """One payment, as handed over by the CLI. Never mutated after construction."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    sender_secret: SecretStr
    recipient: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, allow_inf_nan=False)
    token: str = NATIVE
    network: Network = Network.MAINNET_BETA
    timeout_ms: PositiveInt = DEFAULT_TIMEOUT_MS

    @field_validator("token")
    @classmethod
    def _normalize_token(cls, v: str) -> str:
        if not v:
            raise ValueError("token is required")
        return NATIVE if v.upper() in NATIVE_DESIGNATORS else v

    @property
    def is_token_transfer(self) -> bool:
        return self.token != NATIVE

    @classmethod
    def parse(cls, **fields: Any) -> "PayoutRequest":
        """Build a request, turning pydantic's report into a ConfigurationError."""
        try:
            return cls(**fields)
        except pydantic.ValidationError as e:
            raise ConfigurationError(_describe(e)) from e


def _describe(e: pydantic.ValidationError) -> str:
    # Never echo input values, one of the fields is the wallet secret.
    problems = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "request"
        if loc == "amount":
            problems.append("Amount must be a positive number")
        elif loc == "network":
            problems.append(f"Invalid network specified. Must be one of: {', '.join(Network)}")
        elif loc == "timeout_ms":
            problems.append("Timeout must be a positive number of milliseconds")
        else:
            problems.append(f"Invalid {loc}: {err['msg']}")
    return "; ".join(problems)


@dataclass(frozen=True)
class TokenMetadata:
    mint: Pubkey
    supply: int
    decimals: int


@dataclass(frozen=True)
class ResolvedAccounts:
    sender: Keypair
    recipient: Pubkey
    token: TokenMetadata | None = None

    @property
    def sender_address(self) -> Pubkey:
        return self.sender.pubkey()

    @property
    def sender_token_account(self) -> Pubkey:
        if self.token is None:
            raise ValueError("sender_token_account requires token metadata")
        return get_associated_token_address(self.sender_address, self.token.mint)

    @property
    def recipient_token_account(self) -> Pubkey:
        if self.token is None:
            raise ValueError("recipient_token_account requires token metadata")
        return get_associated_token_address(self.recipient, self.token.mint)


@dataclass(frozen=True)
class FeeRequirement:
    """Native balance a transaction needs. All values in lamports.

    Derived fresh for every request from the assembled transaction and the
    account-existence checks made for it.
    """

    fee_estimate: int
    fee_buffer: int
    accounts_to_create: int = 0
    account_creation_cost: int = 0
    transfer_amount: int = 0

    @property
    def transaction_fee(self) -> int:
        return self.fee_estimate + self.fee_buffer

    @property
    def provisioning(self) -> int:
        return self.account_creation_cost * self.accounts_to_create

    @property
    def total(self) -> int:
        return self.transaction_fee + self.provisioning + self.transfer_amount

    def components(self) -> list[tuple[str, int]]:
        return [
            ("transaction fee", self.transaction_fee),
            ("account provisioning", self.provisioning),
            ("transfer amount", self.transfer_amount),
        ]

    def driver(self, balance: int) -> str | None:
        """Name the component at which the running requirement first exceeds ``balance``."""
        running = 0
        for label, value in self.components():
            running += value
            if value and running > balance:
                return label
        return None


@dataclass(frozen=True)
class TokenTransferPlan:
    sender_token_account: Pubkey
    recipient_token_account: Pubkey
    raw_amount: int
    recipient_funding: int = 0  # lamports sent to create the recipient's base account
    create_recipient_token_account: bool = False

    @property
    def accounts_to_create(self) -> int:
        return int(self.recipient_funding > 0) + int(self.create_recipient_token_account)


@dataclass(frozen=True)
class AssembledTransaction:
    transaction: VersionedTransaction
    blockhash: Hash
    instructions: list[Instruction] = field(default_factory=list)

    @property
    def signature(self) -> str:
        return str(self.transaction.signatures[0])


@dataclass(frozen=True)
class SignatureStatus:
    confirmation_status: str | None = None
    err: Any = None


@dataclass(frozen=True)
class PayoutOutcome:
    success: bool
    error: str = ""
    transaction: str = ""

    @classmethod
    def succeeded(cls, signature: str) -> "PayoutOutcome":
        return cls(success=True, transaction=signature)

    @classmethod
    def failed(cls, error: str) -> "PayoutOutcome":
        return cls(success=False, error=error or "Unknown error")

    def as_outputs(self) -> dict[str, str]:
        return {
            "success": str(self.success).lower(),
            "error": "" if self.success else self.error,
            "transaction": self.transaction if self.success else "",
        }
