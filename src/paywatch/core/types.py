"""
Type definitions for paywatch.

This module contains the enums, data classes and amount helpers shared by
the intent store, the transaction sources and the lifecycle controller.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeAlias

from paywatch.core.exceptions import ValidationError

# Type alias for flexible SOL amount input
AmountType: TypeAlias = Decimal | int | str

LAMPORTS_PER_SOL = 1_000_000_000

# Base58 public key, 32 bytes encoded
SOLANA_ADDRESS_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_solana_address(address: str) -> bool:
    return bool(address) and bool(SOLANA_ADDRESS_PATTERN.match(address))


def sol_to_lamports(amount: AmountType) -> int:
    """
    Convert a SOL amount to lamports.

    Raises:
        ValidationError: If the amount is not a number, is not positive, or
            does not land on a whole lamport.
    """
    if isinstance(amount, bool):
        raise ValidationError("Amount must be a number", details={"amount": amount})
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError("Amount must be a number", details={"amount": amount}) from None
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be greater than 0", details={"amount": str(amount)})

    lamports = value * LAMPORTS_PER_SOL
    if lamports != lamports.to_integral_value():
        raise ValidationError(
            "Amount is finer than one lamport", details={"amount": str(amount)}
        )
    return int(lamports)


def lamports_to_sol(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_SOL


class Cluster(str, Enum):
    """Solana clusters with their public RPC endpoints."""

    MAINNET_BETA = "mainnet-beta"
    DEVNET = "devnet"
    TESTNET = "testnet"

    @classmethod
    def from_string(cls, value: str) -> "Cluster":
        value_lower = value.lower().replace("_", "-")
        if value_lower == "mainnet":
            return cls.MAINNET_BETA
        for member in cls:
            if member.value == value_lower:
                return member
        raise ValueError(f"Unknown cluster: {value}. Supported: {[c.value for c in cls]}")

    @property
    def rpc_url(self) -> str:
        return f"https://api.{self.value}.solana.com"


class IntentStatus(str, Enum):
    """Status of a PaymentIntent."""

    PENDING = "pending"  # Waiting for a matching ledger transaction
    CONFIRMED = "confirmed"  # Matched against a ledger transaction
    EXPIRED = "expired"  # TTL elapsed before a match was found

    def is_terminal(self) -> bool:
        return self in (IntentStatus.CONFIRMED, IntentStatus.EXPIRED)


def _parse_dt(val: str | datetime | None) -> datetime | None:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val
    return datetime.fromisoformat(val.replace("Z", "+00:00"))


@dataclass
class PaymentIntent:
    """An expected payment to the treasury, prior to ledger confirmation."""

    id: str
    payer_reference: str
    expected_amount: int  # lamports
    status: IntentStatus
    created_at: datetime
    expires_at: datetime
    confirmed_at: datetime | None = None
    matched_transaction_ref: str | None = None
    expired_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def expected_amount_sol(self) -> Decimal:
        return lamports_to_sol(self.expected_amount)

    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    def is_overdue(self, now: datetime) -> bool:
        return now > self.expires_at

    def mark_confirmed(self, transaction_ref: str, now: datetime) -> None:
        if self.status != IntentStatus.PENDING:
            raise ValueError(f"Cannot confirm intent {self.id} in status {self.status.value}")
        self.status = IntentStatus.CONFIRMED
        self.confirmed_at = now
        self.matched_transaction_ref = transaction_ref

    def mark_expired(self, now: datetime) -> None:
        if self.status != IntentStatus.PENDING:
            raise ValueError(f"Cannot expire intent {self.id} in status {self.status.value}")
        self.status = IntentStatus.EXPIRED
        self.expired_at = now

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "payer_reference": self.payer_reference,
            "expected_amount": self.expected_amount,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "matched_transaction_ref": self.matched_transaction_ref,
            "expired_at": self.expired_at.isoformat() if self.expired_at else None,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentIntent":
        return cls(
            id=data["id"],
            payer_reference=data["payer_reference"],
            expected_amount=int(data["expected_amount"]),
            status=IntentStatus(data["status"]),
            created_at=_parse_dt(data["created_at"]),
            expires_at=_parse_dt(data["expires_at"]),
            confirmed_at=_parse_dt(data.get("confirmed_at")),
            matched_transaction_ref=data.get("matched_transaction_ref"),
            expired_at=_parse_dt(data.get("expired_at")),
            metadata=data.get("metadata") or {},
        )


@dataclass
class BalanceChange:
    """Lamport delta of one account within one transaction."""

    account: str
    delta: int


@dataclass
class LedgerTransaction:
    """A candidate transaction as reported by a transaction source."""

    ref: str
    timestamp: datetime
    success: bool
    balance_changes: list[BalanceChange] = field(default_factory=list)
    signers: list[str] = field(default_factory=list)

    def received_by(self, address: str) -> int:
        """Net lamports credited to ``address`` (negative when it paid out)."""
        return sum(c.delta for c in self.balance_changes if c.account == address)

    def is_signed_by(self, address: str) -> bool:
        return address in self.signers


class MatchOutcome(str, Enum):
    """Result of checking one intent against one transaction source."""

    MATCHED = "matched"
    NO_MATCH = "no_match"
    INCONCLUSIVE = "inconclusive"  # Source failed or timed out


@dataclass
class MatchResult:
    """Outcome of a match attempt, with the winning transaction when matched."""

    outcome: MatchOutcome
    transaction: LedgerTransaction | None = None
    source: str | None = None
    error: str | None = None

    @property
    def is_definitive(self) -> bool:
        return self.outcome != MatchOutcome.INCONCLUSIVE

    @classmethod
    def inconclusive(cls, source: str | None = None, error: str | None = None) -> "MatchResult":
        return cls(outcome=MatchOutcome.INCONCLUSIVE, source=source, error=error)


@dataclass
class ConfirmationResult:
    """Result of a status check on one intent."""

    intent: PaymentIntent
    checked_ledger: bool = False
    source: str | None = None

    @property
    def confirmed(self) -> bool:
        return self.intent.status == IntentStatus.CONFIRMED

    @property
    def status(self) -> IntentStatus:
        return self.intent.status


@dataclass
class SweepReport:
    """Counts from one cleanup pass."""

    removed: int = 0
    expired: int = 0


@dataclass
class IntentReceipt:
    """What a payer needs to make the transfer."""

    id: str
    treasury_address: str
    expected_amount: int
    expires_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "treasury_address": self.treasury_address,
            "expected_amount": self.expected_amount,
            "expected_amount_sol": format(lamports_to_sol(self.expected_amount), "f"),
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass
class PaymentStatusView:
    """Public status of one intent."""

    id: str
    payer_reference: str
    confirmed: bool
    status: IntentStatus
    created_at: datetime
    confirmed_at: datetime | None = None
    matched_transaction_ref: str | None = None

    @classmethod
    def from_intent(cls, intent: PaymentIntent) -> "PaymentStatusView":
        return cls(
            id=intent.id,
            payer_reference=intent.payer_reference,
            confirmed=intent.status == IntentStatus.CONFIRMED,
            status=intent.status,
            created_at=intent.created_at,
            confirmed_at=intent.confirmed_at,
            matched_transaction_ref=intent.matched_transaction_ref,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "payer_reference": self.payer_reference,
            "confirmed": self.confirmed,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }
        if self.confirmed_at is not None:
            data["confirmed_at"] = self.confirmed_at.isoformat()
        if self.matched_transaction_ref is not None:
            data["matched_transaction_ref"] = self.matched_transaction_ref
        return data


@dataclass
class PendingIntentView:
    """A pending intent as listed for its payer."""

    id: str
    payer_reference: str
    expected_amount: int
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_intent(cls, intent: PaymentIntent) -> "PendingIntentView":
        return cls(
            id=intent.id,
            payer_reference=intent.payer_reference,
            expected_amount=intent.expected_amount,
            created_at=intent.created_at,
            expires_at=intent.expires_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "payer_reference": self.payer_reference,
            "expected_amount": self.expected_amount,
            "expected_amount_sol": format(lamports_to_sol(self.expected_amount), "f"),
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }
