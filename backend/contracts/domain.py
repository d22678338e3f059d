# backend/contracts/domain.py
"""
Plain records and results passed between the contract store, the lifecycle
and the API layer.

The lifecycle never hands ORM instances around: the store turns rows into
the frozen records below and the lifecycle answers every call with an
`Outcome`, either a fresh snapshot or a `Failure` naming what went wrong.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .models import (
    ChangeRequestStatus,
    ContractStatus,
    MilestoneStatus,
    PaymentStatus,
    SignerRole,
)


# ---------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------

class FailureKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_TRANSITION = "invalid_transition"
    DUPLICATE_CONTRACT = "duplicate_contract"
    INVALID_PROPOSAL_STATE = "invalid_proposal_state"
    INVALID_CONTRACT = "invalid_contract"
    EMPTY_MESSAGE = "empty_message"
    PAYMENT_REQUIRED = "payment_required"
    PAYMENT_NOT_CONFIRMED = "payment_not_confirmed"
    ALREADY_SIGNED = "already_signed"
    ALREADY_PAID = "already_paid"
    VERSION_CONFLICT = "version_conflict"


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    detail: str


@dataclass(frozen=True)
class Outcome:
    contract: Optional["ContractRecord"] = None
    failure: Optional[Failure] = None
    # Operation-specific extras for the caller (e.g. a payment client secret)
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, contract: "ContractRecord", **data) -> "Outcome":
        return cls(contract=contract, data=data)

    @classmethod
    def fail(cls, kind: FailureKind, detail: str) -> "Outcome":
        return cls(failure=Failure(kind, detail))


# Raised by stores; the lifecycle turns them into failures.
class StoreError(Exception):
    pass


class VersionConflict(StoreError):
    def __init__(self, contract_id, expected_version):
        super().__init__(f"Contract {contract_id} changed since version {expected_version}")
        self.contract_id = contract_id
        self.expected_version = expected_version


class DuplicateContract(StoreError):
    def __init__(self, proposal_id):
        super().__init__(f"A contract already exists for proposal {proposal_id}")
        self.proposal_id = proposal_id


class ContractMissing(StoreError):
    pass


# ---------------------------------------------------------------------
# Caller identity (supplied by the auth gate)
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Caller:
    user_id: int
    role: str
    is_admin: bool = False


# ---------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class MilestoneRecord:
    title: str
    amount: Decimal
    due_date: date
    description: str = ""
    status: str = MilestoneStatus.PENDING


@dataclass(frozen=True)
class ChangeRequestRecord:
    message: str
    status: str = ChangeRequestStatus.PENDING
    created_at: Optional[datetime] = None
    author_id: Optional[int] = None
    resolved_at: Optional[datetime] = None


@dataclass(frozen=True)
class ContractRecord:
    id: Optional[int]
    proposal_id: int
    job_id: int
    business_id: int
    student_id: int
    title: str
    terms: str
    total_amount: Decimal
    start_date: date
    end_date: date
    description: str = ""
    milestones: Tuple[MilestoneRecord, ...] = ()
    status: str = ContractStatus.DRAFT
    payment_status: str = PaymentStatus.PENDING
    payment_intent_id: str = ""
    payment_reference: str = ""
    paid_at: Optional[datetime] = None
    business_signature: str = ""
    business_signed_at: Optional[datetime] = None
    student_signature: str = ""
    student_signed_at: Optional[datetime] = None
    change_requests: Tuple[ChangeRequestRecord, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    @property
    def is_fully_signed(self) -> bool:
        return bool(self.business_signature and self.student_signature)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def parties(self) -> Tuple[int, int]:
        return (self.business_id, self.student_id)

    def party_id(self, role: str) -> Optional[int]:
        if role == SignerRole.BUSINESS:
            return self.business_id
        if role == SignerRole.STUDENT:
            return self.student_id
        return None

    def signature_for(self, role: str) -> str:
        if role == SignerRole.BUSINESS:
            return self.business_signature
        if role == SignerRole.STUDENT:
            return self.student_signature
        return ""

    def counterparty_of(self, user_id: int) -> Optional[int]:
        if user_id == self.business_id:
            return self.student_id
        if user_id == self.student_id:
            return self.business_id
        return None


# ---------------------------------------------------------------------
# Transition graph
# ---------------------------------------------------------------------

TERMINAL_STATES = {ContractStatus.COMPLETED}

ALLOWED_TRANSITIONS = {
    ContractStatus.DRAFT: {ContractStatus.PENDING_REVIEW},
    ContractStatus.PENDING_REVIEW: {ContractStatus.APPROVED, ContractStatus.CHANGES_REQUESTED},
    ContractStatus.CHANGES_REQUESTED: {ContractStatus.DRAFT},
    ContractStatus.APPROVED: {ContractStatus.SIGNED},
    ContractStatus.SIGNED: {ContractStatus.COMPLETED},
}


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


# ---------------------------------------------------------------------
# Terms validation
# ---------------------------------------------------------------------

def validate_terms(
    *,
    title: str,
    terms: str,
    total_amount: Decimal,
    start_date: Optional[date],
    end_date: Optional[date],
    milestones: Tuple[MilestoneRecord, ...] = (),
) -> Optional[str]:
    """
    Return a message describing the first problem with the contract terms,
    or None when they can be persisted.
    """
    if not (title or "").strip():
        return "Title is required."
    if not (terms or "").strip():
        return "Terms are required."
    if total_amount is None or total_amount < 0:
        return "Total amount must be zero or more."
    if start_date is None or end_date is None:
        return "Start and end dates are required."
    if end_date < start_date:
        return "End date cannot be before the start date."

    for index, milestone in enumerate(milestones):
        if not (milestone.title or "").strip():
            return f"Milestone {index} needs a title."
        if milestone.amount is None or milestone.amount < 0:
            return f"Milestone {index} amount must be zero or more."
        if milestone.due_date is None:
            return f"Milestone {index} needs a due date."

    if milestones:
        milestone_total = sum((m.amount for m in milestones), Decimal("0"))
        if milestone_total != total_amount:
            return (
                f"Total amount {total_amount} does not match the milestone sum {milestone_total}."
            )
    return None
