# backend/contracts/lifecycle.py
"""
Contract lifecycle: the only place contract status, payment status and
signatures change.

Every operation loads the contract, checks the caller and the current state,
builds a change set and persists it against the version it read. Expected
problems come back as `Outcome.fail(...)`; nothing here raises for them.

    draft -> pending_review -> approved -> (paid) -> signed -> completed
                  |
                  +-> changes_requested -> draft
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.conf import settings
from django.utils import timezone

from .domain import (
    Caller,
    ChangeRequestRecord,
    ContractMissing,
    ContractRecord,
    DuplicateContract,
    FailureKind,
    MilestoneRecord,
    Outcome,
    VersionConflict,
    can_transition,
    validate_terms,
)
from .models import ContractStatus, MilestoneStatus, PaymentStatus, SignerRole

logger = logging.getLogger(__name__)

# Milestone progress while the contract is signed: who may move it where.
MILESTONE_TRANSITIONS = {
    MilestoneStatus.PENDING: {MilestoneStatus.IN_PROGRESS, MilestoneStatus.COMPLETED},
    MilestoneStatus.IN_PROGRESS: {MilestoneStatus.COMPLETED},
    MilestoneStatus.COMPLETED: {MilestoneStatus.APPROVED},
}
MILESTONE_SETTER = {
    MilestoneStatus.IN_PROGRESS: SignerRole.STUDENT,
    MilestoneStatus.COMPLETED: SignerRole.STUDENT,
    MilestoneStatus.APPROVED: SignerRole.BUSINESS,
}

REVISABLE_FIELDS = ("title", "description", "terms", "total_amount", "start_date", "end_date")


def milestones_from_proposal(raw) -> tuple:
    """Proposal milestones are stored as JSON strings; lift them into records."""
    out = []
    for item in raw or []:
        try:
            amount = Decimal(str(item.get("amount", "0")))
        except (InvalidOperation, TypeError):
            amount = None
        due = item.get("due_date")
        if isinstance(due, str):
            try:
                due = date.fromisoformat(due)
            except ValueError:
                due = None
        out.append(MilestoneRecord(
            title=item.get("title", ""),
            amount=amount,
            due_date=due,
            description=item.get("description", ""),
        ))
    return tuple(out)


class ContractLifecycle:
    def __init__(self, store, proposals=None, notifier=None, payments=None,
                 clock=timezone.now, sign_retries: Optional[int] = None):
        self.store = store
        self.proposals = proposals
        self.notifier = notifier
        self.payments = payments
        self.clock = clock
        if sign_retries is None:
            sign_retries = getattr(settings, "CONTRACT_SIGN_RETRIES", 3)
        self.sign_retries = max(0, int(sign_retries))

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _load(self, contract_id, caller: Optional[Caller]):
        if caller is None:
            return None, Outcome.fail(FailureKind.FORBIDDEN, "Authentication required.")
        record = self.store.get(contract_id)
        if record is None:
            return None, Outcome.fail(FailureKind.NOT_FOUND, f"Contract {contract_id} not found.")
        return record, None

    @staticmethod
    def _is_party(record: ContractRecord, caller: Caller, role: str) -> bool:
        return caller.role == role and record.party_id(role) == caller.user_id

    def _reject(self, record, caller, op, kind, detail):
        logger.info(
            "Contract %s: %s rejected for user %s (%s)",
            getattr(record, "id", None), op, getattr(caller, "user_id", None), kind.value,
        )
        return Outcome.fail(kind, detail)

    def _write(self, record: ContractRecord, caller: Caller, op: str, changes: dict,
               event: Optional[str] = None, recipients=(), **kwargs) -> Outcome:
        try:
            updated = self.store.update(record.id, changes, record.version, **kwargs)
        except VersionConflict:
            return self._reject(record, caller, op, FailureKind.VERSION_CONFLICT,
                                "Contract was modified by someone else; reload and retry.")
        except ContractMissing:
            return Outcome.fail(FailureKind.NOT_FOUND, f"Contract {record.id} not found.")
        self._log_success(record, updated, caller, op)
        if event:
            self._notify(event, updated.id, recipients)
        return Outcome.success(updated)

    @staticmethod
    def _log_success(before: ContractRecord, after: ContractRecord, caller: Caller, op: str):
        logger.info(
            "Contract %s: %s by user %s (%s/%s -> %s/%s)",
            after.id, op, caller.user_id,
            before.status, before.payment_status, after.status, after.payment_status,
        )

    def _notify(self, event, contract_id, recipients):
        if self.notifier is None:
            return
        recipients = [r for r in recipients if r is not None]
        if not recipients:
            return
        try:
            self.notifier.notify(event, contract_id, recipients)
        except Exception:
            logger.exception("Notification %s for contract %s failed", event, contract_id)

    # ------------------------------------------------------------------
    # creation
    # ------------------------------------------------------------------

    def create_from_proposal(self, proposal_id, caller: Optional[Caller], draft: Optional[dict] = None) -> Outcome:
        """
        Open a draft contract for an accepted proposal. `draft` may carry
        title, description, terms, total_amount, start_date, end_date and
        milestones (MilestoneRecord tuple); anything missing is taken from
        the proposal.
        """
        if caller is None:
            return Outcome.fail(FailureKind.FORBIDDEN, "Authentication required.")
        draft = dict(draft or {})

        proposal = self.proposals.get(proposal_id) if self.proposals else None
        if proposal is None:
            return Outcome.fail(FailureKind.INVALID_PROPOSAL_STATE, f"Proposal {proposal_id} not found.")
        if caller.role != SignerRole.BUSINESS or proposal.business_id != caller.user_id:
            return Outcome.fail(FailureKind.FORBIDDEN, "Only the business that posted the job can create its contract.")
        if self.store.get_by_proposal(proposal_id) is not None:
            return Outcome.fail(FailureKind.DUPLICATE_CONTRACT, "A contract already exists for this proposal.")
        if not proposal.is_accepted:
            return Outcome.fail(FailureKind.INVALID_PROPOSAL_STATE, "Proposal has not been accepted.")

        milestones = draft.get("milestones")
        if milestones is None:
            milestones = milestones_from_proposal(proposal.milestones)
        milestones = tuple(replace(m, status=MilestoneStatus.PENDING) for m in milestones)

        now = self.clock()
        record = ContractRecord(
            id=None,
            proposal_id=proposal.id,
            job_id=proposal.job_id,
            business_id=proposal.business_id,
            student_id=proposal.student_id,
            title=draft.get("title") or proposal.job_title,
            description=draft.get("description") or "",
            terms=draft.get("terms") or "",
            total_amount=draft.get("total_amount", proposal.quote_amount),
            start_date=draft.get("start_date"),
            end_date=draft.get("end_date"),
            milestones=milestones,
            created_at=now,
            updated_at=now,
        )
        problem = self._terms_problem(record)
        if problem:
            return Outcome.fail(FailureKind.INVALID_CONTRACT, problem)

        try:
            created = self.store.create(record)
        except DuplicateContract:
            return Outcome.fail(FailureKind.DUPLICATE_CONTRACT, "A contract already exists for this proposal.")

        logger.info("Contract %s created from proposal %s by user %s", created.id, proposal_id, caller.user_id)
        self._notify("contract_created", created.id, [created.student_id])
        return Outcome.success(created)

    @staticmethod
    def _terms_problem(record: ContractRecord) -> Optional[str]:
        return validate_terms(
            title=record.title,
            terms=record.terms,
            total_amount=record.total_amount,
            start_date=record.start_date,
            end_date=record.end_date,
            milestones=record.milestones,
        )

    # ------------------------------------------------------------------
    # review cycle
    # ------------------------------------------------------------------

    def submit_for_review(self, contract_id, caller: Optional[Caller]) -> Outcome:
        record, failure = self._load(contract_id, caller)
        if failure:
            return failure
        if not self._is_party(record, caller, SignerRole.BUSINESS):
            return self._reject(record, caller, "submit", FailureKind.FORBIDDEN,
                                "Only the contract's business can submit it for review.")
        if not can_transition(from_status=record.status, to_status=ContractStatus.PENDING_REVIEW):
            return self._reject(record, caller, "submit", FailureKind.INVALID_TRANSITION,
                                f"Cannot submit a contract that is {record.status}.")
        return self._write(
            record, caller, "submit", {"status": ContractStatus.PENDING_REVIEW},
            event="submitted_for_review", recipients=[record.student_id],
        )

    def accept(self, contract_id, caller: Optional[Caller]) -> Outcome:
        record, failure = self._load(contract_id, caller)
        if failure:
            return failure
        if not self._is_party(record, caller, SignerRole.STUDENT):
            return self._reject(record, caller, "accept", FailureKind.FORBIDDEN,
                                "Only the contract's student can accept it.")
        if record.status != ContractStatus.PENDING_REVIEW:
            return self._reject(record, caller, "accept", FailureKind.INVALID_TRANSITION,
                                f"Cannot accept a contract that is {record.status}.")
        return self._write(
            record, caller, "accept", {"status": ContractStatus.APPROVED},
            event="accepted", recipients=[record.business_id],
        )

    def request_changes(self, contract_id, caller: Optional[Caller], message) -> Outcome:
        record, failure = self._load(contract_id, caller)
        if failure:
            return failure
        if not self._is_party(record, caller, SignerRole.STUDENT):
            return self._reject(record, caller, "request_changes", FailureKind.FORBIDDEN,
                                "Only the contract's student can request changes.")
        message = (message or "").strip()
        if not message:
            return self._reject(record, caller, "request_changes", FailureKind.EMPTY_MESSAGE,
                                "Describe the changes you need.")
        if record.status != ContractStatus.PENDING_REVIEW:
            return self._reject(record, caller, "request_changes", FailureKind.INVALID_TRANSITION,
                                f"Cannot request changes on a contract that is {record.status}.")
        change = ChangeRequestRecord(message=message, created_at=self.clock(), author_id=caller.user_id)
        return self._write(
            record, caller, "request_changes", {"status": ContractStatus.CHANGES_REQUESTED},
            event="changes_requested", recipients=[record.business_id],
            append_change_request=change,
        )

    def revise_draft(self, contract_id, caller: Optional[Caller], fields: Optional[dict] = None) -> Outcome:
        """
        Edit the terms. From changes_requested this moves the contract back to
        draft and resolves the pending change requests; while already a draft
        it edits in place.
        """
        record, failure = self._load(contract_id, caller)
        if failure:
            return failure
        if not self._is_party(record, caller, SignerRole.BUSINESS):
            return self._reject(record, caller, "revise", FailureKind.FORBIDDEN,
                                "Only the contract's business can revise it.")
        if record.status not in (ContractStatus.DRAFT, ContractStatus.CHANGES_REQUESTED):
            return self._reject(record, caller, "revise", FailureKind.INVALID_TRANSITION,
                                f"Cannot revise a contract that is {record.status}.")

        fields = dict(fields or {})
        changes = {k: fields[k] for k in REVISABLE_FIELDS if k in fields}
        milestones = fields.get("milestones")
        if milestones is not None:
            milestones = tuple(replace(m, status=MilestoneStatus.PENDING) for m in milestones)

        candidate = replace(record, **changes)
        if milestones is not None:
            candidate = replace(candidate, milestones=milestones)
        problem = self._terms_problem(candidate)
        if problem:
            return self._reject(record, caller, "revise", FailureKind.INVALID_CONTRACT, problem)

        reopening = record.status == ContractStatus.CHANGES_REQUESTED
        changes["status"] = ContractStatus.DRAFT
        return self._write(
            record, caller, "revise", changes,
            event="revised" if reopening else None, recipients=[record.student_id],
            milestones=milestones, resolve_change_requests=reopening,
        )

    # ------------------------------------------------------------------
    # payment
    # ------------------------------------------------------------------

    def _payment_gate(self, record, caller, op) -> Optional[Outcome]:
        if not self._is_party(record, caller, SignerRole.BUSINESS):
            return self._reject(record, caller, op, FailureKind.FORBIDDEN,
                                "Only the contract's business can pay for it.")
        if record.is_paid:
            return self._reject(record, caller, op, FailureKind.ALREADY_PAID,
                                "This contract has already been paid.")
        if record.status != ContractStatus.APPROVED:
            return self._reject(record, caller, op, FailureKind.INVALID_TRANSITION,
                                f"Payment opens once the contract is approved (currently {record.status}).")
        return None

    def initiate_payment(self, contract_id, caller: Optional[Caller]) -> Outcome:
        """
        Create a payment intent with the processor and remember its id. An
        unpaid contract that already has an intent gets that intent back, so
        a retried checkout never opens a second payable charge.
        """
        record, failure = self._load(contract_id, caller)
        if failure:
            return failure
        failure = self._payment_gate(record, caller, "initiate_payment")
        if failure:
            return failure

        if record.payment_intent_id:
            if self.payments is None:
                intent_id, client_secret = record.payment_intent_id, ""
            else:
                intent_id, client_secret = self.payments.resume_intent(record)
            if intent_id == record.payment_intent_id:
                logger.info("Contract %s: resuming payment intent %s for user %s",
                            record.id, intent_id, caller.user_id)
                return Outcome.success(record, client_secret=client_secret, payment_intent_id=intent_id)
        elif self.payments is None:
            intent_id, client_secret = f"pi_dev_{record.id}_{record.version}", ""
        else:
            intent_id, client_secret = self.payments.create_intent(record)

        outcome = self._write(record, caller, "initiate_payment", {"payment_intent_id": intent_id})
        if not outcome.ok:
            return outcome
        return Outcome.success(outcome.contract, client_secret=client_secret, payment_intent_id=intent_id)

    def complete_payment(self, contract_id, caller: Optional[Caller], reference) -> Outcome:
        record, failure = self._load(contract_id, caller)
        if failure:
            return failure
        failure = self._payment_gate(record, caller, "complete_payment")
        if failure:
            return failure

        reference = (reference or "").strip()
        confirmed = bool(reference)
        if confirmed and record.payment_intent_id and reference != record.payment_intent_id:
            return self._reject(record, caller, "complete_payment", FailureKind.PAYMENT_NOT_CONFIRMED,
                                "Payment reference does not match the contract's payment intent.")
        if confirmed and self.payments is not None:
            confirmed = self.payments.confirm(reference, record.id)
        if not confirmed:
            return self._reject(record, caller, "complete_payment", FailureKind.PAYMENT_NOT_CONFIRMED,
                                "The payment processor has not confirmed this payment.")

        return self._write(
            record, caller, "complete_payment",
            {"payment_status": PaymentStatus.PAID, "payment_reference": reference, "paid_at": self.clock()},
            event="payment_completed", recipients=[record.business_id, record.student_id],
        )

    def reset_payment(self, contract_id, caller: Optional[Caller]) -> Outcome:
        """Admin correction: put a paid, unsigned contract back to payment pending."""
        record, failure = self._load(contract_id, caller)
        if failure:
            return failure
        if not caller.is_admin:
            return self._reject(record, caller, "reset_payment", FailureKind.FORBIDDEN,
                                "Only administrators can reset a payment.")
        if not record.is_paid:
            return self._reject(record, caller, "reset_payment", FailureKind.INVALID_TRANSITION,
                                "Payment is not marked as paid.")
        if record.business_signature or record.student_signature:
            return self._reject(record, caller, "reset_payment", FailureKind.INVALID_TRANSITION,
                                "Cannot reset payment after the contract has been signed.")
        return self._write(
            record, caller, "reset_payment",
            {"payment_status": PaymentStatus.PENDING, "payment_reference": "",
             "payment_intent_id": "", "paid_at": None},
            event="payment_reset", recipients=[record.business_id, record.student_id],
        )

    # ------------------------------------------------------------------
    # signatures
    # ------------------------------------------------------------------

    def sign(self, contract_id, caller: Optional[Caller], role, signature) -> Outcome:
        """
        Apply the caller's signature for `role`. When the other party has
        already signed the contract becomes signed. A write that loses a
        race is re-read and re-checked, so the other role's signature is
        never lost and a second signature for the same role is refused.
        """
        role = getattr(role, "value", role)
        attempts = self.sign_retries + 1
        for attempt in range(attempts):
            record, failure = self._load(contract_id, caller)
            if failure:
                return failure
            failure = self._sign_checks(record, caller, role, signature)
            if failure:
                return failure

            other = SignerRole.STUDENT if role == SignerRole.BUSINESS else SignerRole.BUSINESS
            now = self.clock()
            changes = {f"{role}_signature": signature, f"{role}_signed_at": now}
            executed = bool(record.signature_for(other))
            if executed:
                changes["status"] = ContractStatus.SIGNED

            try:
                updated = self.store.update(record.id, changes, record.version)
            except VersionConflict:
                logger.info("Contract %s: sign by user %s lost a race (attempt %s/%s)",
                            record.id, caller.user_id, attempt + 1, attempts)
                continue
            except ContractMissing:
                return Outcome.fail(FailureKind.NOT_FOUND, f"Contract {contract_id} not found.")

            self._log_success(record, updated, caller, f"sign as {role}")
            if executed:
                self._notify("fully_signed", updated.id, [updated.business_id, updated.student_id])
            else:
                self._notify("signed", updated.id, [updated.party_id(other)])
            return Outcome.success(updated)

        return Outcome.fail(FailureKind.VERSION_CONFLICT,
                            "Contract kept changing while signing; please retry.")

    def _sign_checks(self, record, caller, role, signature) -> Optional[Outcome]:
        if role not in (SignerRole.BUSINESS, SignerRole.STUDENT) or not self._is_party(record, caller, role):
            return self._reject(record, caller, "sign", FailureKind.FORBIDDEN,
                                "You can only sign as your own party on this contract.")
        if not isinstance(signature, str) or not signature.strip():
            return self._reject(record, caller, "sign", FailureKind.INVALID_CONTRACT,
                                "Signature is empty.")
        if not record.is_paid:
            return self._reject(record, caller, "sign", FailureKind.PAYMENT_REQUIRED,
                                "The contract must be paid before it can be signed.")
        if record.signature_for(role):
            return self._reject(record, caller, "sign", FailureKind.ALREADY_SIGNED,
                                f"The {role} has already signed this contract.")
        if record.status != ContractStatus.APPROVED:
            return self._reject(record, caller, "sign", FailureKind.INVALID_TRANSITION,
                                f"Cannot sign a contract that is {record.status}.")
        return None

    # ------------------------------------------------------------------
    # delivery
    # ------------------------------------------------------------------

    def update_milestone(self, contract_id, caller: Optional[Caller], index, status) -> Outcome:
        record, failure = self._load(contract_id, caller)
        if failure:
            return failure
        if caller.user_id not in record.parties:
            return self._reject(record, caller, "update_milestone", FailureKind.FORBIDDEN,
                                "Only the contract parties can update milestones.")
        if record.status != ContractStatus.SIGNED:
            return self._reject(record, caller, "update_milestone", FailureKind.INVALID_TRANSITION,
                                "Milestones can only be updated on a signed contract.")
        if not isinstance(index, int) or not 0 <= index < len(record.milestones):
            return self._reject(record, caller, "update_milestone", FailureKind.INVALID_CONTRACT,
                                f"Contract has no milestone {index}.")
        if status not in MILESTONE_SETTER:
            return self._reject(record, caller, "update_milestone", FailureKind.INVALID_CONTRACT,
                                f"Unknown milestone status {status!r}.")
        if not self._is_party(record, caller, MILESTONE_SETTER[status]):
            return self._reject(record, caller, "update_milestone", FailureKind.FORBIDDEN,
                                f"Only the {MILESTONE_SETTER[status]} can mark a milestone {status}.")

        current = record.milestones[index]
        if status not in MILESTONE_TRANSITIONS.get(current.status, set()):
            return self._reject(record, caller, "update_milestone", FailureKind.INVALID_TRANSITION,
                                f"Milestone {index} cannot go from {current.status} to {status}.")

        milestones = list(record.milestones)
        milestones[index] = replace(current, status=status)
        return self._write(
            record, caller, "update_milestone", {},
            event="milestone_updated", recipients=[record.counterparty_of(caller.user_id)],
            milestones=milestones,
        )

    def complete(self, contract_id, caller: Optional[Caller]) -> Outcome:
        record, failure = self._load(contract_id, caller)
        if failure:
            return failure
        if caller.user_id not in record.parties:
            return self._reject(record, caller, "complete", FailureKind.FORBIDDEN,
                                "Only the contract parties can complete it.")
        if not can_transition(from_status=record.status, to_status=ContractStatus.COMPLETED):
            return self._reject(record, caller, "complete", FailureKind.INVALID_TRANSITION,
                                f"Cannot complete a contract that is {record.status}.")
        if any(m.status != MilestoneStatus.APPROVED for m in record.milestones):
            return self._reject(record, caller, "complete", FailureKind.INVALID_TRANSITION,
                                "Every milestone must be approved first.")
        return self._write(
            record, caller, "complete", {"status": ContractStatus.COMPLETED},
            event="completed", recipients=[record.business_id, record.student_id],
        )


def build_lifecycle() -> ContractLifecycle:
    """Wire the lifecycle to the ORM store and the project's collaborators."""
    from marketplace.gateway import ProposalGateway
    from payments.gateway import PaymentGateway

    from .notifications import CeleryNotificationSink
    from .store import DjangoContractStore

    return ContractLifecycle(
        store=DjangoContractStore(),
        proposals=ProposalGateway(),
        notifier=CeleryNotificationSink(),
        payments=PaymentGateway(),
    )
