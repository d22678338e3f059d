"""
Contract lifecycle against the in-memory store: transitions, gating, failures.
"""
from datetime import date
from decimal import Decimal

import pytest

from contracts.domain import FailureKind, MilestoneRecord, can_transition, validate_terms
from contracts.lifecycle import ContractLifecycle
from contracts.models import (
    ChangeRequestStatus,
    ContractStatus,
    MilestoneStatus,
    PaymentStatus,
)

PROPOSAL_ID, PENDING_PROPOSAL_ID = 10, 11
BUSINESS_SIG = "data:image/png;base64,QUJD"
STUDENT_SIG = "data:image/png;base64,REVG"


def milestone(title="Full build", amount="4000.00", due=date(2026, 11, 20)):
    return MilestoneRecord(title=title, amount=Decimal(amount), due_date=due)


def assert_invariants(record):
    if record.payment_status == PaymentStatus.PAID:
        assert record.status in (ContractStatus.APPROVED, ContractStatus.SIGNED, ContractStatus.COMPLETED)
    if record.status == ContractStatus.SIGNED:
        assert record.business_signature and record.student_signature


# =============================================================================
# Creation
# =============================================================================

class TestCreateFromProposal:
    def test_defaults_come_from_the_proposal(self, draft_contract, notifier):
        assert draft_contract.id is not None
        assert draft_contract.title == "Landing page redesign"
        assert draft_contract.total_amount == Decimal("4000.00")
        assert draft_contract.status == ContractStatus.DRAFT
        assert draft_contract.payment_status == PaymentStatus.PENDING
        assert [m.amount for m in draft_contract.milestones] == [Decimal("4000.00")]
        assert draft_contract.milestones[0].due_date == date(2026, 11, 20)
        assert notifier.sent == [("contract_created", draft_contract.id, [2])]

    def test_other_business_is_forbidden(self, lifecycle, other_business, draft_terms, store):
        outcome = lifecycle.create_from_proposal(PROPOSAL_ID, other_business, draft_terms)
        assert outcome.failure.kind == FailureKind.FORBIDDEN
        assert store.rows == {}

    def test_student_cannot_create(self, lifecycle, student, draft_terms):
        outcome = lifecycle.create_from_proposal(PROPOSAL_ID, student, draft_terms)
        assert outcome.failure.kind == FailureKind.FORBIDDEN

    def test_unaccepted_proposal(self, lifecycle, business, draft_terms):
        outcome = lifecycle.create_from_proposal(PENDING_PROPOSAL_ID, business, draft_terms)
        assert outcome.failure.kind == FailureKind.INVALID_PROPOSAL_STATE

    def test_unknown_proposal(self, lifecycle, business, draft_terms):
        outcome = lifecycle.create_from_proposal(404, business, draft_terms)
        assert outcome.failure.kind == FailureKind.INVALID_PROPOSAL_STATE

    def test_one_contract_per_proposal(self, lifecycle, business, draft_terms, draft_contract, store):
        outcome = lifecycle.create_from_proposal(PROPOSAL_ID, business, draft_terms)
        assert outcome.failure.kind == FailureKind.DUPLICATE_CONTRACT
        assert len(store.rows) == 1

    def test_total_must_match_milestones(self, lifecycle, business, draft_terms, store):
        draft_terms["total_amount"] = Decimal("3500.00")
        outcome = lifecycle.create_from_proposal(PROPOSAL_ID, business, draft_terms)
        assert outcome.failure.kind == FailureKind.INVALID_CONTRACT
        assert "milestone" in outcome.failure.detail
        assert store.rows == {}

    def test_end_date_before_start(self, lifecycle, business, draft_terms):
        draft_terms["end_date"] = date(2026, 10, 1)
        outcome = lifecycle.create_from_proposal(PROPOSAL_ID, business, draft_terms)
        assert outcome.failure.kind == FailureKind.INVALID_CONTRACT

    def test_terms_are_required(self, lifecycle, business, draft_terms):
        draft_terms["terms"] = "   "
        outcome = lifecycle.create_from_proposal(PROPOSAL_ID, business, draft_terms)
        assert outcome.failure.kind == FailureKind.INVALID_CONTRACT

    def test_explicit_milestones_override_the_proposal(self, lifecycle, business, draft_terms):
        draft_terms["milestones"] = (milestone("Design", "1500.00"), milestone("Build", "2500.00"))
        outcome = lifecycle.create_from_proposal(PROPOSAL_ID, business, draft_terms)
        assert outcome.ok
        assert [m.title for m in outcome.contract.milestones] == ["Design", "Build"]

    def test_anonymous_caller(self, lifecycle, draft_terms):
        outcome = lifecycle.create_from_proposal(PROPOSAL_ID, None, draft_terms)
        assert outcome.failure.kind == FailureKind.FORBIDDEN


# =============================================================================
# Scenarios
# =============================================================================

def test_happy_path_review_pay_sign(lifecycle, business, student, draft_contract, notifier):
    cid = draft_contract.id
    snapshots = [draft_contract]

    submitted = lifecycle.submit_for_review(cid, business)
    assert submitted.contract.status == ContractStatus.PENDING_REVIEW
    snapshots.append(submitted.contract)

    accepted = lifecycle.accept(cid, student)
    assert accepted.contract.status == ContractStatus.APPROVED
    assert accepted.contract.payment_status == PaymentStatus.PENDING
    snapshots.append(accepted.contract)

    paid = lifecycle.complete_payment(cid, business, "pi_test_123")
    assert paid.contract.payment_status == PaymentStatus.PAID
    assert paid.contract.payment_reference == "pi_test_123"
    assert paid.contract.paid_at is not None
    snapshots.append(paid.contract)

    half = lifecycle.sign(cid, business, "business", BUSINESS_SIG)
    assert half.contract.business_signature == BUSINESS_SIG
    assert half.contract.business_signed_at is not None
    assert half.contract.status == ContractStatus.APPROVED
    snapshots.append(half.contract)

    full = lifecycle.sign(cid, student, "student", STUDENT_SIG)
    assert full.contract.student_signature == STUDENT_SIG
    assert full.contract.status == ContractStatus.SIGNED
    assert full.contract.is_fully_signed
    snapshots.append(full.contract)

    for snapshot in snapshots:
        assert_invariants(snapshot)
    assert [s.version for s in snapshots] == [1, 2, 3, 4, 5, 6]
    assert notifier.events() == [
        "contract_created", "submitted_for_review", "accepted",
        "payment_completed", "signed", "fully_signed",
    ]


def test_request_changes_blocks_accept(lifecycle, business, student, draft_contract):
    lifecycle.submit_for_review(draft_contract.id, business)

    outcome = lifecycle.request_changes(draft_contract.id, student, "lower the price")
    assert outcome.contract.status == ContractStatus.CHANGES_REQUESTED
    assert [(cr.message, cr.status) for cr in outcome.contract.change_requests] == [
        ("lower the price", ChangeRequestStatus.PENDING)
    ]
    assert outcome.contract.change_requests[0].author_id == student.user_id

    retry = lifecycle.accept(draft_contract.id, student)
    assert retry.failure.kind == FailureKind.INVALID_TRANSITION


def test_unpaid_contract_cannot_be_signed(lifecycle, student, approved_contract, store):
    outcome = lifecycle.sign(approved_contract.id, student, "student", STUDENT_SIG)
    assert outcome.failure.kind == FailureKind.PAYMENT_REQUIRED
    assert store.get(approved_contract.id) == approved_contract


def test_other_business_cannot_submit(lifecycle, other_business, draft_contract, store):
    outcome = lifecycle.submit_for_review(draft_contract.id, other_business)
    assert outcome.failure.kind == FailureKind.FORBIDDEN
    assert store.get(draft_contract.id).status == ContractStatus.DRAFT


# =============================================================================
# Review cycle
# =============================================================================

class TestReviewCycle:
    def test_student_cannot_submit(self, lifecycle, student, draft_contract):
        assert lifecycle.submit_for_review(draft_contract.id, student).failure.kind == FailureKind.FORBIDDEN

    def test_accept_requires_pending_review(self, lifecycle, student, draft_contract):
        outcome = lifecycle.accept(draft_contract.id, student)
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION

    def test_business_cannot_accept(self, lifecycle, business, draft_contract):
        lifecycle.submit_for_review(draft_contract.id, business)
        assert lifecycle.accept(draft_contract.id, business).failure.kind == FailureKind.FORBIDDEN

    def test_empty_change_request(self, lifecycle, business, student, draft_contract, store):
        lifecycle.submit_for_review(draft_contract.id, business)
        outcome = lifecycle.request_changes(draft_contract.id, student, "   ")
        assert outcome.failure.kind == FailureKind.EMPTY_MESSAGE
        assert store.get(draft_contract.id).status == ContractStatus.PENDING_REVIEW

    def test_submit_twice(self, lifecycle, business, draft_contract):
        lifecycle.submit_for_review(draft_contract.id, business)
        outcome = lifecycle.submit_for_review(draft_contract.id, business)
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION

    def test_revision_keeps_change_history(self, lifecycle, business, student, draft_contract):
        cid = draft_contract.id
        lifecycle.submit_for_review(cid, business)
        lifecycle.request_changes(cid, student, "lower the price")

        revised = lifecycle.revise_draft(cid, business, {
            "total_amount": Decimal("3500.00"),
            "milestones": (milestone(amount="3500.00"),),
        })
        assert revised.ok, revised.failure
        assert revised.contract.status == ContractStatus.DRAFT
        assert revised.contract.total_amount == Decimal("3500.00")

        resubmitted = lifecycle.submit_for_review(cid, business)
        assert resubmitted.contract.status == ContractStatus.PENDING_REVIEW
        history = resubmitted.contract.change_requests
        assert [(cr.message, cr.status) for cr in history] == [
            ("lower the price", ChangeRequestStatus.RESOLVED)
        ]

        again = lifecycle.request_changes(cid, student, "add a second revision round")
        assert [cr.status for cr in again.contract.change_requests] == [
            ChangeRequestStatus.RESOLVED, ChangeRequestStatus.PENDING,
        ]

    def test_revise_in_place_while_draft(self, lifecycle, business, draft_contract, notifier):
        outcome = lifecycle.revise_draft(draft_contract.id, business, {"title": "Landing page v2"})
        assert outcome.contract.title == "Landing page v2"
        assert outcome.contract.status == ContractStatus.DRAFT
        assert "revised" not in notifier.events()

    def test_revise_rejects_mismatched_total(self, lifecycle, business, draft_contract, store):
        outcome = lifecycle.revise_draft(draft_contract.id, business, {"total_amount": Decimal("1.00")})
        assert outcome.failure.kind == FailureKind.INVALID_CONTRACT
        assert store.get(draft_contract.id) == draft_contract

    def test_revise_after_approval(self, lifecycle, business, approved_contract):
        outcome = lifecycle.revise_draft(approved_contract.id, business, {"title": "Too late"})
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION

    def test_student_cannot_revise(self, lifecycle, student, draft_contract):
        outcome = lifecycle.revise_draft(draft_contract.id, student, {"title": "Mine now"})
        assert outcome.failure.kind == FailureKind.FORBIDDEN


# =============================================================================
# Payment
# =============================================================================

class AcceptingGateway:
    def __init__(self, confirms=True):
        self.confirms = confirms
        self.confirmed = []
        self.created = []
        self.resumed = []

    def create_intent(self, contract):
        intent_id = f"pi_{len(self.created) + 1}"
        self.created.append(intent_id)
        return intent_id, f"{intent_id}_secret_xyz"

    def resume_intent(self, contract):
        self.resumed.append(contract.payment_intent_id)
        return contract.payment_intent_id, f"{contract.payment_intent_id}_secret_xyz"

    def confirm(self, reference, contract_id):
        self.confirmed.append((reference, contract_id))
        return self.confirms


class TestPayment:
    def test_second_confirmation_is_already_paid(self, lifecycle, business, paid_contract, store):
        outcome = lifecycle.complete_payment(paid_contract.id, business, "pi_test_123")
        assert outcome.failure.kind == FailureKind.ALREADY_PAID
        assert store.get(paid_contract.id) == paid_contract

    def test_payment_before_approval(self, lifecycle, business, draft_contract):
        outcome = lifecycle.complete_payment(draft_contract.id, business, "pi_test_123")
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION

    def test_student_cannot_pay(self, lifecycle, student, approved_contract):
        outcome = lifecycle.complete_payment(approved_contract.id, student, "pi_test_123")
        assert outcome.failure.kind == FailureKind.FORBIDDEN

    def test_blank_reference_is_not_confirmed(self, lifecycle, business, approved_contract):
        outcome = lifecycle.complete_payment(approved_contract.id, business, "")
        assert outcome.failure.kind == FailureKind.PAYMENT_NOT_CONFIRMED

    def test_gateway_refusal(self, store, proposals, business, approved_contract):
        gateway = AcceptingGateway(confirms=False)
        lifecycle = ContractLifecycle(store, proposals=proposals, payments=gateway)
        outcome = lifecycle.complete_payment(approved_contract.id, business, "pi_unpaid")
        assert outcome.failure.kind == FailureKind.PAYMENT_NOT_CONFIRMED
        assert gateway.confirmed == [("pi_unpaid", approved_contract.id)]
        assert store.get(approved_contract.id).payment_status == PaymentStatus.PENDING

    def test_initiate_records_intent(self, store, proposals, business, approved_contract):
        lifecycle = ContractLifecycle(store, proposals=proposals, payments=AcceptingGateway())
        outcome = lifecycle.initiate_payment(approved_contract.id, business)
        assert outcome.contract.payment_intent_id == "pi_1"
        assert outcome.data["client_secret"] == "pi_1_secret_xyz"
        assert outcome.contract.payment_status == PaymentStatus.PENDING

    def test_initiate_twice_reuses_the_intent(self, store, proposals, business, approved_contract):
        gateway = AcceptingGateway()
        lifecycle = ContractLifecycle(store, proposals=proposals, payments=gateway)

        first = lifecycle.initiate_payment(approved_contract.id, business)
        second = lifecycle.initiate_payment(approved_contract.id, business)

        assert first.ok and second.ok
        assert gateway.created == ["pi_1"]
        assert gateway.resumed == ["pi_1"]
        assert second.data == first.data
        assert second.contract.version == first.contract.version

    def test_gateway_replacing_a_dead_intent(self, store, proposals, business, approved_contract):
        class ReplacingGateway(AcceptingGateway):
            def resume_intent(self, contract):
                return self.create_intent(contract)

        gateway = ReplacingGateway()
        lifecycle = ContractLifecycle(store, proposals=proposals, payments=gateway)
        lifecycle.initiate_payment(approved_contract.id, business)
        outcome = lifecycle.initiate_payment(approved_contract.id, business)

        assert outcome.contract.payment_intent_id == "pi_2"
        assert store.get(approved_contract.id).payment_intent_id == "pi_2"

    def test_only_the_recorded_intent_completes_payment(self, store, proposals, business, approved_contract):
        gateway = AcceptingGateway()
        lifecycle = ContractLifecycle(store, proposals=proposals, payments=gateway)
        lifecycle.initiate_payment(approved_contract.id, business)

        stray = lifecycle.complete_payment(approved_contract.id, business, "pi_elsewhere")
        assert stray.failure.kind == FailureKind.PAYMENT_NOT_CONFIRMED
        assert gateway.confirmed == []

        assert lifecycle.complete_payment(approved_contract.id, business, "pi_1").ok

    def test_initiate_without_gateway(self, lifecycle, business, approved_contract):
        outcome = lifecycle.initiate_payment(approved_contract.id, business)
        assert outcome.contract.payment_intent_id.startswith("pi_dev_")
        again = lifecycle.initiate_payment(approved_contract.id, business)
        assert again.contract.payment_intent_id == outcome.contract.payment_intent_id

    def test_initiate_after_payment(self, lifecycle, business, paid_contract):
        outcome = lifecycle.initiate_payment(paid_contract.id, business)
        assert outcome.failure.kind == FailureKind.ALREADY_PAID

    def test_admin_reset(self, lifecycle, admin, paid_contract):
        outcome = lifecycle.reset_payment(paid_contract.id, admin)
        assert outcome.contract.payment_status == PaymentStatus.PENDING
        assert outcome.contract.payment_reference == ""
        assert outcome.contract.paid_at is None
        assert outcome.contract.status == ContractStatus.APPROVED

    def test_reset_is_admin_only(self, lifecycle, business, paid_contract):
        assert lifecycle.reset_payment(paid_contract.id, business).failure.kind == FailureKind.FORBIDDEN

    def test_reset_after_signature(self, lifecycle, admin, business, paid_contract):
        lifecycle.sign(paid_contract.id, business, "business", BUSINESS_SIG)
        outcome = lifecycle.reset_payment(paid_contract.id, admin)
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION

    def test_reset_unpaid(self, lifecycle, admin, approved_contract):
        outcome = lifecycle.reset_payment(approved_contract.id, admin)
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION


# =============================================================================
# Signatures
# =============================================================================

class TestSign:
    def test_role_must_match_caller(self, lifecycle, student, paid_contract):
        outcome = lifecycle.sign(paid_contract.id, student, "business", STUDENT_SIG)
        assert outcome.failure.kind == FailureKind.FORBIDDEN

    def test_outsider_cannot_sign(self, lifecycle, other_business, paid_contract):
        outcome = lifecycle.sign(paid_contract.id, other_business, "business", BUSINESS_SIG)
        assert outcome.failure.kind == FailureKind.FORBIDDEN

    def test_blank_signature(self, lifecycle, business, paid_contract):
        outcome = lifecycle.sign(paid_contract.id, business, "business", "  ")
        assert outcome.failure.kind == FailureKind.INVALID_CONTRACT

    def test_sign_once_per_role(self, lifecycle, business, paid_contract, store):
        lifecycle.sign(paid_contract.id, business, "business", BUSINESS_SIG)
        outcome = lifecycle.sign(paid_contract.id, business, "business", "data:image/png;base64,WFla")
        assert outcome.failure.kind == FailureKind.ALREADY_SIGNED
        assert store.get(paid_contract.id).business_signature == BUSINESS_SIG

    def test_student_first_then_business(self, lifecycle, business, student, paid_contract):
        first = lifecycle.sign(paid_contract.id, student, "student", STUDENT_SIG)
        assert first.contract.status == ContractStatus.APPROVED
        second = lifecycle.sign(paid_contract.id, business, "business", BUSINESS_SIG)
        assert second.contract.status == ContractStatus.SIGNED

    def test_signing_a_signed_contract(self, lifecycle, business, signed_contract):
        outcome = lifecycle.sign(signed_contract.id, business, "business", BUSINESS_SIG)
        assert outcome.failure.kind == FailureKind.ALREADY_SIGNED


# =============================================================================
# Milestones & completion
# =============================================================================

class TestDelivery:
    def test_full_delivery(self, lifecycle, business, student, signed_contract, notifier):
        cid = signed_contract.id
        started = lifecycle.update_milestone(cid, student, 0, MilestoneStatus.IN_PROGRESS)
        assert started.contract.milestones[0].status == MilestoneStatus.IN_PROGRESS

        done = lifecycle.update_milestone(cid, student, 0, MilestoneStatus.COMPLETED)
        assert done.contract.milestones[0].status == MilestoneStatus.COMPLETED

        approved = lifecycle.update_milestone(cid, business, 0, MilestoneStatus.APPROVED)
        assert approved.contract.milestones[0].status == MilestoneStatus.APPROVED

        completed = lifecycle.complete(cid, student)
        assert completed.contract.status == ContractStatus.COMPLETED
        assert_invariants(completed.contract)
        assert notifier.events()[-1] == "completed"

    def test_complete_needs_approved_milestones(self, lifecycle, business, signed_contract):
        outcome = lifecycle.complete(signed_contract.id, business)
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION

    def test_complete_before_signing(self, lifecycle, business, paid_contract):
        outcome = lifecycle.complete(paid_contract.id, business)
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION

    def test_business_cannot_approve_unfinished_work(self, lifecycle, business, signed_contract):
        outcome = lifecycle.update_milestone(signed_contract.id, business, 0, MilestoneStatus.APPROVED)
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION

    def test_business_cannot_mark_completed(self, lifecycle, business, signed_contract):
        outcome = lifecycle.update_milestone(signed_contract.id, business, 0, MilestoneStatus.COMPLETED)
        assert outcome.failure.kind == FailureKind.FORBIDDEN

    def test_unknown_milestone_index(self, lifecycle, student, signed_contract):
        outcome = lifecycle.update_milestone(signed_contract.id, student, 3, MilestoneStatus.COMPLETED)
        assert outcome.failure.kind == FailureKind.INVALID_CONTRACT

    def test_milestones_locked_until_signed(self, lifecycle, student, paid_contract):
        outcome = lifecycle.update_milestone(paid_contract.id, student, 0, MilestoneStatus.IN_PROGRESS)
        assert outcome.failure.kind == FailureKind.INVALID_TRANSITION

    def test_completed_is_terminal(self, lifecycle, business, student, signed_contract):
        cid = signed_contract.id
        lifecycle.update_milestone(cid, student, 0, MilestoneStatus.COMPLETED)
        lifecycle.update_milestone(cid, business, 0, MilestoneStatus.APPROVED)
        lifecycle.complete(cid, business)
        assert lifecycle.complete(cid, student).failure.kind == FailureKind.INVALID_TRANSITION


# =============================================================================
# Misc
# =============================================================================

def test_missing_contract(lifecycle, business):
    assert lifecycle.submit_for_review(12345, business).failure.kind == FailureKind.NOT_FOUND


def test_anonymous_caller(lifecycle, draft_contract):
    assert lifecycle.submit_for_review(draft_contract.id, None).failure.kind == FailureKind.FORBIDDEN


class ExplodingNotifier:
    def notify(self, event, contract_id, recipients):
        raise RuntimeError("broker down")


def test_notification_failure_keeps_transition(store, proposals, business, draft_terms):
    lifecycle = ContractLifecycle(store, proposals=proposals, notifier=ExplodingNotifier())
    created = lifecycle.create_from_proposal(PROPOSAL_ID, business, draft_terms)
    outcome = lifecycle.submit_for_review(created.contract.id, business)
    assert outcome.ok
    assert store.get(created.contract.id).status == ContractStatus.PENDING_REVIEW


@pytest.mark.parametrize("from_status,to_status,allowed", [
    (ContractStatus.DRAFT, ContractStatus.PENDING_REVIEW, True),
    (ContractStatus.CHANGES_REQUESTED, ContractStatus.DRAFT, True),
    (ContractStatus.APPROVED, ContractStatus.DRAFT, False),
    (ContractStatus.DRAFT, ContractStatus.SIGNED, False),
    (ContractStatus.COMPLETED, ContractStatus.DRAFT, False),
])
def test_transition_graph(from_status, to_status, allowed):
    assert can_transition(from_status=from_status, to_status=to_status) is allowed


def test_validate_terms_accepts_contract_without_milestones():
    assert validate_terms(
        title="Logo", terms="One logo.", total_amount=Decimal("500.00"),
        start_date=date(2026, 11, 1), end_date=date(2026, 11, 1),
    ) is None


def test_validate_terms_rejects_negative_milestone():
    problem = validate_terms(
        title="Logo", terms="One logo.", total_amount=Decimal("0.00"),
        start_date=date(2026, 11, 1), end_date=date(2026, 11, 2),
        milestones=(milestone(amount="-1.00"),),
    )
    assert "amount" in problem
