"""
Shared fixtures.

Lifecycle tests run against `InMemoryContractStore`, which honours the same
version check as the ORM store; API and store tests use the database.
"""
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from contracts.domain import (
    Caller,
    ContractMissing,
    DuplicateContract,
    VersionConflict,
)
from contracts.lifecycle import ContractLifecycle
from contracts.models import ChangeRequestStatus
from marketplace.gateway import ProposalInfo
from marketplace.models import ProposalStatus


# =============================================================================
# In-memory collaborators
# =============================================================================

class InMemoryContractStore:
    def __init__(self):
        self.rows = {}
        self.update_calls = 0
        self._next_id = 1

    def get(self, contract_id):
        try:
            return self.rows.get(int(contract_id))
        except (TypeError, ValueError):
            return None

    def get_by_proposal(self, proposal_id):
        return next((r for r in self.rows.values() if r.proposal_id == proposal_id), None)

    def create(self, record):
        if self.get_by_proposal(record.proposal_id) is not None:
            raise DuplicateContract(record.proposal_id)
        created = replace(record, id=self._next_id, version=1)
        self.rows[created.id] = created
        self._next_id += 1
        return created

    def update(self, contract_id, changes, expected_version, *, milestones=None,
               append_change_request=None, resolve_change_requests=False):
        self.update_calls += 1
        current = self.get(contract_id)
        if current is None:
            raise ContractMissing(contract_id)
        if current.version != expected_version:
            raise VersionConflict(contract_id, expected_version)

        updated = replace(current, **changes, version=current.version + 1)
        if milestones is not None:
            updated = replace(updated, milestones=tuple(milestones))
        requests = updated.change_requests
        if resolve_change_requests:
            requests = tuple(
                replace(cr, status=ChangeRequestStatus.RESOLVED)
                if cr.status == ChangeRequestStatus.PENDING else cr
                for cr in requests
            )
        if append_change_request is not None:
            requests = requests + (append_change_request,)
        updated = replace(updated, change_requests=requests)
        self.rows[updated.id] = updated
        return updated

    def list_for_user(self, user_id, status=None):
        return [
            r for r in self.rows.values()
            if user_id in r.parties and (status is None or r.status == status)
        ]

    def list_all(self, status=None):
        return [r for r in self.rows.values() if status is None or r.status == status]


class FakeProposals:
    def __init__(self, *proposals):
        self.by_id = {p.id: p for p in proposals}

    def get(self, proposal_id):
        return self.by_id.get(proposal_id)


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, event, contract_id, recipients):
        self.sent.append((event, contract_id, list(recipients)))

    def events(self):
        return [event for event, _, _ in self.sent]


BUSINESS_ID, STUDENT_ID, OTHER_BUSINESS_ID, ADMIN_ID = 1, 2, 3, 99
PROPOSAL_ID, PENDING_PROPOSAL_ID, JOB_ID = 10, 11, 5


# =============================================================================
# FIXTURES: lifecycle with in-memory store
# =============================================================================

@pytest.fixture
def business():
    return Caller(user_id=BUSINESS_ID, role="business")


@pytest.fixture
def student():
    return Caller(user_id=STUDENT_ID, role="student")


@pytest.fixture
def other_business():
    return Caller(user_id=OTHER_BUSINESS_ID, role="business")


@pytest.fixture
def admin():
    return Caller(user_id=ADMIN_ID, role="admin", is_admin=True)


@pytest.fixture
def proposals():
    accepted = ProposalInfo(
        id=PROPOSAL_ID,
        job_id=JOB_ID,
        job_title="Landing page redesign",
        business_id=BUSINESS_ID,
        student_id=STUDENT_ID,
        status=ProposalStatus.ACCEPTED,
        quote_amount=Decimal("4000.00"),
        milestones=[{"title": "Full build", "amount": "4000.00", "due_date": "2026-11-20"}],
    )
    pending = replace(accepted, id=PENDING_PROPOSAL_ID, status=ProposalStatus.PENDING)
    return FakeProposals(accepted, pending)


@pytest.fixture
def store():
    return InMemoryContractStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def lifecycle(store, proposals, notifier):
    return ContractLifecycle(store, proposals=proposals, notifier=notifier, sign_retries=3)


@pytest.fixture
def draft_terms():
    return {
        "terms": "Deliver a responsive landing page with two revisions.",
        "start_date": date(2026, 11, 1),
        "end_date": date(2026, 12, 1),
    }


@pytest.fixture
def draft_contract(lifecycle, business, draft_terms):
    outcome = lifecycle.create_from_proposal(PROPOSAL_ID, business, draft_terms)
    assert outcome.ok, outcome.failure
    return outcome.contract


@pytest.fixture
def approved_contract(lifecycle, business, student, draft_contract):
    assert lifecycle.submit_for_review(draft_contract.id, business).ok
    outcome = lifecycle.accept(draft_contract.id, student)
    assert outcome.ok, outcome.failure
    return outcome.contract


@pytest.fixture
def paid_contract(lifecycle, business, approved_contract):
    outcome = lifecycle.complete_payment(approved_contract.id, business, "pi_test_123")
    assert outcome.ok, outcome.failure
    return outcome.contract


@pytest.fixture
def signed_contract(lifecycle, business, student, paid_contract):
    assert lifecycle.sign(paid_contract.id, business, "business", "data:image/png;base64,QUJD").ok
    outcome = lifecycle.sign(paid_contract.id, student, "student", "data:image/png;base64,REVG")
    assert outcome.ok, outcome.failure
    return outcome.contract


# =============================================================================
# FIXTURES: database
# =============================================================================

@pytest.fixture
def business_user(db, django_user_model):
    return django_user_model.objects.create_user(
        email="hiring@acme.in", password="pass-1234-secure", name="Acme Hiring", role="business"
    )


@pytest.fixture
def student_user(db, django_user_model):
    return django_user_model.objects.create_user(
        email="riya@college.edu", password="pass-1234-secure", name="Riya Sharma", role="student"
    )


@pytest.fixture
def outsider_user(db, django_user_model):
    return django_user_model.objects.create_user(
        email="other@biz.in", password="pass-1234-secure", name="Other Biz", role="business"
    )


@pytest.fixture
def admin_user(db, django_user_model):
    return django_user_model.objects.create_superuser(
        email="ops@campusgig.in", password="pass-1234-secure", name="Ops"
    )


@pytest.fixture
def job(business_user):
    from marketplace.models import Job

    return Job.objects.create(
        business=business_user,
        title="Landing page redesign",
        description="Rebuild our marketing landing page.",
        budget_min=Decimal("3000.00"),
        budget_max=Decimal("5000.00"),
    )


@pytest.fixture
def accepted_proposal(job, student_user):
    from marketplace.models import Proposal

    return Proposal.objects.create(
        job=job,
        student=student_user,
        cover_letter="I have built three landing pages this year.",
        quote_amount=Decimal("4000.00"),
        milestones=[{"title": "Full build", "amount": "4000.00", "due_date": "2026-11-20"}],
        status=ProposalStatus.ACCEPTED,
    )


@pytest.fixture
def api_client():
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def as_user(api_client):
    def _login(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _login
