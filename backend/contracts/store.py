# backend/contracts/store.py
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from .domain import (
    ChangeRequestRecord,
    ContractMissing,
    ContractRecord,
    DuplicateContract,
    MilestoneRecord,
    VersionConflict,
)
from .models import ChangeRequest, ChangeRequestStatus, Contract, Milestone

logger = logging.getLogger(__name__)

# Columns the lifecycle is allowed to change through `update`.
MUTABLE_FIELDS = {
    "title", "description", "terms", "total_amount", "start_date", "end_date",
    "status", "payment_status", "payment_intent_id", "payment_reference", "paid_at",
    "business_signature", "business_signed_at", "student_signature", "student_signed_at",
    "updated_at",
}


class DjangoContractStore:
    """
    Contract persistence on the Django ORM.

    Every write is conditional on the version the caller read: the UPDATE
    only matches `id = ? AND version = ?`, so a concurrent writer makes it
    touch zero rows and the caller gets `VersionConflict`.
    """

    def _queryset(self):
        return Contract.objects.prefetch_related("milestones", "change_requests")

    def get(self, contract_id) -> Optional[ContractRecord]:
        try:
            contract = self._queryset().get(pk=contract_id)
        except (Contract.DoesNotExist, ValueError, TypeError):
            return None
        return self._to_record(contract)

    def get_by_proposal(self, proposal_id) -> Optional[ContractRecord]:
        contract = self._queryset().filter(proposal_id=proposal_id).first()
        return self._to_record(contract) if contract else None

    def create(self, record: ContractRecord) -> ContractRecord:
        now = timezone.now()
        try:
            with transaction.atomic():
                contract = Contract.objects.create(
                    proposal_id=record.proposal_id,
                    job_id=record.job_id,
                    business_id=record.business_id,
                    student_id=record.student_id,
                    title=record.title,
                    description=record.description,
                    terms=record.terms,
                    total_amount=record.total_amount,
                    start_date=record.start_date,
                    end_date=record.end_date,
                    status=record.status,
                    payment_status=record.payment_status,
                    version=1,
                    created_at=record.created_at or now,
                    updated_at=record.updated_at or now,
                )
                self._replace_milestones(contract.pk, record.milestones)
        except IntegrityError as e:
            if Contract.objects.filter(proposal_id=record.proposal_id).exists():
                raise DuplicateContract(record.proposal_id) from e
            raise
        return self.get(contract.pk)

    def update(
        self,
        contract_id,
        changes: dict,
        expected_version: int,
        *,
        milestones: Optional[Iterable[MilestoneRecord]] = None,
        append_change_request: Optional[ChangeRequestRecord] = None,
        resolve_change_requests: bool = False,
    ) -> ContractRecord:
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update contract fields: {sorted(unknown)}")

        now = changes.get("updated_at") or timezone.now()
        values = {**changes, "updated_at": now}

        with transaction.atomic():
            rows = Contract.objects.filter(pk=contract_id, version=expected_version).update(
                version=F("version") + 1, **values
            )
            if rows == 0:
                if Contract.objects.filter(pk=contract_id).exists():
                    raise VersionConflict(contract_id, expected_version)
                raise ContractMissing(f"Contract {contract_id} does not exist")

            if milestones is not None:
                Milestone.objects.filter(contract_id=contract_id).delete()
                self._replace_milestones(contract_id, milestones)

            if resolve_change_requests:
                ChangeRequest.objects.filter(
                    contract_id=contract_id, status=ChangeRequestStatus.PENDING
                ).update(status=ChangeRequestStatus.RESOLVED, resolved_at=now)

            if append_change_request is not None:
                ChangeRequest.objects.create(
                    contract_id=contract_id,
                    author_id=append_change_request.author_id,
                    message=append_change_request.message,
                    status=append_change_request.status,
                    created_at=append_change_request.created_at or now,
                )

        return self.get(contract_id)

    def list_for_user(self, user_id, status: Optional[str] = None) -> List[ContractRecord]:
        qs = self._queryset().filter(Q(business_id=user_id) | Q(student_id=user_id))
        if status:
            qs = qs.filter(status=status)
        return [self._to_record(c) for c in qs]

    def list_all(self, status: Optional[str] = None) -> List[ContractRecord]:
        qs = self._queryset()
        if status:
            qs = qs.filter(status=status)
        return [self._to_record(c) for c in qs]

    # ---- helpers ----

    @staticmethod
    def _replace_milestones(contract_id, milestones: Iterable[MilestoneRecord]):
        Milestone.objects.bulk_create([
            Milestone(
                contract_id=contract_id,
                position=position,
                title=m.title,
                description=m.description,
                amount=m.amount,
                due_date=m.due_date,
                status=m.status,
            )
            for position, m in enumerate(milestones)
        ])

    @staticmethod
    def _to_record(contract: Contract) -> ContractRecord:
        return ContractRecord(
            id=contract.pk,
            proposal_id=contract.proposal_id,
            job_id=contract.job_id,
            business_id=contract.business_id,
            student_id=contract.student_id,
            title=contract.title,
            description=contract.description,
            terms=contract.terms,
            total_amount=contract.total_amount,
            start_date=contract.start_date,
            end_date=contract.end_date,
            milestones=tuple(
                MilestoneRecord(
                    title=m.title,
                    amount=m.amount,
                    due_date=m.due_date,
                    description=m.description,
                    status=m.status,
                )
                for m in contract.milestones.all()
            ),
            status=contract.status,
            payment_status=contract.payment_status,
            payment_intent_id=contract.payment_intent_id,
            payment_reference=contract.payment_reference,
            paid_at=contract.paid_at,
            business_signature=contract.business_signature,
            business_signed_at=contract.business_signed_at,
            student_signature=contract.student_signature,
            student_signed_at=contract.student_signed_at,
            change_requests=tuple(
                ChangeRequestRecord(
                    message=cr.message,
                    status=cr.status,
                    created_at=cr.created_at,
                    author_id=cr.author_id,
                    resolved_at=cr.resolved_at,
                )
                for cr in contract.change_requests.all()
            ),
            created_at=contract.created_at,
            updated_at=contract.updated_at,
            version=contract.version,
        )
