# backend/marketplace/gateway.py
"""
Read-only view of proposals for the contract lifecycle.

Contracts never touch the Proposal model directly; they ask this gateway
whether a proposal is accepted and who the parties are.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from .models import Proposal, ProposalStatus


@dataclass(frozen=True)
class ProposalInfo:
    id: int
    job_id: int
    job_title: str
    business_id: int
    student_id: int
    status: str
    quote_amount: Decimal
    milestones: list = field(default_factory=list)

    @property
    def is_accepted(self) -> bool:
        return self.status == ProposalStatus.ACCEPTED


class ProposalGateway:
    def get(self, proposal_id) -> Optional[ProposalInfo]:
        try:
            p = Proposal.objects.select_related("job").get(pk=proposal_id)
        except (Proposal.DoesNotExist, ValueError, TypeError):
            return None
        return ProposalInfo(
            id=p.id,
            job_id=p.job_id,
            job_title=p.job.title,
            business_id=p.job.business_id,
            student_id=p.student_id,
            status=p.status,
            quote_amount=p.quote_amount,
            milestones=list(p.milestones or []),
        )
