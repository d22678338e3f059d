# backend/marketplace/views.py
from __future__ import annotations

import logging

from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from .models import Job, JobStatus, Proposal, ProposalStatus
from .permissions import IsBusiness, IsJobOwnerOrReadOnly, IsStudent
from .serializers import JobSerializer, ProposalSerializer

logger = logging.getLogger(__name__)


class JobViewSet(mixins.CreateModelMixin,
                 mixins.ListModelMixin,
                 mixins.RetrieveModelMixin,
                 mixins.UpdateModelMixin,
                 viewsets.GenericViewSet):
    """
    /api/jobs/                 [GET]  open jobs (?mine=1 for a business' own postings)
    /api/jobs/                 [POST] business posts a job
    /api/jobs/<id>/            [GET, PATCH]
    /api/jobs/<id>/close/      [POST] owner closes the posting
    """
    serializer_class = JobSerializer
    permission_classes = [permissions.IsAuthenticated, IsJobOwnerOrReadOnly]
    filterset_fields = ["status"]

    def get_queryset(self):
        qs = Job.objects.select_related("business").all()
        if self.request.query_params.get("mine") in ("1", "true"):
            return qs.filter(business=self.request.user)
        if self.action == "list" and "status" not in self.request.query_params:
            return qs.filter(status=JobStatus.OPEN)
        return qs

    def get_permissions(self):
        if self.action == "create":
            return [permissions.IsAuthenticated(), IsBusiness()]
        return super().get_permissions()

    def perform_create(self, serializer):
        job = serializer.save(business=self.request.user)
        logger.info("Job %s posted by business %s", job.id, self.request.user.id)

    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        job = self.get_object()
        if job.business_id != request.user.id:
            return Response({"detail": "Only the job owner can close it."}, status=status.HTTP_403_FORBIDDEN)
        job.status = JobStatus.CLOSED
        job.save(update_fields=["status", "updated_at"])
        return Response(JobSerializer(job, context={"request": request}).data)


class ProposalViewSet(mixins.CreateModelMixin,
                      mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      viewsets.GenericViewSet):
    """
    /api/proposals/                  [GET]  student: own; business: on own jobs
    /api/proposals/                  [POST] student applies to an open job
    /api/proposals/<id>/accept/      [POST] business
    /api/proposals/<id>/reject/      [POST] business
    /api/proposals/<id>/withdraw/    [POST] student
    """
    serializer_class = ProposalSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "job"]

    def get_queryset(self):
        user = self.request.user
        return (
            Proposal.objects.select_related("job", "student")
            .filter(Q(student=user) | Q(job__business=user))
        )

    def get_permissions(self):
        if self.action in ("create", "withdraw"):
            return [permissions.IsAuthenticated(), IsStudent()]
        if self.action in ("accept", "reject"):
            return [permissions.IsAuthenticated(), IsBusiness()]
        return super().get_permissions()

    def perform_create(self, serializer):
        proposal = serializer.save(student=self.request.user)
        logger.info("Proposal %s submitted on job %s", proposal.id, proposal.job_id)

    def _decide(self, request, new_status: str):
        with transaction.atomic():
            proposal = get_object_or_404(self.get_queryset().select_for_update(), pk=self.kwargs["pk"])
            if proposal.job.business_id != request.user.id:
                return Response({"detail": "Only the job owner can decide on proposals."},
                                status=status.HTTP_403_FORBIDDEN)
            if proposal.status != ProposalStatus.PENDING:
                return Response({"detail": f"Proposal is already {proposal.status}."},
                                status=status.HTTP_409_CONFLICT)
            proposal.status = new_status
            proposal.save(update_fields=["status", "updated_at"])
        logger.info("Proposal %s %s by business %s", proposal.id, new_status, request.user.id)
        return Response(ProposalSerializer(proposal, context={"request": request}).data)

    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        return self._decide(request, ProposalStatus.ACCEPTED)

    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        return self._decide(request, ProposalStatus.REJECTED)

    @action(detail=True, methods=["post"])
    def withdraw(self, request, pk=None):
        proposal = self.get_object()
        if proposal.student_id != request.user.id:
            return Response({"detail": "Only the applicant can withdraw."}, status=status.HTTP_403_FORBIDDEN)
        if proposal.status != ProposalStatus.PENDING:
            return Response({"detail": f"Proposal is already {proposal.status}."},
                            status=status.HTTP_409_CONFLICT)
        proposal.status = ProposalStatus.WITHDRAWN
        proposal.save(update_fields=["status", "updated_at"])
        return Response(ProposalSerializer(proposal, context={"request": request}).data)
