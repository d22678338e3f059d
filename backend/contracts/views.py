# backend/contracts/views.py
from __future__ import annotations

import logging

from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.pagination import DefaultPageNumberPagination
from payments.gateway import PaymentGatewayError

from .auth import caller_from_request
from .domain import FailureKind, Outcome
from .lifecycle import build_lifecycle
from .models import ContractStatus
from .serializers import (
    ChangeRequestMessageSerializer,
    ChangeRequestRecordSerializer,
    ContractCreateSerializer,
    ContractRecordSerializer,
    ContractTermsSerializer,
    MilestoneStatusSerializer,
    PaymentCompleteSerializer,
    SignSerializer,
)

logger = logging.getLogger(__name__)

FAILURE_STATUS = {
    FailureKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    FailureKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    FailureKind.DUPLICATE_CONTRACT: status.HTTP_409_CONFLICT,
    FailureKind.INVALID_PROPOSAL_STATE: status.HTTP_409_CONFLICT,
    FailureKind.ALREADY_SIGNED: status.HTTP_409_CONFLICT,
    FailureKind.ALREADY_PAID: status.HTTP_409_CONFLICT,
    FailureKind.VERSION_CONFLICT: status.HTTP_409_CONFLICT,
    FailureKind.EMPTY_MESSAGE: status.HTTP_400_BAD_REQUEST,
    FailureKind.INVALID_CONTRACT: status.HTTP_400_BAD_REQUEST,
    FailureKind.PAYMENT_REQUIRED: status.HTTP_402_PAYMENT_REQUIRED,
    FailureKind.PAYMENT_NOT_CONFIRMED: status.HTTP_402_PAYMENT_REQUIRED,
}


def outcome_response(outcome: Outcome, success_status=status.HTTP_200_OK, extra=None) -> Response:
    if not outcome.ok:
        failure = outcome.failure
        return Response(
            {"error": failure.kind.value, "detail": failure.detail},
            status=FAILURE_STATUS.get(failure.kind, status.HTTP_400_BAD_REQUEST),
        )
    data = ContractRecordSerializer(outcome.contract).data
    if extra:
        data = {**data, **extra}
    return Response(data, status=success_status)


class ContractViewSet(viewsets.ViewSet):
    """
    /api/contracts/                           [GET]  my contracts (?status=...)
    /api/contracts/                           [POST] business opens a draft from an accepted proposal
    /api/contracts/<id>/                      [GET]
    /api/contracts/<id>/submit/               [POST] business: draft -> pending_review
    /api/contracts/<id>/accept/               [POST] student: pending_review -> approved
    /api/contracts/<id>/request-changes/      [POST] student: pending_review -> changes_requested
    /api/contracts/<id>/revise/               [POST] business: edit terms, back to draft
    /api/contracts/<id>/payment/initiate/     [POST] business: create a payment intent
    /api/contracts/<id>/payment/complete/     [POST] business: record a confirmed payment
    /api/contracts/<id>/sign/                 [POST] either party, once paid
    /api/contracts/<id>/milestones/<index>/   [POST] milestone progress while signed
    /api/contracts/<id>/complete/             [POST] either party, all milestones approved
    /api/contracts/<id>/reset-payment/        [POST] admin
    /api/contracts/<id>/changes/              [GET]  change request history
    """
    permission_classes = [permissions.IsAuthenticated]
    pagination_class = DefaultPageNumberPagination
    lifecycle_factory = staticmethod(build_lifecycle)

    @property
    def lifecycle(self):
        if not hasattr(self, "_lifecycle"):
            self._lifecycle = self.lifecycle_factory()
        return self._lifecycle

    def _visible(self, request, pk):
        """Contract snapshot if the caller may read it, else an error Response."""
        caller = caller_from_request(request)
        record = self.lifecycle.store.get(pk)
        if record is None:
            return None, outcome_response(Outcome.fail(FailureKind.NOT_FOUND, f"Contract {pk} not found."))
        if not (caller.is_admin or caller.user_id in record.parties):
            return None, outcome_response(Outcome.fail(FailureKind.FORBIDDEN, "Not a party to this contract."))
        return record, None

    # ---- reads ----

    def list(self, request):
        caller = caller_from_request(request)
        status_filter = request.query_params.get("status")
        if status_filter and status_filter not in ContractStatus.values:
            return Response({"status": f"Unknown status {status_filter!r}."}, status=status.HTTP_400_BAD_REQUEST)

        store = self.lifecycle.store
        if caller.is_admin and request.query_params.get("all") in ("1", "true"):
            records = store.list_all(status=status_filter)
        else:
            records = store.list_for_user(caller.user_id, status=status_filter)

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(records, request, view=self)
        return paginator.get_paginated_response(ContractRecordSerializer(page, many=True).data)

    def retrieve(self, request, pk=None):
        record, error = self._visible(request, pk)
        if error:
            return error
        return Response(ContractRecordSerializer(record).data)

    @action(detail=True, methods=["get"])
    def changes(self, request, pk=None):
        record, error = self._visible(request, pk)
        if error:
            return error
        return Response(ChangeRequestRecordSerializer(record.change_requests, many=True).data)

    # ---- creation & review ----

    def create(self, request):
        ser = ContractCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        draft = dict(ser.validated_data)
        proposal_id = draft.pop("proposal")
        outcome = self.lifecycle.create_from_proposal(proposal_id, caller_from_request(request), draft)
        return outcome_response(outcome, success_status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        return outcome_response(self.lifecycle.submit_for_review(pk, caller_from_request(request)))

    @action(detail=True, methods=["post"])
    def accept(self, request, pk=None):
        return outcome_response(self.lifecycle.accept(pk, caller_from_request(request)))

    @action(detail=True, methods=["post"], url_path="request-changes")
    def request_changes(self, request, pk=None):
        ser = ChangeRequestMessageSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        outcome = self.lifecycle.request_changes(pk, caller_from_request(request), ser.validated_data["message"])
        return outcome_response(outcome)

    @action(detail=True, methods=["post"])
    def revise(self, request, pk=None):
        ser = ContractTermsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        outcome = self.lifecycle.revise_draft(pk, caller_from_request(request), dict(ser.validated_data))
        return outcome_response(outcome)

    # ---- payment ----

    @action(detail=True, methods=["post"], url_path="payment/initiate")
    def initiate_payment(self, request, pk=None):
        try:
            outcome = self.lifecycle.initiate_payment(pk, caller_from_request(request))
        except PaymentGatewayError as e:
            return Response({"detail": str(e)}, status=status.HTTP_502_BAD_GATEWAY)
        extra = None
        if outcome.ok:
            extra = {
                "client_secret": outcome.data.get("client_secret", ""),
                "payment_intent_id": outcome.data.get("payment_intent_id", ""),
            }
        return outcome_response(outcome, extra=extra)

    @action(detail=True, methods=["post"], url_path="payment/complete")
    def complete_payment(self, request, pk=None):
        ser = PaymentCompleteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        outcome = self.lifecycle.complete_payment(
            pk, caller_from_request(request), ser.validated_data["payment_reference"]
        )
        return outcome_response(outcome)

    @action(detail=True, methods=["post"], url_path="reset-payment")
    def reset_payment(self, request, pk=None):
        return outcome_response(self.lifecycle.reset_payment(pk, caller_from_request(request)))

    # ---- signatures & delivery ----

    @action(detail=True, methods=["post"])
    def sign(self, request, pk=None):
        ser = SignSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        outcome = self.lifecycle.sign(
            pk, caller_from_request(request), ser.validated_data["role"], ser.validated_data["signature"]
        )
        return outcome_response(outcome)

    @action(detail=True, methods=["post"], url_path=r"milestones/(?P<index>\d+)")
    def milestone(self, request, pk=None, index=None):
        ser = MilestoneStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        outcome = self.lifecycle.update_milestone(
            pk, caller_from_request(request), int(index), ser.validated_data["status"]
        )
        return outcome_response(outcome)

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        return outcome_response(self.lifecycle.complete(pk, caller_from_request(request)))
