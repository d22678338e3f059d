# backend/contracts/serializers.py
from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from .domain import MilestoneRecord
from .models import MilestoneStatus, SignerRole


# ---- Input ----

class MilestoneInputSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    due_date = serializers.DateField()

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return MilestoneRecord(
            title=value["title"],
            amount=value["amount"],
            due_date=value["due_date"],
            description=value.get("description", ""),
        )


class ContractTermsSerializer(serializers.Serializer):
    """Editable terms; every field optional so it serves both create and revise."""
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    terms = serializers.CharField(required=False)
    total_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False
    )
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    milestones = serializers.ListField(child=MilestoneInputSerializer(), required=False)

    def validate(self, attrs):
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and end < start:
            raise serializers.ValidationError({"end_date": "End date cannot be before the start date."})
        if "milestones" in attrs:
            attrs["milestones"] = tuple(attrs["milestones"])
        return attrs


class ContractCreateSerializer(ContractTermsSerializer):
    proposal = serializers.IntegerField(min_value=1)


class ChangeRequestMessageSerializer(serializers.Serializer):
    # Missing or blank messages are let through; the lifecycle answers them with empty_message
    message = serializers.CharField(required=False, default="", allow_blank=True, trim_whitespace=True)


class PaymentCompleteSerializer(serializers.Serializer):
    payment_reference = serializers.CharField(allow_blank=True, max_length=255)


class SignSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=SignerRole.choices)
    signature = serializers.CharField(allow_blank=True, trim_whitespace=False)


class MilestoneStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=MilestoneStatus.choices)


# ---- Output ----

class MilestoneRecordSerializer(serializers.Serializer):
    title = serializers.CharField()
    description = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    due_date = serializers.DateField()
    status = serializers.CharField()


class ChangeRequestRecordSerializer(serializers.Serializer):
    message = serializers.CharField()
    status = serializers.CharField()
    author = serializers.IntegerField(source="author_id", allow_null=True)
    created_at = serializers.DateTimeField()
    resolved_at = serializers.DateTimeField(allow_null=True)


class ContractRecordSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    proposal = serializers.IntegerField(source="proposal_id")
    job = serializers.IntegerField(source="job_id")
    business = serializers.IntegerField(source="business_id")
    student = serializers.IntegerField(source="student_id")
    title = serializers.CharField()
    description = serializers.CharField()
    terms = serializers.CharField()
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    milestones = MilestoneRecordSerializer(many=True)
    status = serializers.CharField()
    payment_status = serializers.CharField()
    payment_reference = serializers.CharField()
    paid_at = serializers.DateTimeField(allow_null=True)
    business_signed = serializers.SerializerMethodField()
    business_signed_at = serializers.DateTimeField(allow_null=True)
    student_signed = serializers.SerializerMethodField()
    student_signed_at = serializers.DateTimeField(allow_null=True)
    is_fully_signed = serializers.BooleanField()
    change_requests = ChangeRequestRecordSerializer(many=True)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    version = serializers.IntegerField()

    # Signature images are large; expose presence only
    def get_business_signed(self, obj) -> bool:
        return bool(obj.business_signature)

    def get_student_signed(self, obj) -> bool:
        return bool(obj.student_signature)
