# backend/marketplace/serializers.py
from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from .models import Job, JobStatus, Proposal


class MilestoneDraftSerializer(serializers.Serializer):
    """
    Milestone as suggested on a job or quoted on a proposal (stored as JSON).
    """
    title = serializers.CharField(max_length=255)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))
    due_date = serializers.DateField()

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        # JSONField storage: keep it plain
        return {
            "title": value["title"],
            "amount": str(value["amount"]),
            "due_date": value["due_date"].isoformat(),
        }


class JobSerializer(serializers.ModelSerializer):
    business_name = serializers.CharField(source="business.name", read_only=True)
    proposals_count = serializers.SerializerMethodField(read_only=True)
    milestones = serializers.ListField(child=MilestoneDraftSerializer(), required=False)

    class Meta:
        model = Job
        fields = [
            "id", "business", "business_name", "title", "description",
            "skills_required", "budget_min", "budget_max", "milestones",
            "status", "proposals_count", "created_at", "updated_at",
        ]
        read_only_fields = ["business", "status", "created_at", "updated_at"]

    def get_proposals_count(self, obj: Job) -> int:
        return obj.proposals.count()

    def validate(self, attrs):
        lo = attrs.get("budget_min", getattr(self.instance, "budget_min", None))
        hi = attrs.get("budget_max", getattr(self.instance, "budget_max", None))
        if lo is not None and hi is not None and lo > hi:
            raise serializers.ValidationError({"budget_max": "Maximum budget must be at least the minimum."})
        return attrs


class ProposalSerializer(serializers.ModelSerializer):
    job_title = serializers.CharField(source="job.title", read_only=True)
    student_name = serializers.CharField(source="student.name", read_only=True)
    milestones = serializers.ListField(child=MilestoneDraftSerializer(), required=False)

    class Meta:
        model = Proposal
        fields = [
            "id", "job", "job_title", "student", "student_name", "cover_letter",
            "quote_amount", "milestones", "status", "submitted_at", "updated_at",
        ]
        read_only_fields = ["student", "status", "submitted_at", "updated_at"]

    def validate_job(self, job: Job) -> Job:
        if job.status != JobStatus.OPEN:
            raise serializers.ValidationError("This job is no longer accepting proposals.")
        return job

    def validate(self, attrs):
        request = self.context.get("request")
        job = attrs.get("job")
        if request and job and Proposal.objects.filter(job=job, student=request.user).exists():
            raise serializers.ValidationError({"job": "You have already applied to this job."})
        return attrs
