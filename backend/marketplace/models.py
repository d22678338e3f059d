# backend/marketplace/models.py
from django.conf import settings
from django.db import models


class JobStatus(models.TextChoices):
    OPEN = "open", "Open"
    CLOSED = "closed", "Closed"


class ProposalStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"
    WITHDRAWN = "withdrawn", "Withdrawn"


class Job(models.Model):
    business = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="jobs"
    )
    title = models.CharField(max_length=255)
    description = models.TextField()
    skills_required = models.JSONField(default=list, blank=True)
    budget_min = models.DecimalField(max_digits=12, decimal_places=2)
    budget_max = models.DecimalField(max_digits=12, decimal_places=2)
    # [{title, amount, due_date}] suggested by the business when posting
    milestones = models.JSONField(default=list, blank=True)
    status = models.CharField(
        max_length=20, choices=JobStatus.choices, default=JobStatus.OPEN, db_index=True
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.title


class Proposal(models.Model):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name="proposals")
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="proposals"
    )
    cover_letter = models.TextField()
    quote_amount = models.DecimalField(max_digits=12, decimal_places=2)
    milestones = models.JSONField(default=list, blank=True)
    status = models.CharField(
        max_length=20, choices=ProposalStatus.choices, default=ProposalStatus.PENDING, db_index=True
    )
    submitted_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-submitted_at"]
        indexes = [
            models.Index(fields=["job", "status"], name="proposal_job_status_idx"),
            models.Index(fields=["student", "status"], name="proposal_student_status_idx"),
        ]
        unique_together = [("job", "student")]

    def __str__(self):
        return f"Proposal {self.pk} on {self.job_id} by {self.student_id} ({self.status})"

    @property
    def business_id(self):
        return self.job.business_id
