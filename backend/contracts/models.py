# backend/contracts/models.py
from django.conf import settings
from django.db import models
from django.utils import timezone


# --- TextChoices for status fields ---
class ContractStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PENDING_REVIEW = "pending_review", "Pending Review"
    CHANGES_REQUESTED = "changes_requested", "Changes Requested"
    APPROVED = "approved", "Approved"
    SIGNED = "signed", "Signed"
    COMPLETED = "completed", "Completed"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    # Reserved for milestone-level partial funding; nothing sets it yet.
    PARTIAL = "partial", "Partially Paid"
    PAID = "paid", "Paid"


class MilestoneStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    COMPLETED = "completed", "Completed"
    APPROVED = "approved", "Approved"


class ChangeRequestStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    RESOLVED = "resolved", "Resolved"


class SignerRole(models.TextChoices):
    BUSINESS = "business", "Business"
    STUDENT = "student", "Student"


class Contract(models.Model):
    # One contract per proposal; the unique constraint is the duplicate guard.
    proposal = models.OneToOneField(
        "marketplace.Proposal", on_delete=models.PROTECT, related_name="contract"
    )
    job = models.ForeignKey("marketplace.Job", on_delete=models.PROTECT, related_name="contracts")
    business = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="business_contracts"
    )
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="student_contracts"
    )

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    terms = models.TextField()
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    start_date = models.DateField()
    end_date = models.DateField()

    status = models.CharField(
        max_length=20, choices=ContractStatus.choices,
        default=ContractStatus.DRAFT, db_index=True
    )
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING, db_index=True
    )
    payment_intent_id = models.CharField(max_length=255, blank=True, db_index=True)
    payment_reference = models.CharField(max_length=255, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    # Signatures: data URL or plain base64 image
    business_signature = models.TextField(blank=True)
    business_signed_at = models.DateTimeField(null=True, blank=True)
    student_signature = models.TextField(blank=True)
    student_signed_at = models.DateTimeField(null=True, blank=True)

    # Optimistic concurrency stamp; bumped on every write
    version = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(default=timezone.now, editable=False)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-updated_at"]

    def __str__(self):
        return f"Contract {self.pk}: {self.title} ({self.status}/{self.payment_status})"


class Milestone(models.Model):
    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name="milestones")
    position = models.PositiveIntegerField()
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    due_date = models.DateField()
    status = models.CharField(
        max_length=20, choices=MilestoneStatus.choices, default=MilestoneStatus.PENDING
    )

    class Meta:
        ordering = ["position"]
        unique_together = [("contract", "position")]

    def __str__(self):
        return f"{self.position}. {self.title} ({self.amount})"


class ChangeRequest(models.Model):
    """
    Student note asking for revisions. Rows are only ever appended; revising
    the draft flips pending rows to resolved.
    """
    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name="change_requests")
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True)
    message = models.TextField()
    status = models.CharField(
        max_length=20, choices=ChangeRequestStatus.choices, default=ChangeRequestStatus.PENDING
    )
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"Change request {self.pk} on contract {self.contract_id} ({self.status})"
