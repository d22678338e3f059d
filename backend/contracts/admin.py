from django.contrib import admin

from .models import ChangeRequest, Contract, Milestone


class _ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class MilestoneInline(_ReadOnlyInline):
    model = Milestone
    fields = ("position", "title", "amount", "due_date", "status")
    readonly_fields = fields


class ChangeRequestInline(_ReadOnlyInline):
    model = ChangeRequest
    fields = ("author", "message", "status", "created_at", "resolved_at")
    readonly_fields = fields


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "business", "student", "total_amount", "status", "payment_status", "updated_at")
    list_filter = ("status", "payment_status")
    search_fields = ("title", "business__email", "student__email", "payment_reference")
    # Contracts change only through the lifecycle (version-checked writes)
    readonly_fields = (
        "proposal", "job", "business", "student",
        "title", "description", "terms", "total_amount", "start_date", "end_date",
        "status", "payment_status", "payment_intent_id", "payment_reference", "paid_at",
        "business_signed_at", "student_signed_at", "version", "created_at", "updated_at",
    )
    exclude = ("business_signature", "student_signature")
    inlines = [MilestoneInline, ChangeRequestInline]

    def has_add_permission(self, request):
        return False
