from django.contrib import admin

from .models import Job, Proposal


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "business", "budget_min", "budget_max", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("title", "description", "business__email")
    ordering = ("-created_at",)


@admin.register(Proposal)
class ProposalAdmin(admin.ModelAdmin):
    list_display = ("id", "job", "student", "quote_amount", "status", "submitted_at")
    list_filter = ("status",)
    search_fields = ("job__title", "student__email")
    raw_id_fields = ("job", "student")
