import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("marketplace", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Contract",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("terms", models.TextField()),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("start_date", models.DateField()),
                ("end_date", models.DateField()),
                ("status", models.CharField(choices=[("draft", "Draft"), ("pending_review", "Pending Review"), ("changes_requested", "Changes Requested"), ("approved", "Approved"), ("signed", "Signed"), ("completed", "Completed")], db_index=True, default="draft", max_length=20)),
                ("payment_status", models.CharField(choices=[("pending", "Pending"), ("partial", "Partially Paid"), ("paid", "Paid")], db_index=True, default="pending", max_length=20)),
                ("payment_intent_id", models.CharField(blank=True, db_index=True, max_length=255)),
                ("payment_reference", models.CharField(blank=True, max_length=255)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("business_signature", models.TextField(blank=True)),
                ("business_signed_at", models.DateTimeField(blank=True, null=True)),
                ("student_signature", models.TextField(blank=True)),
                ("student_signed_at", models.DateTimeField(blank=True, null=True)),
                ("version", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("business", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="business_contracts", to=settings.AUTH_USER_MODEL)),
                ("job", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="contracts", to="marketplace.job")),
                ("proposal", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="contract", to="marketplace.proposal")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="student_contracts", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-updated_at"],
            },
        ),
        migrations.CreateModel(
            name="Milestone",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField()),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("due_date", models.DateField()),
                ("status", models.CharField(choices=[("pending", "Pending"), ("in_progress", "In Progress"), ("completed", "Completed"), ("approved", "Approved")], default="pending", max_length=20)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="milestones", to="contracts.contract")),
            ],
            options={
                "ordering": ["position"],
                "unique_together": {("contract", "position")},
            },
        ),
        migrations.CreateModel(
            name="ChangeRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("message", models.TextField()),
                ("status", models.CharField(choices=[("pending", "Pending"), ("resolved", "Resolved")], default="pending", max_length=20)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("author", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ("contract", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="change_requests", to="contracts.contract")),
            ],
            options={
                "ordering": ["created_at", "id"],
            },
        ),
    ]
