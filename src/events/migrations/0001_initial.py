import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import accounts.validators


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("location", models.CharField(blank=True, default="", max_length=255)),
                ("start", models.DateTimeField(db_index=True)),
                ("end", models.DateTimeField(blank=True, null=True)),
                ("registration_deadline", models.DateTimeField(db_index=True)),
                (
                    "capacity",
                    models.PositiveIntegerField(
                        default=0, help_text="Maximum number of seats. 0 closes registration."
                    ),
                ),
                ("current_occupancy", models.PositiveIntegerField(default=0, editable=False)),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Draft"), ("published", "Published"), ("cancelled", "Cancelled")],
                        db_index=True,
                        default="draft",
                        max_length=20,
                    ),
                ),
                (
                    "organizer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="organized_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["start"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("current_occupancy__lte", models.F("capacity"))),
                        name="event_occupancy_within_capacity",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Registration",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("code", models.CharField(editable=False, max_length=40, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("cancelled", "Cancelled"),
                            ("attended", "Attended"),
                            ("no-show", "No-show"),
                        ],
                        db_index=True,
                        default="confirmed",
                        max_length=20,
                    ),
                ),
                ("contact_name", models.CharField(max_length=255)),
                ("contact_email", models.EmailField(max_length=254)),
                (
                    "contact_phone",
                    models.CharField(
                        blank=True,
                        default="",
                        max_length=32,
                        validators=[accounts.validators.validate_contact_phone],
                    ),
                ),
                ("contact_college", models.CharField(blank=True, default="", max_length=100)),
                ("ticket_payload", models.TextField(editable=False)),
                ("ticket_signature", models.CharField(editable=False, max_length=64)),
                ("ticket_issued_at", models.DateTimeField(editable=False)),
                ("ticket_qr_code", models.TextField(blank=True, default="", help_text="Base64 encoded PNG")),
                ("checked_in_at", models.DateTimeField(blank=True, null=True)),
                (
                    "check_in_method",
                    models.CharField(
                        blank=True,
                        choices=[("qr-scan", "QR scan"), ("manual", "Manual"), ("self-checkin", "Self check-in")],
                        default="",
                        max_length=20,
                    ),
                ),
                (
                    "feedback_rating",
                    models.PositiveSmallIntegerField(
                        blank=True,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(5),
                        ],
                    ),
                ),
                ("feedback_comment", models.TextField(blank=True, default="")),
                ("feedback_submitted_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True, default="")),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "cancelled_by",
                    models.CharField(
                        blank=True,
                        choices=[("participant", "Participant"), ("organizer", "Organizer")],
                        default="",
                        max_length=20,
                    ),
                ),
                ("dietary_requirements", models.CharField(blank=True, default="", max_length=200)),
                ("accessibility_requirements", models.CharField(blank=True, default="", max_length=200)),
                ("other_requirements", models.CharField(blank=True, default="", max_length=200)),
                (
                    "referral_source",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("website", "Website"),
                            ("social-media", "Social media"),
                            ("email", "Email"),
                            ("friend", "Friend"),
                            ("search-engine", "Search engine"),
                            ("other", "Other"),
                        ],
                        default="",
                        max_length=20,
                    ),
                ),
                ("email_reminders", models.BooleanField(default=True)),
                ("sms_reminders", models.BooleanField(default=False)),
                ("payment_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("payment_currency", models.CharField(default="USD", max_length=3)),
                ("payment_method", models.CharField(blank=True, default="", max_length=50)),
                ("payment_transaction_id", models.CharField(blank=True, default="", max_length=255)),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        default="completed",
                        max_length=20,
                    ),
                ),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.CharField(blank=True, default="", max_length=512)),
                (
                    "source",
                    models.CharField(choices=[("web", "Web"), ("api", "API")], default="web", max_length=10),
                ),
                (
                    "checked_in_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to="events.event",
                    ),
                ),
                (
                    "participant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["event", "status"], name="registration_event_status_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "cancelled"), _negated=True),
                        fields=("participant", "event"),
                        name="unique_active_registration_per_participant",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("feedback_rating__isnull", True),
                            models.Q(("feedback_rating__gte", 1), ("feedback_rating__lte", 5)),
                            _connector="OR",
                        ),
                        name="registration_feedback_rating_range",
                    ),
                ],
            },
        ),
    ]
