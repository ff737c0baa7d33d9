# Generated manually

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.db import migrations, models


def timestamps():
    return [
        (
            "id",
            models.BigAutoField(
                auto_created=True,
                primary_key=True,
                serialize=False,
                verbose_name="ID",
            ),
        ),
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def generic_reference(prefix, help_label, required=False):
    on_delete = (
        django.db.models.deletion.CASCADE
        if required
        else django.db.models.deletion.SET_NULL
    )
    nullable = {} if required else {"null": True, "blank": True}
    return [
        (
            f"{prefix}_content_type",
            models.ForeignKey(
                help_text=f"Content type of the {help_label}",
                on_delete=on_delete,
                related_name="+",
                to="contenttypes.contenttype",
                **nullable,
            ),
        ),
        (
            f"{prefix}_id",
            models.CharField(
                help_text=(
                    "ID of the receiver (supports UUID and integer PKs)"
                    if required
                    else f"ID of the {help_label}"
                ),
                max_length=64,
                **nullable,
            ),
        ),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("contenttypes", "0002_remove_content_type_name"),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=timestamps()
            + generic_reference("receiver", "receiver", required=True)
            + generic_reference("sender", "sender")
            + generic_reference("notifiable", "notifiable entity")
            + generic_reference("linked", "linked entity")
            + [
                (
                    "code",
                    models.CharField(
                        default="default",
                        help_text="Event code within the notifiable type",
                        max_length=100,
                    ),
                ),
                (
                    "title",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Stored title (blank = derived from translations)",
                        max_length=500,
                    ),
                ),
                (
                    "body",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Stored body (blank = derived from translations)",
                    ),
                ),
                (
                    "link",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Stored link (blank = derived from linked entity)",
                        max_length=2048,
                    ),
                ),
                (
                    "cc_emails",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Extra cc addresses for the email channel",
                    ),
                ),
                (
                    "official",
                    models.BooleanField(
                        db_index=True,
                        default=False,
                        help_text="Official notifications have their own unread counter",
                    ),
                ),
                (
                    "verbose",
                    models.BooleanField(
                        default=False,
                        help_text="Expose a snapshot of the notifiable when serialized",
                    ),
                ),
                (
                    "read_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the receiver read this notification",
                        null=True,
                    ),
                ),
                (
                    "sent_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When dispatch first completed",
                        null=True,
                    ),
                ),
                (
                    "sending_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Deferred delivery time (null = immediately)",
                        null=True,
                    ),
                ),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[
                            ("created", "Created"),
                            ("deferred", "Deferred"),
                            ("dispatching", "Dispatching"),
                            ("dispatched", "Dispatched"),
                            ("failed", "Failed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="created",
                        help_text="Dispatch state (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "scheduled_task_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Celery task id of the deferred dispatch",
                        max_length=255,
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Last dispatch or scheduling error",
                    ),
                ),
                (
                    "dispatch_attempts",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Number of dispatch runs",
                    ),
                ),
            ],
            options={
                "db_table": "notifications_notification",
                "ordering": ["-id"],
                "indexes": [
                    models.Index(
                        fields=["receiver_content_type", "receiver_id", "read_at"],
                        name="notif_receiver_read_idx",
                    ),
                    models.Index(
                        fields=["notifiable_content_type", "notifiable_id"],
                        name="notif_notifiable_idx",
                    ),
                    models.Index(
                        fields=["state", "sending_at"],
                        name="notif_state_sending_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="NotificationSending",
            fields=timestamps()
            + [
                (
                    "way",
                    models.CharField(
                        choices=[
                            ("email", "Email"),
                            ("websocket", "WebSocket"),
                            ("push", "Push Notification"),
                        ],
                        help_text="Delivery way",
                        max_length=20,
                    ),
                ),
                (
                    "sent_to",
                    models.CharField(
                        help_text="Destination of this attempt",
                        max_length=255,
                    ),
                ),
                (
                    "sent_result",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Transport result or error",
                    ),
                ),
                (
                    "sent_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        help_text="When the attempt was made",
                    ),
                ),
                (
                    "notification",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sendings",
                        to="notifications.notification",
                    ),
                ),
            ],
            options={
                "verbose_name": "notification sending",
                "verbose_name_plural": "notification sendings",
                "db_table": "notifications_notification_sending",
                "ordering": ["-id"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("notification", "way", "sent_to"),
                        name="unique_notification_way_destination",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="NotificationSetting",
            fields=timestamps()
            + [
                (
                    "receiver_id",
                    models.CharField(
                        blank=True,
                        help_text="Receiver id (null = default for the whole type)",
                        max_length=64,
                        null=True,
                    ),
                ),
                (
                    "showtime",
                    models.BooleanField(
                        default=False,
                        help_text="Display the time of realtime notifications",
                    ),
                ),
                (
                    "accept_email",
                    models.BooleanField(
                        blank=True,
                        default=None,
                        help_text="Email preference (null = use global default)",
                        null=True,
                    ),
                ),
                (
                    "receiver_content_type",
                    models.ForeignKey(
                        help_text="Receiver type this setting applies to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to="contenttypes.contenttype",
                    ),
                ),
            ],
            options={
                "verbose_name": "notification setting",
                "verbose_name_plural": "notification settings",
                "db_table": "notifications_notification_setting",
                "constraints": [
                    models.UniqueConstraint(
                        fields=("receiver_content_type", "receiver_id"),
                        name="unique_notification_setting_receiver",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("receiver_id__isnull", True)),
                        fields=("receiver_content_type",),
                        name="unique_notification_setting_type_default",
                    ),
                ],
            },
        ),
    ]
