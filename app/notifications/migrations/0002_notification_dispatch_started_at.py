from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("notifications", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="notification",
            name="dispatch_started_at",
            field=models.DateTimeField(
                blank=True,
                help_text="When the latest dispatch run started",
                null=True,
            ),
        ),
        migrations.AlterField(
            model_name="notification",
            name="sent_at",
            field=models.DateTimeField(
                blank=True,
                help_text="When dispatch first delivered on a channel",
                null=True,
            ),
        ),
    ]
