from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="VersionedObject",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("key", models.CharField(max_length=255)),
                ("value", models.JSONField()),
                (
                    "created_at_timestamp",
                    models.PositiveBigIntegerField(
                        help_text="UNIX timestamp (UTC) assigned at write time"
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at_timestamp", "-id"],
                "indexes": [
                    models.Index(
                        fields=["key", "created_at_timestamp"],
                        name="idx_key_created_at_timestamp",
                    )
                ],
            },
        ),
    ]
