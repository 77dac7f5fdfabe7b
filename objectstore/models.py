from django.db import models


class VersionedObject(models.Model):
    """One immutable version of a key's value."""

    key = models.CharField(max_length=255)
    value = models.JSONField()
    created_at_timestamp = models.PositiveBigIntegerField(
        help_text="UNIX timestamp (UTC) assigned at write time",
    )

    class Meta:
        ordering = ["-created_at_timestamp", "-id"]
        indexes = [
            models.Index(
                fields=["key", "created_at_timestamp"],
                name="idx_key_created_at_timestamp",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.key} (#{self.pk} @ {self.created_at_timestamp})"
