from rest_framework import serializers

from objectstore.engine import MAX_KEY_BYTES


class RecordSerializer(serializers.Serializer):
    """Wire shape of a stored object version."""

    id = serializers.IntegerField(read_only=True)
    key = serializers.CharField(read_only=True)
    value = serializers.JSONField(read_only=True)
    created_at_timestamp = serializers.IntegerField(source="created_at", read_only=True)


class ObjectWriteSerializer(serializers.Serializer):
    """Serializer for writing a new version of a key."""

    key = serializers.CharField(
        max_length=MAX_KEY_BYTES,
        help_text="The key of the object (max 255 bytes)",
    )
    value = serializers.JSONField(
        help_text="The value of the object. Any JSON document except null.",
    )


class ValueAtQuerySerializer(serializers.Serializer):
    timestamp = serializers.IntegerField(
        min_value=1,
        help_text="Unix timestamp (seconds) to read the object as of",
    )


class ObjectListQuerySerializer(serializers.Serializer):
    cursor = serializers.CharField(
        required=False,
        help_text="Opaque cursor from next_cursor or prev_cursor of a previous page",
    )
    page_size = serializers.IntegerField(
        required=False,
        min_value=1,
        help_text="Number of objects per page",
    )


class ObjectListResponseSerializer(serializers.Serializer):
    """Serializer for latest-object listing responses."""

    count = serializers.IntegerField(help_text="Number of objects returned in this page")
    results = RecordSerializer(many=True, help_text="Latest version of each key, newest first")
    next_cursor = serializers.CharField(
        allow_null=True,
        help_text="Cursor for the next page, or null on the last page",
    )
    prev_cursor = serializers.CharField(
        allow_null=True,
        help_text="Cursor for the previous page, or null on the first page",
    )
