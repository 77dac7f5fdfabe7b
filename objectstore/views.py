from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from objectstore.serializers import (
    ObjectListQuerySerializer,
    ObjectListResponseSerializer,
    ObjectWriteSerializer,
    RecordSerializer,
    ValueAtQuerySerializer,
)
from objectstore.services import ServiceUnavailable, get_object_service

KEY_PARAMETER = OpenApiParameter(
    name="key",
    type=str,
    location=OpenApiParameter.PATH,
    description="The key of the object",
)


class ObjectListView(APIView):
    """List the latest version of every object, or store a new version."""

    @extend_schema(
        operation_id="list_objects",
        summary="List latest objects",
        description="Return the latest version of every key, newest first. Uses cursor pagination so pages stay stable while new versions are written.",
        parameters=[ObjectListQuerySerializer],
        responses={
            200: OpenApiResponse(
                response=ObjectListResponseSerializer,
                description="One page of latest objects",
            ),
            400: OpenApiResponse(description="Invalid cursor or page size"),
        },
        tags=["Objects"],
    )
    def get(self, request):
        query = ObjectListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        page = get_object_service().latest_object_list(
            cursor=query.validated_data.get("cursor"),
            page_size=query.validated_data.get("page_size"),
        )

        results = RecordSerializer(page.items, many=True).data
        return Response({
            "count": len(results),
            "results": results,
            "next_cursor": page.next_cursor.encode() if page.next_cursor else None,
            "prev_cursor": page.prev_cursor.encode() if page.prev_cursor else None,
        })

    @extend_schema(
        operation_id="store_object",
        summary="Store an object",
        description="Write a new version of a key. Every write creates a new immutable version, even when the value is unchanged.",
        request=ObjectWriteSerializer,
        responses={
            201: OpenApiResponse(
                response=RecordSerializer,
                description="Version created",
            ),
            400: OpenApiResponse(description="Missing or invalid key or value"),
        },
        tags=["Objects"],
    )
    def post(self, request):
        serializer = ObjectWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        record = get_object_service().store_object(
            serializer.validated_data["key"],
            serializer.validated_data["value"],
        )
        return Response(RecordSerializer(record).data, status=status.HTTP_201_CREATED)


class ObjectDetailView(APIView):
    """Return the latest version of a single key."""

    @extend_schema(
        operation_id="show_object",
        summary="Show latest object",
        description="Retrieve the latest version of the object stored under a key.",
        parameters=[KEY_PARAMETER],
        responses={
            200: OpenApiResponse(response=RecordSerializer, description="Latest version"),
            404: OpenApiResponse(description="Key not found"),
        },
        tags=["Objects"],
    )
    def get(self, request, key: str):
        record = get_object_service().find_latest_by_key(key)
        return Response(RecordSerializer(record).data)


class ObjectValueAtView(APIView):
    """Return the version of a key that was current at a given timestamp."""

    @extend_schema(
        operation_id="get_value_at_timestamp",
        summary="Get value at timestamp",
        description="Retrieve the version of the object that was current at the given Unix timestamp.",
        parameters=[KEY_PARAMETER, ValueAtQuerySerializer],
        responses={
            200: OpenApiResponse(response=RecordSerializer, description="Version current at the timestamp"),
            400: OpenApiResponse(description="Missing or invalid timestamp"),
            404: OpenApiResponse(description="No version at or before the timestamp"),
        },
        tags=["Objects"],
    )
    def get(self, request, key: str):
        query = ValueAtQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        record = get_object_service().get_value_at(key, query.validated_data["timestamp"])
        return Response(RecordSerializer(record).data)


class HealthCheckView(APIView):
    """Health check endpoint."""

    @extend_schema(
        operation_id="health_check",
        summary="Health check",
        description="Returns whether this node can reach its record store.",
        responses={
            200: OpenApiResponse(description="Record store reachable"),
            503: OpenApiResponse(description="Record store unavailable"),
        },
        tags=["Health & Monitoring"],
    )
    def get(self, request):
        try:
            get_object_service().check_health()
        except ServiceUnavailable:
            return Response(
                {"status": "unhealthy"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return Response({"status": "healthy"}, status=status.HTTP_200_OK)
