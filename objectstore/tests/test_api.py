from unittest import mock

from django.contrib.admin.sites import site
from django.test import RequestFactory, TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from objectstore.cursors import Cursor
from objectstore.errors import StoreUnavailable
from objectstore.models import VersionedObject
from objectstore.services import get_object_service
from objectstore.stores import DjangoRecordStore


class ObjectApiTests(APITestCase):
    def setUp(self):
        get_object_service.cache_clear()

    def create_version(self, key, value, timestamp):
        return VersionedObject.objects.create(key=key, value=value, created_at_timestamp=timestamp)

    def test_store_and_read_object(self):
        response = self.client.post(
            reverse("objectstore:object-list"),
            {"key": "alpha", "value": {"foo": "bar"}},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(
            set(response.data), {"id", "key", "value", "created_at_timestamp"}
        )
        self.assertEqual(response.data["value"], {"foo": "bar"})

        response = self.client.get(reverse("objectstore:object-detail", args=["alpha"]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["key"], "alpha")
        self.assertEqual(response.data["value"], {"foo": "bar"})

    def test_every_store_creates_a_version(self):
        url = reverse("objectstore:object-list")
        first = self.client.post(url, {"key": "alpha", "value": "same"}, format="json")
        second = self.client.post(url, {"key": "alpha", "value": "same"}, format="json")
        self.assertGreater(second.data["id"], first.data["id"])
        self.assertEqual(VersionedObject.objects.filter(key="alpha").count(), 2)

    def test_store_rejects_invalid_payloads(self):
        url = reverse("objectstore:object-list")
        payloads = [
            {"key": "", "value": {"a": 1}},
            {"value": {"a": 1}},
            {"key": "k", "value": None},
            {"key": "k"},
            {"key": "k" * 256, "value": 1},
            {"key": "é" * 128, "value": 1},
        ]
        for payload in payloads:
            with self.subTest(payload=payload):
                response = self.client.post(url, payload, format="json")
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(VersionedObject.objects.exists())

    def test_missing_key_returns_404(self):
        response = self.client.get(reverse("objectstore:object-detail", args=["missing"]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_latest_prefers_larger_id_on_equal_timestamps(self):
        self.create_version("alpha", "first", 100)
        second = self.create_version("alpha", "second", 100)

        response = self.client.get(reverse("objectstore:object-detail", args=["alpha"]))
        self.assertEqual(response.data["id"], second.pk)

    def test_value_at_timestamp(self):
        self.create_version("k", "A", 100)
        self.create_version("k", "B", 200)
        url = reverse("objectstore:object-value-at", args=["k"])

        self.assertEqual(self.client.get(url, {"timestamp": 150}).data["value"], "A")
        self.assertEqual(self.client.get(url, {"timestamp": 200}).data["value"], "B")
        self.assertEqual(
            self.client.get(url, {"timestamp": 50}).status_code,
            status.HTTP_404_NOT_FOUND,
        )

    def test_value_at_timestamp_beyond_64_bits_returns_latest(self):
        self.create_version("k", "A", 100)
        latest = self.create_version("k", "B", 200)

        response = self.client.get(
            reverse("objectstore:object-value-at", args=["k"]), {"timestamp": 10**20}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["id"], latest.pk)

    def test_value_at_rejects_bad_timestamps(self):
        url = reverse("objectstore:object-value-at", args=["k"])
        for params in [{}, {"timestamp": 0}, {"timestamp": -1}, {"timestamp": "soon"}]:
            with self.subTest(params=params):
                response = self.client.get(url, params)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_returns_latest_version_per_key(self):
        for timestamp in (100, 110, 120):
            self.create_version("k1", timestamp, timestamp)
        for timestamp in (105, 115):
            self.create_version("k2", timestamp, timestamp)

        response = self.client.get(reverse("objectstore:object-list"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual(
            [(item["key"], item["value"]) for item in response.data["results"]],
            [("k1", 120), ("k2", 115)],
        )
        self.assertIsNone(response.data["next_cursor"])
        self.assertIsNone(response.data["prev_cursor"])

    def test_list_pagination_round_trip(self):
        for index in range(25):
            self.create_version(f"key-{index:02d}", index, 1000 + index // 5)
        url = reverse("objectstore:object-list")

        unpaged = self.client.get(url, {"page_size": 50}).data["results"]
        first = self.client.get(url).data
        second = self.client.get(url, {"cursor": first["next_cursor"]}).data

        self.assertEqual(first["count"], 20)
        self.assertEqual(second["count"], 5)
        self.assertIsNone(second["next_cursor"])
        self.assertEqual(first["results"] + second["results"], unpaged)

        back = self.client.get(url, {"cursor": second["prev_cursor"]}).data
        self.assertEqual(back["results"], first["results"])

    @override_settings(OBJECTSTORE={"MAX_PAGE_SIZE": 3})
    def test_page_size_is_capped(self):
        for index in range(5):
            self.create_version(f"key-{index}", index, 100)

        response = self.client.get(reverse("objectstore:object-list"), {"page_size": 50})
        self.assertEqual(response.data["count"], 3)

    def test_list_rejects_cursor_beyond_64_bits(self):
        self.create_version("k", "A", 100)
        cursor = Cursor(created_at=10**20, id=10**20).encode()

        response = self.client.get(reverse("objectstore:object-list"), {"cursor": cursor})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("cursor", response.data)

    def test_list_with_many_keys(self):
        VersionedObject.objects.bulk_create(
            VersionedObject(key=f"key-{index}", value=index, created_at_timestamp=100)
            for index in range(1200)
        )
        self.create_version("key-0", "rewritten", 200)

        response = self.client.get(reverse("objectstore:object-list"), {"page_size": 3})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [item["key"] for item in response.data["results"]],
            ["key-0", "key-1199", "key-1198"],
        )

    def test_list_rejects_bad_parameters(self):
        url = reverse("objectstore:object-list")
        for params in [{"cursor": "garbage!"}, {"page_size": 0}, {"page_size": "many"}]:
            with self.subTest(params=params):
                response = self.client.get(url, params)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_store_failure_returns_503_without_details(self):
        with mock.patch.object(
            DjangoRecordStore, "append", side_effect=StoreUnavailable("append failed")
        ):
            response = self.client.post(
                reverse("objectstore:object-list"),
                {"key": "alpha", "value": 1},
                format="json",
            )
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertNotIn("append", str(response.data))

    def test_health_check(self):
        response = self.client.get(reverse("objectstore:health"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "healthy")

        with mock.patch.object(DjangoRecordStore, "ping", side_effect=StoreUnavailable("down")):
            response = self.client.get(reverse("objectstore:health"))
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    @override_settings(OBJECTSTORE={"STORE_BACKEND": "objectstore.stores.InMemoryRecordStore"})
    def test_in_memory_backend_from_settings(self):
        url = reverse("objectstore:object-list")
        self.client.post(url, {"key": "alpha", "value": 1}, format="json")

        response = self.client.get(reverse("objectstore:object-detail", args=["alpha"]))
        self.assertEqual(response.data["value"], 1)
        self.assertFalse(VersionedObject.objects.exists())

    def test_schema_documents_object_endpoints(self):
        response = self.client.get(reverse("schema"), HTTP_ACCEPT="application/json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("/api/v1/object/", response.data["paths"])


class VersionedObjectAdminTests(TestCase):
    def test_admin_is_read_only(self):
        model_admin = site._registry[VersionedObject]
        request = RequestFactory().get("/admin/")
        self.assertFalse(model_admin.has_add_permission(request))
        self.assertFalse(model_admin.has_change_permission(request))
        self.assertFalse(model_admin.has_delete_permission(request))
