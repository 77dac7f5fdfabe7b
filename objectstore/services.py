import logging
from functools import lru_cache
from typing import Any, Optional

from django.conf import settings
from django.core.signals import setting_changed
from django.dispatch import receiver
from django.utils.module_loading import import_string
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.exceptions import NotFound as HttpNotFound
from rest_framework.exceptions import ValidationError

from objectstore.cursors import Cursor
from objectstore.engine import DEFAULT_PAGE_SIZE, Page, VersioningEngine
from objectstore.errors import InvalidCursor, InvalidInput, NotFound, StoreUnavailable
from objectstore.stores import Record, RecordStore

logger = logging.getLogger(__name__)

DEFAULT_STORE_BACKEND = "objectstore.stores.DjangoRecordStore"
DEFAULT_MAX_PAGE_SIZE = 100


class ObjectNotFound(HttpNotFound):
    default_detail = "Object not found."
    default_code = "object_not_found"


class ServiceUnavailable(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Object store is temporarily unavailable."
    default_code = "store_unavailable"


def get_objectstore_settings() -> dict:
    """Read the OBJECTSTORE settings dict, filling in defaults."""
    configured = getattr(settings, "OBJECTSTORE", {})
    return {
        "STORE_BACKEND": configured.get("STORE_BACKEND", DEFAULT_STORE_BACKEND),
        "PAGE_SIZE": configured.get("PAGE_SIZE", DEFAULT_PAGE_SIZE),
        "MAX_PAGE_SIZE": configured.get("MAX_PAGE_SIZE", DEFAULT_MAX_PAGE_SIZE),
    }


class ObjectService:
    """
    Boundary facade over the versioning engine.

    Translates engine errors into DRF exceptions: missing data becomes a 404,
    bad arguments or cursors a 400, and store failures a generic 503.
    """

    def __init__(
        self,
        engine: VersioningEngine,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    ):
        self.engine = engine
        self.page_size = page_size
        self.max_page_size = max_page_size

    def store_object(self, key: str, value: Any) -> Record:
        return self._call(self.engine.store, key, value)

    def find_latest_by_key(self, key: str) -> Record:
        return self._call(self.engine.find_latest_by_key, key)

    def get_value_at(self, key: str, timestamp: int) -> Record:
        return self._call(self.engine.get_value_at, key, timestamp)

    def latest_object_list(
        self, cursor: Optional[str] = None, page_size: Optional[int] = None
    ) -> Page:
        """
        Fetch one page of the latest-object listing.

        Args:
            cursor: Encoded cursor from a previous page
            page_size: Requested page size (default: PAGE_SIZE, capped at MAX_PAGE_SIZE)
        """
        if page_size is None:
            page_size = self.page_size
        elif isinstance(page_size, int) and not isinstance(page_size, bool):
            page_size = min(page_size, self.max_page_size)

        decoded = self._call(Cursor.decode, cursor) if cursor is not None else None
        return self._call(self.engine.list_latest, decoded, page_size)

    def check_health(self) -> None:
        self._call(self.engine.record_store.ping)

    @staticmethod
    def _call(operation, *args):
        try:
            return operation(*args)
        except NotFound as exc:
            raise ObjectNotFound() from exc
        except InvalidInput as exc:
            raise ValidationError({exc.field: [exc.message]}) from exc
        except InvalidCursor as exc:
            raise ValidationError({"cursor": [str(exc)]}) from exc
        except StoreUnavailable as exc:
            logger.error(f"Record store unavailable: {exc}")
            raise ServiceUnavailable() from exc


@lru_cache(maxsize=None)
def get_object_service() -> ObjectService:
    """Build the process-wide facade from the OBJECTSTORE settings."""
    config = get_objectstore_settings()
    store_class = import_string(config["STORE_BACKEND"])
    store: RecordStore = store_class()
    logger.info(f"Using record store {config['STORE_BACKEND']}")
    return ObjectService(
        VersioningEngine(store),
        page_size=config["PAGE_SIZE"],
        max_page_size=config["MAX_PAGE_SIZE"],
    )


@receiver(setting_changed)
def _reset_object_service(*, setting, **kwargs):
    if setting == "OBJECTSTORE":
        get_object_service.cache_clear()
