from django.apps import AppConfig


class ObjectStoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "objectstore"
    verbose_name = "Versioned object store"
