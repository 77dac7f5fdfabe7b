from django.urls import path

from objectstore.views import HealthCheckView, ObjectDetailView, ObjectListView, ObjectValueAtView

app_name = "objectstore"

urlpatterns = [
    path("object/", ObjectListView.as_view(), name="object-list"),
    path("object/keys/<str:key>/", ObjectValueAtView.as_view(), name="object-value-at"),
    path("object/<str:key>/", ObjectDetailView.as_view(), name="object-detail"),
    path("health/", HealthCheckView.as_view(), name="health"),
]
