from django.urls import include, path

urlpatterns = [
    path("api/", include("sensor_api.urls")),
]
