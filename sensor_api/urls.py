from django.urls import path
from .views import SensorDataAPIView, server_control

urlpatterns = [
    path("sensor-data/", SensorDataAPIView.as_view(), name="sensor-data"),

    # Custom endpoint to control the socket server
    path("server-control/", server_control, name="server-control"),
]
