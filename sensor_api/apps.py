from django.apps import AppConfig


class SensorApiConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sensor_api"
    verbose_name = "Sensor data socket server"
