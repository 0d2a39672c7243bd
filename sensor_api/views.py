from rest_framework.decorators import api_view, permission_classes
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status, permissions

from .helpers import split_csv_rows
from .server_utils import get_sensor_data, get_sensor_server, get_server_status, shutdown_sensor_server

SERVER_ACTIONS = ["start", "stop", "status"]


class SensorDataAPIView(APIView):
    """Read-only view of the sensor data received so far."""
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        since = request.query_params.get("since", "0")
        try:
            since = int(since)
        except ValueError:
            since = -1
        if since < 0:
            return self.error_response(
                message="Invalid offset",
                errors={"since": "Must be a non-negative integer"},
                status_code=status.HTTP_400_BAD_REQUEST
            )

        sensor_data = get_sensor_data()
        all_lines = sensor_data.lines()
        lines = all_lines[since:]

        return self.success_response(
            message="Sensor data retrieved" if lines else "No new sensor data",
            data={
                "raw": "".join(f"{line}\n" for line in lines),
                "lines": lines,
                "rows": split_csv_rows(lines),
                "line_count": len(all_lines),
                "next": len(all_lines),
            }
        )

    # Success response helper
    def success_response(self, message, data=None, status_code=status.HTTP_200_OK):
        return Response({
            "success": True,
            "message": message,
            "data": data,
            "errors": None
        }, status=status_code)

    # Error response helper
    def error_response(self, message, errors=None, status_code=status.HTTP_400_BAD_REQUEST):
        return Response({
            "success": False,
            "message": message,
            "data": None,
            "errors": errors
        }, status=status_code)


@api_view(["POST"])
@permission_classes([permissions.AllowAny])
def server_control(request):
    data = request.data
    action = data.get("action") if isinstance(data, dict) else None
    if action not in SERVER_ACTIONS:
        return Response({
            "success": False,
            "message": "Invalid action",
            "data": None,
            "errors": {"action": f"Must be one of {', '.join(SERVER_ACTIONS)}"}
        }, status=status.HTTP_400_BAD_REQUEST)

    if action == "status":
        return control_response("Sensor server status", get_server_status())

    if action == "start":
        # a bind failure propagates to the exception handler as a 503
        started = get_sensor_server().start()
        message = "Sensor server started successfully." if started else "Sensor server is already running."
        return control_response(message, get_server_status())

    # stop
    was_running = get_server_status()["running"]
    shutdown_sensor_server()
    message = "Sensor server stopped successfully." if was_running else "Sensor server is already stopped."
    return control_response(message, get_server_status())


def control_response(message, server_status):
    return Response({
        "success": True,
        "message": message,
        "data": {"status": server_status},
        "errors": None
    }, status=status.HTTP_200_OK)
