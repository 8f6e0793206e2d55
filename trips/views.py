from __future__ import annotations

import json
import logging

from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from django.views.generic import View

from .forms import FIELD_ALIASES, VehicleForm
from .services import get_fleet_snapshot, get_route_session

logger = logging.getLogger(__name__)

FIELD_NAMES = {field: alias for alias, field in FIELD_ALIASES.items()}


class VehicleDataAPIView(View):
    def get(self, request, *args, **kwargs):
        show_all = request.GET.get("show_all", "1").lower() not in ("0", "false", "no")
        return JsonResponse(get_fleet_snapshot(show_all=show_all))


class VehicleRouteAPIView(View):
    def get(self, request, *args, **kwargs):
        vehicle_id = self.kwargs["vehicle_id"]
        logger.info("Computing route for vehicle %s", vehicle_id)

        client_key = request.headers.get("X-Client-Id") or request.META.get("REMOTE_ADDR", "")
        plan = get_route_session(client_key).select_vehicle(vehicle_id)
        if plan is None:
            return JsonResponse(
                {"vehicle_id": vehicle_id, "superseded": True},
                status=409,
            )
        return JsonResponse(plan.as_dict())


@method_decorator(csrf_exempt, name='dispatch')
class AddVehicleView(View):
    def post(self, request, *args, **kwargs):
        try:
            data = json.loads(request.body)
        except json.JSONDecodeError:
            return JsonResponse({'error': 'Invalid JSON'}, status=400)

        if not isinstance(data, dict):
            return JsonResponse({'error': 'Invalid JSON'}, status=400)

        form = VehicleForm.from_payload(data)
        if not form.is_valid():
            errors = {
                FIELD_NAMES.get(field, field): [error["message"] for error in field_errors]
                for field, field_errors in form.errors.get_json_data().items()
            }
            return JsonResponse({'errors': errors}, status=400)

        vehicle = form.save()
        logger.info("Registered vehicle %s (%s)", vehicle.name, vehicle.vehicle_number)
        return JsonResponse({'success': True, 'id': vehicle.pk}, status=201)
