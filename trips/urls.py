from django.urls import path
from .views import AddVehicleView, VehicleDataAPIView, VehicleRouteAPIView

app_name = "trips"

urlpatterns = [
    path("api/vehicles/", VehicleDataAPIView.as_view(), name="vehicle-data"),
    path("api/vehicles/<str:vehicle_id>/route/", VehicleRouteAPIView.as_view(), name="vehicle-route"),
    path("vehicle/addVehicle", AddVehicleView.as_view(), name="add-vehicle"),
]
