from django import forms
from .models import Vehicle

# Field names posted by the registration form, mapped onto model fields.
FIELD_ALIASES = {
    'VehicleName': 'name',
    'VehicleType': 'vehicle_type',
    'VehicleNumber': 'vehicle_number',
    'VendorId': 'vendor_id',
    'VehicleInsuranceNumber': 'insurance_number',
    'VehicleMileageRange': 'mileage_range',
    'VehicleManufacturedYear': 'manufactured_year',
    'VehicleFuelType': 'fuel_type',
    'VehicleSeatCapacity': 'seat_capacity',
    'VehicleImage': 'image_url',
}


class VehicleForm(forms.ModelForm):
    class Meta:
        model = Vehicle
        fields = (
            'name', 'vehicle_type', 'vehicle_number', 'vendor_id', 'insurance_number',
            'mileage_range', 'manufactured_year', 'fuel_type', 'seat_capacity', 'image_url'
        )
        error_messages = {
            'mileage_range': {'invalid': 'Mileage must be a number'},
            'image_url': {'required': 'Vehicle image is required'},
        }

    @classmethod
    def from_payload(cls, payload):
        return cls(data={FIELD_ALIASES.get(key, key): value for key, value in payload.items()})

    def clean_manufactured_year(self):
        year = self.cleaned_data['manufactured_year']
        if not 1000 <= year <= 9999:
            raise forms.ValidationError('Year of Manufacture must be a 4-digit number')
        return year
