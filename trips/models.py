from django.db import models


class Vehicle(models.Model):
    FUEL_CHOICES = [
        ('Petrol', 'Petrol'),
        ('Diesel', 'Diesel'),
        ('CNG', 'CNG'),
        ('Electric', 'Electric'),
        ('Hybrid', 'Hybrid'),
    ]
    name = models.CharField(max_length=100)
    vehicle_type = models.CharField(max_length=50)
    vehicle_number = models.CharField(max_length=20, unique=True)
    vendor_id = models.CharField(max_length=50)
    insurance_number = models.CharField(max_length=50)
    mileage_range = models.DecimalField(max_digits=7, decimal_places=2)
    manufactured_year = models.PositiveIntegerField()
    fuel_type = models.CharField(max_length=20, choices=FUEL_CHOICES)
    seat_capacity = models.PositiveIntegerField()
    image_url = models.URLField(max_length=500)

    def __str__(self):
        return self.name
