from decimal import Decimal

from django.db import models


class Driver(models.Model):
    """Driver profile, vehicle details and availability/verification flags"""

    telegram_id = models.CharField(max_length=64, unique=True)
    first_name = models.CharField(max_length=150)
    phone_number = models.CharField(max_length=32)

    # Maintained by the rating aggregator
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal("5.00"))
    total_rides = models.IntegerField(default=0)

    is_online = models.BooleanField(default=False)
    # Derived from approved documents, rewritten on every document status change
    is_verified = models.BooleanField(default=False)

    # Vehicle details
    car_model = models.CharField(max_length=100, blank=True, default="")
    car_color = models.CharField(max_length=50, blank=True, default="")
    car_number = models.CharField(max_length=20, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'drivers'

    def __str__(self):
        return f"{self.first_name} ({self.telegram_id})"

    @property
    def car_description(self):
        if not self.car_model:
            return ""
        if self.car_color:
            return f"{self.car_model} ({self.car_color})"
        return self.car_model

    def document_statuses(self):
        """Map of document type -> status for the documents this driver submitted."""
        return {
            doc.document_type: doc.status
            for doc in self.documents.all()
        }


class DriverDocument(models.Model):
    """One document per (driver, type); resubmission overwrites the row."""

    TYPE_LICENSE = 'license'
    TYPE_VEHICLE_REGISTRATION = 'vehicle_registration'
    TYPE_INSURANCE = 'insurance'

    TYPE_CHOICES = [
        (TYPE_LICENSE, 'Driver license'),
        (TYPE_VEHICLE_REGISTRATION, 'Vehicle registration'),
        (TYPE_INSURANCE, 'Insurance'),
    ]

    STATUS_CHOICES = [
        ('pending', 'Pending review'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
    ]

    driver = models.ForeignKey(
        Driver,
        on_delete=models.CASCADE,
        related_name='documents'
    )
    document_type = models.CharField(max_length=32, choices=TYPE_CHOICES)
    document_data = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    rejection_reason = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'driver_documents'
        ordering = ['driver_id', 'document_type']
        constraints = [
            models.UniqueConstraint(
                fields=['driver', 'document_type'],
                name='unique_driver_document_type'
            )
        ]

    def __str__(self):
        return f"{self.get_document_type_display()} - {self.driver} - {self.status}"
