from rest_framework import serializers

from drivers.models import DriverDocument


class RegisterDriverSerializer(serializers.Serializer):
    """
    Validates input for the register_driver operation. Vehicle details are optional.
    """
    handle = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=150)
    phone = serializers.CharField(max_length=32)
    car_model = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    car_color = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    car_number = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")


class DriverStatusSerializer(serializers.Serializer):
    """
    Serializer for switching a driver online/offline.
    """
    handle = serializers.CharField(max_length=64)
    is_online = serializers.BooleanField()


class DriverHandleSerializer(serializers.Serializer):
    driver_handle = serializers.CharField(max_length=64)


class SubmitDocumentSerializer(serializers.Serializer):
    """
    Validates a document submission.

    Expected body:
    {
        "driver_handle": "<telegram id>",
        "document_type": "license" | "vehicle_registration" | "insurance",
        "document_data": {...}   # file id, number, expiry, etc.
    }
    """
    driver_handle = serializers.CharField(max_length=64)
    document_type = serializers.ChoiceField(choices=DriverDocument.TYPE_CHOICES)
    document_data = serializers.JSONField(required=False, default=dict)

    def validate_document_data(self, value):
        if not isinstance(value, dict):
            raise serializers.ValidationError("document_data must be an object.")
        return value


class AdjudicateDocumentSerializer(serializers.Serializer):
    """
    Approve or reject a document. A rejection should carry a reason, but it is not required.
    """
    document_id = serializers.IntegerField(min_value=1)
    approve = serializers.BooleanField()
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
