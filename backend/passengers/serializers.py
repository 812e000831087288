from rest_framework import serializers


class RegisterPassengerSerializer(serializers.Serializer):
    """
    Validates input for the register_passenger operation.

    Expected body:
    {
        "handle": "<telegram id>",
        "name": "<display name>",
        "phone": "<phone number>"
    }
    """
    handle = serializers.CharField(max_length=64)
    name = serializers.CharField(max_length=150)
    phone = serializers.CharField(max_length=32)


class ResolveRoleSerializer(serializers.Serializer):
    """
    Validates input for resolve_role: the sender's handle and the raw message text.
    """
    handle = serializers.CharField(max_length=64)
    message = serializers.CharField(required=False, allow_blank=True, default="")
