from decimal import Decimal

from rest_framework import serializers


PRICE_FIELD = dict(max_digits=8, decimal_places=2, min_value=Decimal("0.01"))
ROLE_CHOICES = ['passenger', 'driver']


class EmptySerializer(serializers.Serializer):
    """Operations that take no arguments."""


class OrderIdSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)


class CreateOrderSerializer(serializers.Serializer):
    """
    Validates a new ride request.

    Expected body:
    {
        "passenger_handle": "<telegram id>",
        "from_address": "...",
        "to_address": "...",
        "suggested_price": "500.00"
    }
    """
    passenger_handle = serializers.CharField(max_length=64)
    from_address = serializers.CharField()
    to_address = serializers.CharField()
    suggested_price = serializers.DecimalField(**PRICE_FIELD)


class AcceptOfferSerializer(serializers.Serializer):
    offer_id = serializers.IntegerField(min_value=1)
    order_id = serializers.IntegerField(min_value=1)


class DriverOrderSerializer(serializers.Serializer):
    """
    A driver acting on an order they were assigned (start/complete).
    """
    driver_handle = serializers.CharField(max_length=64)
    order_id = serializers.IntegerField(min_value=1)


class CancelOrderSerializer(serializers.Serializer):
    handle = serializers.CharField(max_length=64)
    role = serializers.ChoiceField(choices=ROLE_CHOICES)
    order_id = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class MakeOfferSerializer(serializers.Serializer):
    """
    Validates a driver's offer. The note is shown to the passenger as-is.
    """
    driver_handle = serializers.CharField(max_length=64)
    order_id = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(**PRICE_FIELD)
    note = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class CounterOfferSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(min_value=1)
    passenger_handle = serializers.CharField(max_length=64)
    driver_id = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(**PRICE_FIELD)


class RespondToCounterOfferSerializer(serializers.Serializer):
    """
    A driver's answer to a proposal: accept, counter with a new price, or neither (reject).
    """
    driver_handle = serializers.CharField(max_length=64)
    negotiation_id = serializers.IntegerField(min_value=1)
    accept = serializers.BooleanField()
    counter_price = serializers.DecimalField(required=False, allow_null=True, default=None, **PRICE_FIELD)


class PassengerResponseSerializer(serializers.Serializer):
    passenger_handle = serializers.CharField(max_length=64)
    negotiation_id = serializers.IntegerField(min_value=1)
    accept = serializers.BooleanField()
    counter_price = serializers.DecimalField(required=False, allow_null=True, default=None, **PRICE_FIELD)


class RateRideSerializer(serializers.Serializer):
    """
    Validates a post-ride rating.

    role is the author's role on the order; the rated party is the other one.
    """
    from_handle = serializers.CharField(max_length=64)
    order_id = serializers.IntegerField(min_value=1)
    role = serializers.ChoiceField(choices=ROLE_CHOICES)
    score = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)


class UserRatingSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    role = serializers.ChoiceField(choices=ROLE_CHOICES)
