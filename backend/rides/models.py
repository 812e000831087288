from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from drivers.models import Driver
from passengers.models import Passenger


USER_TYPE_CHOICES = [
    ('passenger', 'Passenger'),
    ('driver', 'Driver'),
]


class Order(models.Model):
    """A ride request from a passenger with a route and a suggested price"""

    STATUS_PENDING = 'pending'
    STATUS_NEGOTIATING = 'negotiating'
    STATUS_ACCEPTED = 'accepted'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_NEGOTIATING, 'Negotiating'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_IN_PROGRESS, 'In progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # Orders a driver can still win
    OPEN_STATUSES = (STATUS_PENDING, STATUS_NEGOTIATING)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    passenger = models.ForeignKey(
        Passenger,
        on_delete=models.PROTECT,
        related_name='orders'
    )
    accepted_driver = models.ForeignKey(
        Driver,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='accepted_orders'
    )

    from_address = models.TextField()
    to_address = models.TextField()
    suggested_price = models.DecimalField(max_digits=8, decimal_places=2)
    final_price = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    cancellation_reason = models.TextField(null=True, blank=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"Order #{self.id} - {self.from_address} -> {self.to_address} - {self.status}"

    @property
    def is_open(self):
        return self.status in self.OPEN_STATUSES


class DriverOffer(models.Model):
    """A driver's proposed price against an order. One per (order, driver)."""

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
        ('counter_offered', 'Counter offered'),
    ]

    # counter_offered is advisory: the offer can still be accepted
    OPEN_STATUSES = ('pending', 'counter_offered')

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='offers'
    )
    driver = models.ForeignKey(
        Driver,
        on_delete=models.PROTECT,
        related_name='offers'
    )

    offered_price = models.DecimalField(max_digits=8, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    message = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'driver_offers'
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'driver'],
                name='unique_order_driver_offer'
            )
        ]

    def __str__(self):
        return f"Offer #{self.id} - Order {self.order_id} <- Driver {self.driver_id} @ {self.offered_price}"


class PriceNegotiation(models.Model):
    """
    A directed price proposal between the two parties of an order.

    Rows are append-only: a counter-proposal is a new row, and a row is never
    edited after it leaves 'pending'.
    """

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
    ]

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='negotiations'
    )

    from_user_type = models.CharField(max_length=10, choices=USER_TYPE_CHOICES)
    from_user_id = models.BigIntegerField()
    to_user_type = models.CharField(max_length=10, choices=USER_TYPE_CHOICES)
    to_user_id = models.BigIntegerField()

    proposed_price = models.DecimalField(max_digits=8, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')

    created_at = models.DateTimeField(auto_now_add=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'price_negotiations'
        ordering = ['created_at', 'id']

    def __str__(self):
        return (
            f"Negotiation #{self.id} - Order {self.order_id}: "
            f"{self.from_user_type} {self.from_user_id} -> {self.to_user_type} {self.to_user_id} "
            f"@ {self.proposed_price} ({self.status})"
        )


class Rating(models.Model):
    """Post-ride rating from one participant of an order to the other"""

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='ratings'
    )

    from_user_type = models.CharField(max_length=10, choices=USER_TYPE_CHOICES)
    from_user_id = models.BigIntegerField()
    to_user_type = models.CharField(max_length=10, choices=USER_TYPE_CHOICES)
    to_user_id = models.BigIntegerField()

    rating = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    comment = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ratings'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['to_user_type', 'to_user_id'], name='ratings_target_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'from_user_type', 'from_user_id'],
                name='unique_rating_per_order_author'
            ),
            models.CheckConstraint(
                condition=models.Q(rating__gte=1) & models.Q(rating__lte=5),
                name='rating_between_1_and_5'
            ),
        ]

    def __str__(self):
        return f"Rating {self.rating} for {self.to_user_type} {self.to_user_id} (order {self.order_id})"
