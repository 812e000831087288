"""
Realtime event publishing.

Marketplace operations publish events to channel-layer groups after their
transaction commits:
    - driver_<id>: new_order, offer_accepted, counter_offer, order_cancelled, ...
    - passenger_<id>: new_offer, counter_offer, ride_started, ride_completed, ...

Usage:
    from realtime.notifications import notify_driver_event, notify_passenger_event
"""
