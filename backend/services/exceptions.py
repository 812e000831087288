"""
Marketplace error taxonomy.

Every domain error carries a broad ``code`` (not_found, policy_denied,
conflict, validation_failed) that the HTTP layer maps to a status, and a
specific ``reason`` the agent layer uses to phrase the reply.
"""


class MarketplaceError(Exception):
    """Base class for errors raised inside marketplace operations."""
    code = "error"
    reason = "error"
    default_message = "The operation could not be completed"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


# ===================== Not found =====================

class NotFoundError(MarketplaceError):
    """Raised when a referenced entity does not exist."""
    code = "not_found"
    reason = "not_found"


class PassengerNotFoundError(NotFoundError):
    reason = "passenger_not_found"
    default_message = "Passenger not found. Please register first."


class DriverNotFoundError(NotFoundError):
    reason = "driver_not_found"
    default_message = "Driver not found. Please register first."


class OrderNotFoundError(NotFoundError):
    reason = "order_not_found"
    default_message = "Order not found"


class OfferNotFoundError(NotFoundError):
    reason = "offer_not_found"
    default_message = "Offer not found"


class NegotiationNotFoundError(NotFoundError):
    reason = "negotiation_not_found"
    default_message = "Negotiation not found"


class DocumentNotFoundError(NotFoundError):
    reason = "document_not_found"
    default_message = "Document not found"


# ===================== Policy =====================

class PolicyDeniedError(MarketplaceError):
    """Raised when the caller is not allowed to perform the operation."""
    code = "policy_denied"
    reason = "policy_denied"


class DriverNotVerifiedError(PolicyDeniedError):
    reason = "driver_not_verified"
    default_message = "Document verification is required before making offers."


class DriverOfflineError(PolicyDeniedError):
    reason = "driver_offline"
    default_message = "You are offline. Go online to receive orders."


class NotOrderParticipantError(PolicyDeniedError):
    reason = "not_order_participant"
    default_message = "You are not a participant of this order."


class RideNotRateableError(PolicyDeniedError):
    reason = "ride_not_rateable"
    default_message = "This ride cannot be rated yet."


# ===================== Conflict =====================

class ConflictError(MarketplaceError):
    """Raised when the current state of the data forbids the operation."""
    code = "conflict"
    reason = "conflict"


class DuplicateOfferError(ConflictError):
    reason = "duplicate_offer"
    default_message = "You have already made an offer on this order."


class OrderNotAvailableError(ConflictError):
    reason = "order_not_available"
    default_message = "This order is no longer available."


class OfferNotPendingError(ConflictError):
    reason = "offer_not_pending"
    default_message = "This offer is no longer pending."


class InvalidTransitionError(ConflictError):
    reason = "invalid_transition"
    default_message = "The order is not in a state that allows this action."


class OrderNotCancellableError(ConflictError):
    reason = "order_not_cancellable"
    default_message = "This order is already finished and cannot be cancelled."


class NegotiationResolvedError(ConflictError):
    reason = "negotiation_resolved"
    default_message = "This proposal has already been answered."


class NegotiationLimitReachedError(ConflictError):
    reason = "negotiation_limit_reached"
    default_message = "The negotiation round limit for this order has been reached."


class AlreadyRatedError(ConflictError):
    reason = "already_rated"
    default_message = "You have already rated this ride."


# ===================== Validation =====================

class ValidationFailedError(MarketplaceError):
    """Raised when input is well-formed but outside the allowed domain."""
    code = "validation_failed"
    reason = "validation_failed"
    default_message = "Invalid input"
