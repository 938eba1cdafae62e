import logging

import stripe

from config import STRIPE_CURRENCY, STRIPE_SECRET_KEY
from errors import ServiceUnavailable, StoreError, ValidationError

logger = logging.getLogger(__name__)

if STRIPE_SECRET_KEY:
    stripe.api_key = STRIPE_SECRET_KEY


def create_payment_intent(amount: float) -> str:
    """Authorize a charge for ``amount`` (dollars). Returns the client secret."""
    if amount is None or amount <= 0:
        raise ValidationError("Invalid amount")
    if not stripe.api_key:
        raise ServiceUnavailable("Stripe not configured")
    try:
        intent = stripe.PaymentIntent.create(
            amount=int(round(amount * 100)),
            currency=STRIPE_CURRENCY,
            automatic_payment_methods={"enabled": True},
        )
    except stripe.StripeError as e:
        logger.error("Payment intent error: %s", e)
        raise StoreError("Failed to create payment intent", code="payment_error")
    return intent.client_secret
