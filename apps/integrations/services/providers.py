"""
Payment provider webhook adapters.

Each adapter verifies the provider's signature scheme over the raw body
and normalises the provider's event into a PaymentEvent. Nothing in the
payload is trusted before verify() has passed.
"""
import hmac
import logging
from dataclasses import dataclass, field
from typing import Optional

import stripe
from django.conf import settings

from apps.core.exceptions import AuthenticityError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentEvent:
    """Provider-neutral view of a payment webhook event."""

    provider: str
    event_type: str
    reference: Optional[str] = None
    succeeded: bool = False
    store_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @property
    def is_payment_success(self):
        """True for a recognised completion event that reports success."""
        return self.succeeded and bool(self.reference)


class PaymentProvider:
    """Base class for provider adapters."""

    name = None
    label = None

    def verify(self, raw_body: bytes, headers) -> None:
        """Raise AuthenticityError unless the request is signed by the provider."""
        raise NotImplementedError

    def parse_event(self, payload: dict) -> PaymentEvent:
        raise NotImplementedError


class StripeProvider(PaymentProvider):
    """
    Stripe Checkout.

    Signed with the ``Stripe-Signature`` header using STRIPE_WEBHOOK_SECRET.
    ``checkout.session.completed`` carries the checkout session id, which
    is the order's payment reference.
    """

    name = 'stripe'
    label = 'Stripe'
    SIGNATURE_HEADER = 'Stripe-Signature'
    COMPLETED_EVENT = 'checkout.session.completed'

    def verify(self, raw_body, headers):
        secret = getattr(settings, 'STRIPE_WEBHOOK_SECRET', None)
        signature = headers.get(self.SIGNATURE_HEADER)
        if not secret:
            raise AuthenticityError('Stripe webhook secret not configured')
        if not signature:
            raise AuthenticityError('Missing Stripe signature')

        try:
            payload = raw_body.decode('utf-8') if isinstance(raw_body, bytes) else raw_body
            stripe.WebhookSignature.verify_header(
                payload, signature, secret, stripe.Webhook.DEFAULT_TOLERANCE
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            raise AuthenticityError('Invalid Stripe signature') from e

    def parse_event(self, payload):
        event_type = payload.get('type') or 'unknown'
        if event_type != self.COMPLETED_EVENT:
            return PaymentEvent(provider=self.name, event_type=event_type)

        session = (payload.get('data') or {}).get('object') or {}
        metadata = session.get('metadata') or {}
        payment_status = session.get('payment_status')
        return PaymentEvent(
            provider=self.name,
            event_type=event_type,
            reference=session.get('id'),
            # Delayed payment methods complete the session before funds arrive
            succeeded=payment_status in (None, 'paid'),
            store_id=metadata.get('store_id'),
            metadata={
                'payment_intent': session.get('payment_intent'),
                'amount_total': session.get('amount_total'),
                'currency': session.get('currency'),
            },
        )


class FlutterwaveProvider(PaymentProvider):
    """
    Flutterwave.

    Signed by echoing the dashboard secret hash in the ``verif-hash``
    header. ``charge.completed`` with ``data.status == "successful"``
    settles the order whose payment reference is ``data.tx_ref``.
    """

    name = 'flutterwave'
    label = 'Flutterwave'
    SIGNATURE_HEADER = 'verif-hash'
    COMPLETED_EVENT = 'charge.completed'

    def verify(self, raw_body, headers):
        secret_hash = getattr(settings, 'FLUTTERWAVE_SECRET_HASH', None)
        signature = headers.get(self.SIGNATURE_HEADER)
        if not secret_hash:
            raise AuthenticityError('Flutterwave secret hash not configured')
        if not signature:
            raise AuthenticityError('Missing Flutterwave signature')
        if not hmac.compare_digest(signature.encode('utf-8'), secret_hash.encode('utf-8')):
            raise AuthenticityError('Invalid Flutterwave signature')

    def parse_event(self, payload):
        event_type = payload.get('event') or 'unknown'
        if event_type != self.COMPLETED_EVENT:
            return PaymentEvent(provider=self.name, event_type=event_type)

        data = payload.get('data') or {}
        meta = data.get('meta') or {}
        return PaymentEvent(
            provider=self.name,
            event_type=event_type,
            reference=data.get('tx_ref'),
            succeeded=data.get('status') == 'successful',
            store_id=meta.get('store_id'),
            metadata={
                'transaction_id': data.get('id'),
                'flw_ref': data.get('flw_ref'),
                'amount': data.get('amount'),
                'currency': data.get('currency'),
            },
        )


PROVIDERS = {
    provider.name: provider
    for provider in (StripeProvider(), FlutterwaveProvider())
}


def get_provider(name) -> PaymentProvider:
    try:
        return PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown payment provider: {name}")
