"""
Pytest configuration and fixtures.
"""
import hashlib
import hmac
import itertools
import json
import time
import uuid
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import jwt
import pytest
from django.conf import settings


@pytest.fixture(autouse=True)
def _reset_session_resolver():
    """Resolvers cache settings; rebuild per test so overrides apply."""
    from apps.tenants.session import reset_session_resolver
    reset_session_resolver()
    yield
    reset_session_resolver()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def make_session_token():
    """Build an identity-provider session token signed with the test key."""
    def _make(user_id='user_1', org_id='org_1', role='org:member', expires_in=3600, **claims):
        payload = {
            'sub': user_id,
            'exp': datetime.now(dt_timezone.utc) + timedelta(seconds=expires_in),
            **claims,
        }
        if org_id:
            payload['org_id'] = org_id
        if role:
            payload['org_role'] = role
        return jwt.encode(payload, settings.IDENTITY_JWT_KEY, algorithm='HS256')
    return _make


@pytest.fixture
def authed_client(api_client, make_session_token):
    """API client carrying a session token for the given user and org."""
    def _client(user_id='user_1', org_id='org_1', role='org:member', **claims):
        token = make_session_token(user_id=user_id, org_id=org_id, role=role, **claims)
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        return api_client
    return _client


@pytest.fixture
def identity():
    """Build a SessionIdentity without going through a token."""
    from apps.tenants.session import SessionIdentity

    def _identity(user_id='user_1', org_id='org_1', role=None, **kwargs):
        return SessionIdentity(external_user_id=user_id, external_org_id=org_id, role=role, **kwargs)
    return _identity


@pytest.fixture
def organization(db):
    """Organization with FINANCE and CRM enabled."""
    from apps.tenants.models import Organization
    return Organization.objects.create(
        external_org_id='org_1',
        name='Acme Ltd',
        slug='acme',
        enabled_modules=['FINANCE', 'CRM'],
        onboarding_complete=True,
    )


@pytest.fixture
def other_organization(db):
    """Second organization for isolation tests."""
    from apps.tenants.models import Organization
    return Organization.objects.create(
        external_org_id='org_2',
        name='Other Co',
        slug='other-co',
        enabled_modules=['FINANCE', 'CRM', 'SALES'],
        onboarding_complete=True,
    )


@pytest.fixture
def make_member(db):
    """Create a member in an organization."""
    from apps.rbac.models import Member

    numbers = itertools.count(1)

    def _make(organization, external_user_id='user_1', role='employee', allowed_modules=None, **kwargs):
        return Member.objects.create(
            organization=organization,
            external_user_id=external_user_id,
            role=role,
            allowed_modules=allowed_modules if allowed_modules is not None else [],
            employee_number=kwargs.pop('employee_number', f'EMP-{next(numbers):06d}'),
            first_name=kwargs.pop('first_name', 'Test'),
            last_name=kwargs.pop('last_name', 'Member'),
            **kwargs
        )
    return _make


@pytest.fixture
def store(organization):
    from apps.orders.models import Store
    return Store.objects.create(organization=organization, name='Acme Shop', slug='acme-shop')


@pytest.fixture
def make_order(store):
    """Create an UNPAID order with a payment reference."""
    from apps.orders.models import PaymentOrder

    def _make(payment_reference='cs_test_123', **kwargs):
        defaults = {
            'store': store,
            'order_number': f'ORD-{uuid.uuid4().hex[:8].upper()}',
            'payment_reference': payment_reference,
            'payment_provider': 'stripe',
            'customer_name': 'Jane Customer',
            'customer_email': 'jane@example.com',
            'currency': 'USD',
            'total_amount': Decimal('49.90'),
            'items': [{'name': 'Widget', 'quantity': 2, 'unit_price': '24.95'}],
        }
        defaults.update(kwargs)
        return PaymentOrder.objects.create(**defaults)
    return _make


@pytest.fixture
def payment_order(make_order):
    return make_order()


@pytest.fixture
def stripe_signature():
    """Stripe-Signature header value for a payload, signed with the test secret."""
    def _sign(payload: str, secret=None, timestamp=None):
        timestamp = timestamp or int(time.time())
        signed = f'{timestamp}.{payload}'.encode('utf-8')
        signature = hmac.new(
            (secret or settings.STRIPE_WEBHOOK_SECRET).encode('utf-8'),
            signed,
            hashlib.sha256,
        ).hexdigest()
        return f't={timestamp},v1={signature}'
    return _sign


@pytest.fixture
def svix_headers():
    """svix-id / svix-timestamp / svix-signature headers for a payload."""
    from svix.webhooks import Webhook

    def _sign(payload: str, secret=None):
        msg_id = f'msg_{uuid.uuid4().hex}'
        now = datetime.now(dt_timezone.utc)
        signature = Webhook(secret or settings.IDENTITY_WEBHOOK_SECRET).sign(msg_id, now, payload)
        return {
            'HTTP_SVIX_ID': msg_id,
            'HTTP_SVIX_TIMESTAMP': str(int(now.timestamp())),
            'HTTP_SVIX_SIGNATURE': signature,
        }
    return _sign


@pytest.fixture
def stripe_event():
    """Build a Stripe event body (JSON string)."""
    def _build(session_id, payment_status='paid', store_id=None, event_type='checkout.session.completed'):
        metadata = {'store_id': str(store_id)} if store_id else {}
        return json.dumps({
            'id': f'evt_{uuid.uuid4().hex[:12]}',
            'type': event_type,
            'data': {
                'object': {
                    'id': session_id,
                    'object': 'checkout.session',
                    'payment_status': payment_status,
                    'payment_intent': 'pi_test_1',
                    'amount_total': 4990,
                    'currency': 'usd',
                    'metadata': metadata,
                }
            },
        })
    return _build


@pytest.fixture
def flutterwave_event():
    """Build a Flutterwave event body (JSON string)."""
    def _build(tx_ref, status='successful', event='charge.completed'):
        return json.dumps({
            'event': event,
            'data': {
                'id': 285959875,
                'tx_ref': tx_ref,
                'flw_ref': 'FLW-MOCK-1',
                'amount': 49.9,
                'currency': 'USD',
                'status': status,
            },
        })
    return _build
