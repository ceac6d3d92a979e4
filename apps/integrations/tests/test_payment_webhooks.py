"""
Tests for payment webhook reconciliation.

Covers:
- Signature verification (Stripe, Flutterwave)
- UNPAID -> PAID exactly once per payment reference
- Duplicate and concurrent deliveries
- Unknown references and ignored events
- Notifications queued after commit, never undoing the transition
- Webhook log bookkeeping
"""
import time
import uuid
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.test import override_settings

from apps.integrations.models import WebhookLog
from apps.integrations.services import PaymentWebhookService, ReconcileOutcome
from apps.integrations.services.providers import FlutterwaveProvider, StripeProvider
from apps.orders.models import PaymentOrder
from apps.rbac.models import AuditLog

STRIPE_URL = '/v1/webhooks/stripe/'
FLUTTERWAVE_URL = '/v1/webhooks/flutterwave/'
FLUTTERWAVE_HASH = 'test-flutterwave-hash'


@pytest.fixture
def post_flutterwave(api_client):
    def _post(body, signature=FLUTTERWAVE_HASH):
        headers = {'HTTP_VERIF_HASH': signature} if signature is not None else {}
        return api_client.post(FLUTTERWAVE_URL, data=body, content_type='application/json', **headers)
    return _post


@pytest.fixture
def post_stripe(api_client, stripe_signature):
    def _post(body, signature=None):
        return api_client.post(
            STRIPE_URL,
            data=body,
            content_type='application/json',
            HTTP_STRIPE_SIGNATURE=signature if signature is not None else stripe_signature(body),
        )
    return _post


@pytest.mark.django_db
class TestFlutterwaveWebhook:

    def test_duplicate_delivery_notifies_once(self, make_order, post_flutterwave, flutterwave_event,
                                              mailoutbox, django_capture_on_commit_callbacks):
        order = make_order(payment_reference='TX1', payment_provider='flutterwave')
        body = flutterwave_event('TX1')

        with django_capture_on_commit_callbacks(execute=True):
            first = post_flutterwave(body)

        assert first.status_code == 200
        assert first.json()['message'] == 'Payment processed successfully'
        order.refresh_from_db()
        assert order.payment_status == PaymentOrder.PAYMENT_PAID
        assert order.status == PaymentOrder.STATUS_CONFIRMED
        assert order.paid_at is not None
        assert len(mailoutbox) == 2
        paid_at = order.paid_at

        with django_capture_on_commit_callbacks(execute=True):
            second = post_flutterwave(body)

        assert second.status_code == 200
        assert second.json() == {'message': 'Already processed', 'outcome': 'already_processed'}
        order.refresh_from_db()
        assert order.paid_at == paid_at
        assert len(mailoutbox) == 2

    @pytest.mark.parametrize('deliveries', [3, 5])
    def test_many_deliveries_one_transition(self, deliveries, make_order, post_flutterwave,
                                            flutterwave_event, mailoutbox,
                                            django_capture_on_commit_callbacks):
        make_order(payment_reference='TX9')
        body = flutterwave_event('TX9')

        with django_capture_on_commit_callbacks(execute=True):
            outcomes = [post_flutterwave(body).json()['outcome'] for _ in range(deliveries)]

        assert outcomes == ['processed'] + ['already_processed'] * (deliveries - 1)
        assert len(mailoutbox) == 2
        assert AuditLog.objects.filter(entity_type='PaymentOrder').count() == 1

    def test_unknown_reference(self, payment_order, post_flutterwave, flutterwave_event,
                               mailoutbox, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            response = post_flutterwave(flutterwave_event('TX_UNKNOWN'))

        assert response.status_code == 200
        assert response.json()['message'] == 'Order not found'
        payment_order.refresh_from_db()
        assert payment_order.payment_status == PaymentOrder.PAYMENT_UNPAID
        assert mailoutbox == []

    def test_wrong_hash(self, make_order, post_flutterwave, flutterwave_event):
        order = make_order(payment_reference='TX1')

        response = post_flutterwave(flutterwave_event('TX1'), signature='not-the-hash')

        assert response.status_code == 401
        assert response.json() == {'error': 'Invalid signature'}
        order.refresh_from_db()
        assert order.payment_status == PaymentOrder.PAYMENT_UNPAID

    def test_missing_hash(self, make_order, post_flutterwave, flutterwave_event):
        order = make_order(payment_reference='TX1')

        response = post_flutterwave(flutterwave_event('TX1'), signature=None)

        assert response.status_code == 401
        order.refresh_from_db()
        assert order.payment_status == PaymentOrder.PAYMENT_UNPAID

    def test_failed_charge_ignored(self, make_order, post_flutterwave, flutterwave_event):
        order = make_order(payment_reference='TX1')

        response = post_flutterwave(flutterwave_event('TX1', status='failed'))

        assert response.status_code == 200
        assert response.json()['outcome'] == 'ignored'
        order.refresh_from_db()
        assert order.payment_status == PaymentOrder.PAYMENT_UNPAID

    def test_other_event_ignored(self, post_flutterwave, flutterwave_event):
        response = post_flutterwave(flutterwave_event('TX1', event='transfer.completed'))

        assert response.status_code == 200
        assert response.json()['message'] == 'Event received'

    def test_signed_body_not_json(self, post_flutterwave):
        response = post_flutterwave('this is not json')

        assert response.status_code == 400
        assert response.json() == {'error': 'Invalid JSON'}

    @override_settings(FLUTTERWAVE_SECRET_HASH='')
    def test_unconfigured_secret_rejects(self, make_order, post_flutterwave, flutterwave_event):
        make_order(payment_reference='TX1')

        response = post_flutterwave(flutterwave_event('TX1'), signature='')

        assert response.status_code == 401


@pytest.mark.django_db
class TestStripeWebhook:

    def test_checkout_completed(self, payment_order, post_stripe, stripe_event,
                                mailoutbox, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            response = post_stripe(stripe_event('cs_test_123'))

        assert response.status_code == 200
        assert response.json()['outcome'] == 'processed'
        payment_order.refresh_from_db()
        assert payment_order.is_paid
        recipients = sorted(message.to[0] for message in mailoutbox)
        assert recipients == ['admin@ledgerly.test', 'jane@example.com']

    def test_invalid_signature(self, payment_order, post_stripe, stripe_event, stripe_signature):
        body = stripe_event('cs_test_123')

        response = post_stripe(body, signature=stripe_signature(body, secret='whsec_wrong'))

        assert response.status_code == 401
        payment_order.refresh_from_db()
        assert payment_order.payment_status == PaymentOrder.PAYMENT_UNPAID

    def test_stale_timestamp(self, payment_order, post_stripe, stripe_event, stripe_signature):
        body = stripe_event('cs_test_123')
        old = int(time.time()) - 3600

        response = post_stripe(body, signature=stripe_signature(body, timestamp=old))

        assert response.status_code == 401

    def test_tampered_body(self, payment_order, post_stripe, stripe_event, stripe_signature):
        signature = stripe_signature(stripe_event('cs_other'))

        response = post_stripe(stripe_event('cs_test_123'), signature=signature)

        assert response.status_code == 401
        payment_order.refresh_from_db()
        assert payment_order.payment_status == PaymentOrder.PAYMENT_UNPAID

    def test_unpaid_session_ignored(self, payment_order, post_stripe, stripe_event):
        response = post_stripe(stripe_event('cs_test_123', payment_status='unpaid'))

        assert response.json()['outcome'] == 'ignored'
        payment_order.refresh_from_db()
        assert payment_order.payment_status == PaymentOrder.PAYMENT_UNPAID

    def test_store_scoping(self, payment_order, store, post_stripe, stripe_event):
        response = post_stripe(stripe_event('cs_test_123', store_id=uuid.uuid4()))
        assert response.json()['outcome'] == 'order_not_found'

        response = post_stripe(stripe_event('cs_test_123', store_id=store.id))
        assert response.json()['outcome'] == 'processed'

    def test_store_id_that_is_not_a_uuid(self, payment_order, post_stripe, stripe_event):
        response = post_stripe(stripe_event('cs_test_123', store_id='clx_store_1'))

        assert response.status_code == 200
        assert response.json() == {'message': 'Order not found', 'outcome': 'order_not_found'}
        payment_order.refresh_from_db()
        assert payment_order.payment_status == PaymentOrder.PAYMENT_UNPAID

    def test_body_not_utf8(self, payment_order, api_client):
        response = api_client.post(
            STRIPE_URL,
            data=b'\xff\xfe{"x":1}',
            content_type='application/json',
            HTTP_STRIPE_SIGNATURE='t=1,v1=deadbeef',
        )

        assert response.status_code == 401
        assert response.json() == {'error': 'Invalid signature'}
        assert WebhookLog.objects.get(provider='stripe').status == WebhookLog.STATUS_UNAUTHORIZED

    @override_settings(ADMIN_EMAIL='')
    def test_no_admin_notification_without_admin_email(self, payment_order, post_stripe, stripe_event,
                                                       mailoutbox, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            post_stripe(stripe_event('cs_test_123'))

        assert [message.to for message in mailoutbox] == [['jane@example.com']]


@pytest.mark.django_db
class TestReconciliation:

    def test_lost_compare_and_set(self, payment_order,
                                  django_capture_on_commit_callbacks):
        """A concurrent delivery already flipped the row between read and update."""
        event = FlutterwaveProvider().parse_event(
            {'event': 'charge.completed', 'data': {'tx_ref': 'cs_test_123', 'status': 'successful'}}
        )

        with patch.object(PaymentOrder.objects, 'mark_paid', return_value=0):
            with patch.object(PaymentWebhookService, 'dispatch_notifications') as dispatch:
                with django_capture_on_commit_callbacks(execute=True):
                    result = PaymentWebhookService.apply_event(event, payment_method='Flutterwave')

        assert result.outcome == ReconcileOutcome.ALREADY_PROCESSED
        dispatch.assert_not_called()

    def test_stale_read_loses_compare_and_set(self, payment_order, django_capture_on_commit_callbacks):
        """The row turned PAID after it was read; the conditional update changes nothing."""
        stale = PaymentOrder.objects.get(id=payment_order.id)
        PaymentOrder.objects.filter(id=payment_order.id).update(payment_status=PaymentOrder.PAYMENT_PAID)
        event = FlutterwaveProvider().parse_event(
            {'event': 'charge.completed', 'data': {'tx_ref': 'cs_test_123', 'status': 'successful'}}
        )

        with patch.object(PaymentOrder.objects, 'by_payment_reference', return_value=stale):
            with patch.object(PaymentWebhookService, 'dispatch_notifications') as dispatch:
                with django_capture_on_commit_callbacks(execute=True):
                    result = PaymentWebhookService.apply_event(event, payment_method='Flutterwave')

        assert result.outcome == ReconcileOutcome.ALREADY_PROCESSED
        dispatch.assert_not_called()
        assert not AuditLog.objects.filter(entity_type='PaymentOrder').exists()

    def test_notification_failure_keeps_payment(self, payment_order,
                                                django_capture_on_commit_callbacks):
        event = StripeProvider().parse_event(
            {'type': 'checkout.session.completed', 'data': {'object': {'id': 'cs_test_123', 'payment_status': 'paid'}}}
        )

        with patch('apps.orders.tasks.send_payment_confirmation_email.delay', side_effect=RuntimeError('broker down')):
            with patch('apps.orders.tasks.send_new_order_notification_email.delay') as admin_delay:
                with django_capture_on_commit_callbacks(execute=True):
                    result = PaymentWebhookService.apply_event(event, payment_method='Stripe')

        assert result.outcome == ReconcileOutcome.PROCESSED
        payment_order.refresh_from_db()
        assert payment_order.is_paid
        admin_delay.assert_called_once_with(str(payment_order.id), 'admin@ledgerly.test')

    def test_notifications_wait_for_commit(self, payment_order):
        event = StripeProvider().parse_event(
            {'type': 'checkout.session.completed', 'data': {'object': {'id': 'cs_test_123'}}}
        )

        with patch('apps.orders.tasks.send_payment_confirmation_email.delay') as delay:
            PaymentWebhookService.apply_event(event, payment_method='Stripe')

        # The test transaction never commits, so nothing is queued
        delay.assert_not_called()

    def test_already_paid_short_circuits(self, make_order):
        make_order(payment_reference='TX5', payment_status=PaymentOrder.PAYMENT_PAID)
        event = FlutterwaveProvider().parse_event(
            {'event': 'charge.completed', 'data': {'tx_ref': 'TX5', 'status': 'successful'}}
        )

        with patch.object(PaymentOrder.objects, 'mark_paid') as mark_paid:
            result = PaymentWebhookService.apply_event(event, payment_method='Flutterwave')

        assert result.outcome == ReconcileOutcome.ALREADY_PROCESSED
        mark_paid.assert_not_called()

    def test_payment_audited(self, payment_order, django_capture_on_commit_callbacks):
        event = StripeProvider().parse_event(
            {'type': 'checkout.session.completed', 'data': {'object': {'id': 'cs_test_123'}}}
        )

        with patch.object(PaymentWebhookService, 'dispatch_notifications'):
            with django_capture_on_commit_callbacks(execute=True):
                PaymentWebhookService.apply_event(event, payment_method='Stripe')

        entry = AuditLog.objects.get(entity_type='PaymentOrder')
        assert entry.actor_id == 'system'
        assert entry.entity_id == str(payment_order.id)
        assert entry.old_values['payment_status'] == 'UNPAID'
        assert entry.new_values['payment_status'] == 'PAID'


@pytest.mark.django_db
class TestWebhookLog:

    def test_success_logged(self, payment_order, organization, post_flutterwave, flutterwave_event):
        post_flutterwave(flutterwave_event('cs_test_123'))

        log = WebhookLog.objects.get(provider='flutterwave')
        assert log.status == WebhookLog.STATUS_SUCCESS
        assert log.event == 'charge.completed'
        assert log.organization_id == organization.id
        assert log.response['outcome'] == 'processed'
        assert log.processed_at is not None

    def test_unauthorized_logged(self, post_flutterwave, flutterwave_event):
        post_flutterwave(flutterwave_event('TX1'), signature='bad')

        log = WebhookLog.objects.get(provider='flutterwave')
        assert log.status == WebhookLog.STATUS_UNAUTHORIZED

    def test_ignored_logged(self, post_stripe, stripe_event):
        post_stripe(stripe_event('cs_x', event_type='payment_intent.created'))

        log = WebhookLog.objects.get(provider='stripe')
        assert log.status == WebhookLog.STATUS_IGNORED
        assert log.event == 'payment_intent.created'

    def test_log_failure_does_not_block(self, payment_order, post_flutterwave, flutterwave_event):
        with patch.object(WebhookLog.objects, 'create', side_effect=DatabaseError('down')):
            response = post_flutterwave(flutterwave_event('cs_test_123'))

        assert response.status_code == 200
        payment_order.refresh_from_db()
        assert payment_order.is_paid
