"""
Store and payment order models.

Implements the reconciliation view of online orders:
- Organization-scoped stores
- Orders keyed by the payment reference issued at checkout
- Payment status that moves UNPAID -> PAID at most once
"""
import uuid

from django.db import models
from django.utils import timezone

from apps.core.models import BaseModel


class StoreManager(models.Manager):
    """Manager for store queries with organization scoping."""

    def for_organization(self, organization):
        return self.filter(organization=organization)


class Store(BaseModel):
    """
    Online storefront owned by an organization.

    Read-only for payment reconciliation.
    """

    organization = models.ForeignKey(
        'tenants.Organization',
        on_delete=models.PROTECT,
        related_name='stores',
        help_text="Organization this store belongs to"
    )
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, db_index=True)

    objects = StoreManager()

    class Meta:
        db_table = 'stores'
        ordering = ['name']

    def __str__(self):
        return self.name


class PaymentOrderManager(models.Manager):
    """Manager for payment order queries."""

    def for_store(self, store):
        return self.filter(store=store)

    def by_payment_reference(self, payment_reference, store_id=None):
        """
        Find the order carrying a payment reference, optionally within one store.

        A store_id that is not a UUID cannot match any store, so it is a miss.
        """
        if store_id:
            try:
                store_id = uuid.UUID(str(store_id))
            except ValueError:
                return None

        qs = self.select_related('store', 'store__organization').filter(
            payment_reference=payment_reference
        )
        if store_id:
            qs = qs.filter(store_id=store_id)
        return qs.first()

    def mark_paid(self, order_id, paid_at=None):
        """
        Atomic compare-and-set: move an UNPAID order to PAID/CONFIRMED.

        Returns:
            Number of rows updated; 0 when the order was already PAID
        """
        return self.filter(id=order_id).exclude(
            payment_status=PaymentOrder.PAYMENT_PAID
        ).update(
            payment_status=PaymentOrder.PAYMENT_PAID,
            status=PaymentOrder.STATUS_CONFIRMED,
            paid_at=paid_at or timezone.now(),
            updated_at=timezone.now(),
        )


class PaymentOrder(BaseModel):
    """
    Online order as seen by payment reconciliation.

    ``payment_reference`` is the idempotency key supplied at checkout
    (Stripe checkout session id, Flutterwave tx_ref). ``payment_status``
    only ever moves UNPAID -> PAID, through PaymentOrderManager.mark_paid.
    """

    PAYMENT_UNPAID = 'UNPAID'
    PAYMENT_PAID = 'PAID'
    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_UNPAID, 'Unpaid'),
        (PAYMENT_PAID, 'Paid'),
    ]

    STATUS_PENDING = 'PENDING'
    STATUS_CONFIRMED = 'CONFIRMED'
    STATUS_SHIPPED = 'SHIPPED'
    STATUS_DELIVERED = 'DELIVERED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_SHIPPED, 'Shipped'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    store = models.ForeignKey(
        Store,
        on_delete=models.PROTECT,
        related_name='orders',
        help_text="Store the order was placed in"
    )
    order_number = models.CharField(max_length=50, db_index=True)

    # Payment
    payment_reference = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Idempotency key issued by the checkout"
    )
    payment_provider = models.CharField(max_length=50, blank=True)
    payment_status = models.CharField(
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default=PAYMENT_UNPAID,
        db_index=True
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    # Customer
    customer_name = models.CharField(max_length=255)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=50, blank=True)

    # Pricing
    currency = models.CharField(max_length=3, default='USD')
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)

    items = models.JSONField(
        default=list,
        blank=True,
        help_text="Line items with name, quantity, unit_price"
    )

    objects = PaymentOrderManager()

    class Meta:
        db_table = 'payment_orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['store', 'payment_status'], name='orders_store_payment_idx'),
        ]

    def __str__(self):
        return f"Order {self.order_number} ({self.payment_status})"

    @property
    def is_paid(self):
        return self.payment_status == self.PAYMENT_PAID

    @property
    def item_count(self):
        return len(self.items or [])
