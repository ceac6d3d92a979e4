"""
Tenant models for multi-tenant isolation.

An Organization is the tenant: every member, audit record and store is
scoped to exactly one. Organizations are keyed by the identity
provider's organization id and created lazily on first contact.
"""
from django.db import models
from apps.core.models import BaseModel


class Module(models.TextChoices):
    """Coarse feature areas gated at organization and member level."""

    FINANCE = 'FINANCE', 'Finance'
    CRM = 'CRM', 'CRM'
    SALES = 'SALES', 'Sales'
    INVENTORY = 'INVENTORY', 'Inventory'
    PROCUREMENT = 'PROCUREMENT', 'Procurement'
    HR = 'HR', 'Human Resources'
    ASSETS = 'ASSETS', 'Assets'
    PROJECTS = 'PROJECTS', 'Projects'
    DOCUMENTS = 'DOCUMENTS', 'Documents'
    MANUFACTURING = 'MANUFACTURING', 'Manufacturing'
    ECOMMERCE = 'ECOMMERCE', 'E-commerce'
    REPORTS = 'REPORTS', 'Reports'


class OrganizationManager(models.Manager):
    """Manager for organization lookups."""

    def by_external_id(self, external_org_id):
        """Find organization by identity-provider org id."""
        return self.filter(external_org_id=external_org_id).first()


class Organization(BaseModel):
    """
    Organization (tenant) record.

    Exactly one row exists per external organization id; the unique
    constraint on ``external_org_id`` is what makes lazy creation safe
    under concurrent first contact.
    """

    external_org_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Organization id issued by the identity provider"
    )
    name = models.CharField(
        max_length=255,
        default='My Organization',
        help_text="Display name"
    )
    slug = models.SlugField(
        max_length=255,
        db_index=True,
        help_text="URL-safe identifier"
    )
    enabled_modules = models.JSONField(
        default=list,
        blank=True,
        help_text="Module keys enabled for this organization"
    )
    onboarding_complete = models.BooleanField(
        default=False,
        help_text="Whether the organization has finished module setup"
    )

    objects = OrganizationManager()

    class Meta:
        db_table = 'organizations'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.external_org_id})"

    def has_module(self, module):
        return module in (self.enabled_modules or [])
