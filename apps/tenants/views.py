"""
Organization API views.

Implements endpoints for:
- Onboarding (initial module selection)
- Reading and changing the organization's enabled modules
"""
import logging

from drf_spectacular.utils import extend_schema
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import UnauthenticatedError, ValidationError
from apps.core.permissions import CapabilityMixin, HasCapability, get_identity, requires_capability
from apps.rbac.capabilities import WRITE_ALL
from apps.rbac.gate import sign_in_url
from apps.rbac.serializers import ModuleListSerializer
from apps.tenants.models import Organization
from apps.tenants.serializers import OrganizationModulesSerializer
from apps.tenants.services import OnboardingService, TenantService

logger = logging.getLogger(__name__)


def _validated_modules(request):
    serializer = ModuleListSerializer(data=request.data)
    if not serializer.is_valid():
        raise ValidationError('Invalid modules', details=serializer.errors)
    return serializer.validated_data['modules']


@requires_capability(WRITE_ALL)
class OnboardingView(APIView):
    """
    POST /v1/organization/onboarding/

    Enable the selected modules and mark onboarding complete.

    Required capability: write:all
    """

    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Organization'],
        summary='Complete onboarding',
        request=ModuleListSerializer,
        responses={200: OrganizationModulesSerializer},
    )
    def post(self, request):
        modules = _validated_modules(request)
        access = request.access
        organization = Organization.objects.get(id=access.organization_id)

        OnboardingService.complete_onboarding(
            organization,
            modules,
            actor_id=access.external_user_id,
            member_id=access.member_id,
            request=request,
        )
        return Response(OrganizationModulesSerializer(organization).data)


class OrganizationModulesView(CapabilityMixin, APIView):
    """
    GET /v1/organization/modules/
    PUT /v1/organization/modules/

    GET is open to any member of the organization. PUT replaces the
    enabled modules and requires write:all.
    """

    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Organization'],
        summary='Get enabled modules',
        responses={200: OrganizationModulesSerializer},
    )
    def get(self, request):
        identity = get_identity(request)
        if identity is None or not identity.has_organization:
            raise UnauthenticatedError(redirect_to=sign_in_url())
        organization = TenantService.resolve_tenant(identity)
        return Response(OrganizationModulesSerializer(organization).data)

    @extend_schema(
        tags=['Organization'],
        summary='Update enabled modules',
        request=ModuleListSerializer,
        responses={200: OrganizationModulesSerializer},
    )
    @requires_capability(WRITE_ALL)
    def put(self, request):
        modules = _validated_modules(request)
        access = request.access
        organization = Organization.objects.get(id=access.organization_id)

        OnboardingService.update_enabled_modules(
            organization,
            modules,
            actor_id=access.external_user_id,
            member_id=access.member_id,
            request=request,
        )
        return Response(OrganizationModulesSerializer(organization).data)
