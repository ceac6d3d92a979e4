"""
RBAC REST API views.

Implements endpoints for:
- Access checks (module gate, capability, pending setup)
- Member module assignment
- Audit log viewing
"""
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import UnauthenticatedError, ValidationError
from apps.core.permissions import (
    CapabilityMixin,
    HasCapability,
    enforce,
    get_identity,
    requires_capability,
)
from apps.rbac.capabilities import READ_ALL, WRITE_ALL
from apps.rbac.evaluator import DenyReason
from apps.rbac.gate import AccessGate
from apps.rbac.models import AuditLog
from apps.rbac.serializers import AuditLogSerializer, MemberSerializer, ModuleListSerializer
from apps.rbac.services import MemberService
from apps.tenants.models import Organization


class StandardResultsSetPagination(PageNumberPagination):
    """Standard pagination for list endpoints."""
    page_size = 50
    page_size_query_param = 'page_size'
    max_page_size = 100


def _decision_body(decision):
    return {
        'allowed': decision.allowed,
        'organization_id': decision.organization_id,
        'member_id': decision.member_id,
        'role': decision.role,
    }


class ModuleAccessView(APIView):
    """
    GET /v1/access/modules/{module}/

    Module gate consumed by every module's entry layout. Returns 200 when
    the module is accessible, otherwise 401/403 with ``redirect_to``.
    """

    permission_classes = []

    @extend_schema(
        tags=['Access'],
        summary='Check module access',
        responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT},
    )
    def get(self, request, module):
        decision = AccessGate().check_module_access(get_identity(request), module)
        enforce(request, decision)
        return Response({'module': module, **_decision_body(decision)})


class CapabilityCheckView(APIView):
    """
    GET /v1/access/capabilities/{capability}/

    Boolean capability check: ``{"allowed": true|false}``. Only a missing
    session is an error (401).
    """

    permission_classes = []

    @extend_schema(
        tags=['Access'],
        summary='Check a capability',
        responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
    )
    def get(self, request, capability):
        decision = AccessGate().check_capability(get_identity(request), capability)
        if decision.reason == DenyReason.NO_SESSION:
            raise UnauthenticatedError(redirect_to=decision.redirect_to)
        return Response({'capability': capability, 'allowed': decision.allowed})


class SetupStatusView(APIView):
    """
    GET /v1/access/setup-status/

    Whether the caller is a member still waiting for module assignment.
    """

    permission_classes = []

    @extend_schema(
        tags=['Access'],
        summary='Pending-setup status',
        responses={200: OpenApiTypes.OBJECT, 401: OpenApiTypes.OBJECT},
    )
    def get(self, request):
        decision = AccessGate().check_not_pending_setup(get_identity(request))
        if decision.reason == DenyReason.NO_SESSION:
            raise UnauthenticatedError(redirect_to=decision.redirect_to)
        if not decision.allowed and not decision.pending_setup:
            enforce(request, decision)
        return Response({
            'pending_setup': decision.pending_setup,
            'redirect_to': decision.redirect_to,
        })


@requires_capability(WRITE_ALL)
class MemberModulesView(APIView):
    """
    PUT /v1/members/{member_id}/modules/

    Replace a member's allowed modules. An empty list puts the member back
    into pending setup.

    Required capability: write:all
    """

    permission_classes = [HasCapability]

    @extend_schema(
        tags=['Members'],
        summary='Assign member modules',
        request=ModuleListSerializer,
        responses={200: MemberSerializer},
    )
    def put(self, request, member_id):
        serializer = ModuleListSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationError('Invalid modules', details=serializer.errors)

        access = request.access
        organization = Organization.objects.get(id=access.organization_id)
        member = MemberService.assign_modules(
            organization,
            member_id,
            serializer.validated_data['modules'],
            actor_id=access.external_user_id,
            actor_member_id=access.member_id,
            request=request,
        )
        return Response(MemberSerializer(member).data, status=status.HTTP_200_OK)


class AuditLogListView(CapabilityMixin, APIView):
    """
    GET /v1/audit-logs/

    List audit logs for the caller's organization, newest first.
    Supports filtering by entity_type, entity_id and action.

    Required capability: read:all
    """

    permission_classes = [HasCapability]
    pagination_class = StandardResultsSetPagination

    @extend_schema(
        tags=['Audit'],
        summary='List audit logs',
        parameters=[
            OpenApiParameter('entity_type', OpenApiTypes.STR),
            OpenApiParameter('entity_id', OpenApiTypes.STR),
            OpenApiParameter('action', OpenApiTypes.STR),
        ],
        responses={200: AuditLogSerializer(many=True)},
    )
    @requires_capability(READ_ALL)
    def get(self, request):
        logs = AuditLog.objects.filter(organization_id=request.access.organization_id)

        entity_type = request.query_params.get('entity_type')
        if entity_type:
            logs = logs.filter(entity_type=entity_type)

        entity_id = request.query_params.get('entity_id')
        if entity_id:
            logs = logs.filter(entity_id=entity_id)

        action = request.query_params.get('action')
        if action:
            logs = logs.filter(action=action.upper())

        logs = logs.order_by('-created_at')

        paginator = self.pagination_class()
        page = paginator.paginate_queryset(logs, request)
        serializer = AuditLogSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)
