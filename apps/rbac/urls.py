"""
RBAC URL configuration.
"""
from django.urls import path
from apps.rbac import views

urlpatterns = [
    # Access checks
    path('access/modules/<str:module>/', views.ModuleAccessView.as_view(), name='access-module'),
    path('access/capabilities/<str:capability>/', views.CapabilityCheckView.as_view(), name='access-capability'),
    path('access/setup-status/', views.SetupStatusView.as_view(), name='access-setup-status'),

    # Members
    path('members/<uuid:member_id>/modules/', views.MemberModulesView.as_view(), name='member-modules'),

    # Audit logs
    path('audit-logs/', views.AuditLogListView.as_view(), name='audit-log-list'),
]
