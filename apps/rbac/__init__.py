"""
RBAC (Role-Based Access Control) application.

Provides multi-tenant access control with:
- Members: per-organization role and allowed modules
- Static role -> capability grants
- Module gating at organization and member level
- Append-only audit logging of every mutation
"""
