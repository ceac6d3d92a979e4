"""
Static role, capability and module tables.

Plain data with no Django imports so the evaluator stays pure.
"""

ADMIN = 'admin'
ACCOUNTANT = 'accountant'
HR_MANAGER = 'hr_manager'
SALES_MANAGER = 'sales_manager'
EMPLOYEE = 'employee'

ROLES = (ADMIN, ACCOUNTANT, HR_MANAGER, SALES_MANAGER, EMPLOYEE)

# Identity providers may namespace role claims, e.g. "org:admin"
ROLE_PREFIXES = ('org:',)

READ_ALL = 'read:all'
WRITE_ALL = 'write:all'
DELETE_ALL = 'delete:all'

# Superuser token satisfying any capability of the given nature
SUPERUSER_TOKENS = {
    'read': READ_ALL,
    'write': WRITE_ALL,
    'delete': DELETE_ALL,
}

ROLE_CAPABILITIES = {
    ADMIN: frozenset({READ_ALL, WRITE_ALL, DELETE_ALL}),
    ACCOUNTANT: frozenset({'finance:read', 'finance:write', 'reports:read'}),
    HR_MANAGER: frozenset({'hr:read', 'hr:write', 'reports:read'}),
    SALES_MANAGER: frozenset({'sales:read', 'sales:write', 'inventory:read', 'reports:read'}),
    EMPLOYEE: frozenset(),
}

MODULES = (
    'FINANCE',
    'CRM',
    'SALES',
    'INVENTORY',
    'PROCUREMENT',
    'HR',
    'ASSETS',
    'PROJECTS',
    'DOCUMENTS',
    'MANUFACTURING',
    'ECOMMERCE',
    'REPORTS',
)


def normalize_role(role):
    """Strip provider prefixes and lowercase a role claim. Returns None for empty input."""
    if not role:
        return None
    role = str(role).strip().lower()
    for prefix in ROLE_PREFIXES:
        if role.startswith(prefix):
            role = role[len(prefix):]
    return role or None


def is_known_module(module):
    return module in MODULES
