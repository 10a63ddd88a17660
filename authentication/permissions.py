from rest_framework import permissions

from .authentication import CENTRAL_CLIENT


class IsAdminRole(permissions.BasePermission):
    """
    Permission to only allow administrator accounts
    """
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.role == request.user.ROLE_ADMIN


class HasPermission(permissions.BasePermission):
    """
    Permission to check a named permission such as 'sales.create'.
    Admin and branch accounts hold the '*' wildcard.
    """
    message = 'You do not have permission to perform this action.'

    def __init__(self, required_permission):
        self.required_permission = required_permission

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        if request.user.has_permission(self.required_permission):
            return True

        self.message = f"Missing permission: {self.required_permission}"
        return False


def require_permission(permission_name):
    """
    Build a permission class for use in permission_classes lists
    """
    class _RequiredPermission(HasPermission):
        def __init__(self):
            super().__init__(permission_name)

    _RequiredPermission.__name__ = f"HasPermission_{permission_name.replace('.', '_')}"
    return _RequiredPermission


class MethodPermissionMixin:
    """
    Map HTTP methods to named permissions via `permission_map`.
    Methods absent from the map only need authentication.
    """
    permission_map = {}

    def get_permissions(self):
        required = self.permission_map.get(self.request.method)
        if required:
            return [permissions.IsAuthenticated(), HasPermission(required)]
        return [permissions.IsAuthenticated()]


# Permission constants
class Permissions:
    # Sales
    SALES_VIEW = 'sales.view'
    SALES_CREATE = 'sales.create'
    SALES_EDIT = 'sales.edit'
    SALES_DELETE = 'sales.delete'

    # Due management
    DUE_VIEW = 'due.view'
    DUE_CREATE = 'due.create'
    DUE_EDIT = 'due.edit'
    DUE_DELETE = 'due.delete'

    # Inventory
    INVENTORY_VIEW = 'inventory.view'
    INVENTORY_MANAGE = 'inventory.manage'

    # Reports
    REPORTS_VIEW = 'reports.view'
    REPORTS_EXPORT = 'reports.export'

    # Financial
    EXPENSES_MANAGE = 'expenses.manage'
    PAYMENTS_MANAGE = 'payments.manage'

    # HR
    HRM_VIEW = 'hrm.view'
    HRM_MANAGE = 'hrm.manage'

    # Administration
    USERS_MANAGE = 'users.manage'
    SETTINGS_MANAGE = 'settings.manage'
    BRANCHES_MANAGE = 'branches.manage'


# name -> (category, description)
PERMISSION_CATALOG = {
    Permissions.SALES_VIEW: ('sales', 'View orders and sales'),
    Permissions.SALES_CREATE: ('sales', 'Create orders'),
    Permissions.SALES_EDIT: ('sales', 'Edit orders'),
    Permissions.SALES_DELETE: ('sales', 'Delete orders'),
    Permissions.DUE_VIEW: ('due', 'View due orders and payments'),
    Permissions.DUE_CREATE: ('due', 'Record due payments'),
    Permissions.DUE_EDIT: ('due', 'Edit due payments'),
    Permissions.DUE_DELETE: ('due', 'Delete due payments'),
    Permissions.INVENTORY_VIEW: ('inventory', 'View products and stock'),
    Permissions.INVENTORY_MANAGE: ('inventory', 'Manage products and stock'),
    Permissions.REPORTS_VIEW: ('reports', 'View reports and dashboard'),
    Permissions.REPORTS_EXPORT: ('reports', 'Export reports'),
    Permissions.EXPENSES_MANAGE: ('financial', 'Manage expenses and purchases'),
    Permissions.PAYMENTS_MANAGE: ('financial', 'Manage payment adjustments'),
    Permissions.HRM_VIEW: ('hrm', 'View employees and payroll'),
    Permissions.HRM_MANAGE: ('hrm', 'Manage employees and payroll'),
    Permissions.USERS_MANAGE: ('users', 'Manage users and roles'),
    Permissions.SETTINGS_MANAGE: ('settings', 'Manage business settings'),
    Permissions.BRANCHES_MANAGE: ('settings', 'Manage branches'),
}

# Default permissions for each seeded role
DEFAULT_PERMISSIONS = {
    'Manager': [
        Permissions.SALES_VIEW, Permissions.SALES_CREATE, Permissions.SALES_EDIT, Permissions.SALES_DELETE,
        Permissions.DUE_VIEW, Permissions.DUE_CREATE, Permissions.DUE_EDIT,
        Permissions.INVENTORY_VIEW, Permissions.INVENTORY_MANAGE,
        Permissions.REPORTS_VIEW, Permissions.REPORTS_EXPORT,
        Permissions.EXPENSES_MANAGE, Permissions.PAYMENTS_MANAGE,
        Permissions.HRM_VIEW, Permissions.HRM_MANAGE,
    ],
    'Cashier': [
        Permissions.SALES_VIEW, Permissions.SALES_CREATE, Permissions.SALES_EDIT,
        Permissions.DUE_VIEW, Permissions.DUE_CREATE,
        Permissions.INVENTORY_VIEW,
    ],
    'Waiter': [
        Permissions.SALES_VIEW, Permissions.SALES_CREATE, Permissions.INVENTORY_VIEW,
    ],
}


class HasCentralApiKey(permissions.BasePermission):
    """Request was authenticated by CentralApiKeyAuthentication"""
    message = 'Invalid API key'

    def has_permission(self, request, view):
        return request.auth == CENTRAL_CLIENT
