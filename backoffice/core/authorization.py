"""
Role and page based access control.

Access is decided by an explicit `AuthorizationContext` built from the request
user. Views, search and reports receive the context instead of looking the
user up themselves.
"""
from dataclasses import dataclass, field

from rest_framework.permissions import BasePermission, SAFE_METHODS

from .models import User


FULL_ACCESS_ROLES = frozenset({User.ROLE_ADMIN, User.ROLE_MANAGER})
APPROVER_ROLES = frozenset({User.ROLE_ADMIN, User.ROLE_MANAGER, User.ROLE_APPROVER})


# Navigation: a page is {'path', 'label'}, a section is {'title', 'items'}
NAVIGATION = [
    {'path': '/', 'label': 'Dashboard'},
    {'path': '/clients', 'label': 'Clients'},
    {'path': '/analytics', 'label': 'Analytics'},
    {'path': '/tasks', 'label': 'Tasks'},
    {'title': 'Logistics', 'items': [
        {'path': '/logistics', 'label': 'Logistics & Shipment'},
        {'path': '/logistics-booking', 'label': 'Logistics Booking'},
        {'path': '/vehicles', 'label': 'Vehicles'},
    ]},
    {'title': 'Procurement', 'items': [
        {'path': '/orders', 'label': 'Orders'},
        {'path': '/purchase-orders', 'label': 'Purchase Orders'},
        {'path': '/suppliers', 'label': 'Suppliers'},
    ]},
    {'title': 'Warehouse', 'items': [
        {'path': '/inventory', 'label': 'Warehouse Inventory'},
        {'path': '/categories', 'label': 'Categories'},
        {'path': '/issuance', 'label': 'Issuance'},
        {'path': '/warehouse', 'label': 'Warehouse Mapping'},
        {'title': 'Assurance', 'items': [
            {'path': '/returns', 'label': 'Returns'},
            {'path': '/quality-control', 'label': 'Quality Control'},
            {'path': '/waste-management', 'label': 'Waste Management'},
        ]},
    ]},
    {'title': 'Tools', 'items': [
        {'path': '/tools', 'label': 'Tool Management'},
        {'path': '/tool-accountability', 'label': 'Tool Accountability'},
        {'path': '/tool-booking', 'label': 'Tool Booking'},
        {'path': '/tool-maintenance', 'label': 'Tool Maintenance'},
        {'path': '/my-tools', 'label': 'My Tools'},
        {'path': '/tool-wishlist', 'label': 'Tool Wishlist'},
    ]},
    {'path': '/settings', 'label': 'Settings'},
]


def _collect_pages(items):
    pages = []
    for item in items:
        if 'items' in item:
            pages.extend(_collect_pages(item['items']))
        else:
            pages.append(item['path'])
    return pages


ALL_PAGES = tuple(_collect_pages(NAVIGATION))


@dataclass(frozen=True)
class AuthorizationContext:
    """What the current user may see and do"""
    user_id: int = None
    role: str = None
    permissions: frozenset = field(default_factory=frozenset)
    authenticated: bool = False

    @classmethod
    def for_user(cls, user):
        if user is None or not getattr(user, 'is_authenticated', False):
            return cls()
        role = getattr(user, 'role', None)
        # Superusers without an explicit role keep full access
        if user.is_superuser and role not in FULL_ACCESS_ROLES:
            role = User.ROLE_ADMIN
        return cls(
            user_id=user.pk,
            role=role,
            permissions=frozenset(getattr(user, 'permissions', None) or []),
            authenticated=True,
        )

    @classmethod
    def for_request(cls, request):
        """Build once per request and cache it on the request object"""
        context = getattr(request, '_authorization_context', None)
        if context is None:
            context = cls.for_user(getattr(request, 'user', None))
            try:
                request._authorization_context = context
            except AttributeError:
                pass
        return context

    @property
    def is_admin(self):
        return self.authenticated and self.role == User.ROLE_ADMIN

    @property
    def can_manage(self):
        return self.authenticated and self.role in FULL_ACCESS_ROLES

    @property
    def can_approve(self):
        return self.authenticated and self.role in APPROVER_ROLES

    def can_view(self, page):
        if not self.authenticated:
            return False
        if self.role in FULL_ACCESS_ROLES:
            return True
        return page in self.permissions

    def visible_pages(self):
        return [page for page in ALL_PAGES if self.can_view(page)]

    def visible_navigation(self, items=None):
        """Navigation filtered to viewable pages, empty sections dropped"""
        visible = []
        for item in NAVIGATION if items is None else items:
            if 'items' in item:
                children = self.visible_navigation(item['items'])
                if children:
                    visible.append({'title': item['title'], 'items': children})
            elif self.can_view(item['path']):
                visible.append(dict(item))
        return visible


def can_view_page(page):
    """Permission class allowing users that can view `page`"""

    class CanViewPage(BasePermission):
        message = f'You do not have permission to view {page}.'

        def has_permission(self, request, view):
            return AuthorizationContext.for_request(request).can_view(page)

    CanViewPage.page = page
    CanViewPage.__name__ = f'CanViewPage[{page}]'
    return CanViewPage


class IsAdmin(BasePermission):
    message = 'Only administrators can perform this action.'

    def has_permission(self, request, view):
        return AuthorizationContext.for_request(request).is_admin


class IsManager(BasePermission):
    message = 'Only managers can perform this action.'

    def has_permission(self, request, view):
        return AuthorizationContext.for_request(request).can_manage


class IsManagerOrReadOnly(BasePermission):
    message = 'Only managers can change this data.'

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return AuthorizationContext.for_request(request).can_manage


class IsApprover(BasePermission):
    message = 'Only approvers can perform this action.'

    def has_permission(self, request, view):
        return AuthorizationContext.for_request(request).can_approve
