import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db.models import Q

from .authorization import AuthorizationContext, IsAdmin, IsManager
from .models import Setting, AuditLog
from .serializers import (
    UserSerializer, UserCreateSerializer,
    SettingSerializer, AuditLogSerializer
)
from .utils import create_audit_log

logger = logging.getLogger(__name__)

User = get_user_model()

SEARCH_LIMIT = 5


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        context = AuthorizationContext.for_user(user)
        token['username'] = user.username
        token['role'] = context.role
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that reports deleted users as an invalid token"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except ObjectDoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with role, page permissions and the navigation they can see"""
    user = request.user
    context = AuthorizationContext.for_request(request)
    user_data = UserSerializer(user).data
    user_data['role'] = context.role
    user_data['display_first_name'] = user.get_display_first_name()
    user_data['is_admin'] = context.is_admin
    user_data['can_manage'] = context.can_manage
    user_data['can_approve'] = context.can_approve
    user_data['pages'] = context.visible_pages()
    user_data['navigation'] = context.visible_navigation()
    return Response(user_data)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsManager])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        users = User.objects.all().order_by('username')
        role = request.query_params.get('role')
        if role:
            users = users.filter(role__iexact=role)
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            create_audit_log(request, 'create', 'User', user.id, object_name=user.username)
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsManager])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_role = user.role
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            user = serializer.save()
            changes = {key: value for key, value in serializer.validated_data.items()}
            if user.role != old_role:
                changes['role'] = {'old': old_role, 'new': user.role}
            create_audit_log(request, 'update', 'User', user.id, changes=changes, object_name=user.username)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You can not delete your own account.'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request, 'delete', 'User', user.id, object_name=user.username)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        settings = Setting.objects.all().order_by('key')
        serializer = SettingSerializer(settings, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdmin])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs; managers see everything, other users their own entries"""
    queryset = AuditLog.objects.select_related('user').all()

    if not AuthorizationContext.for_request(request).can_manage:
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not AuthorizationContext.for_request(request).can_manage and audit_log.user_id != request.user.pk:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


def _search_sections(query, context):
    """(key, page, queryset, label, path) for every searchable entity"""
    from backoffice.catalog.models import Product
    from backoffice.logistics.models import Issuance
    from backoffice.orders.models import Order, PurchaseOrder
    from backoffice.parties.models import Client, Supplier
    from backoffice.tasks.models import Task
    from backoffice.tools.models import Tool

    tasks = Task.objects.select_related('assigned_to').filter(title__icontains=query)
    if not context.can_manage:
        tasks = tasks.filter(assigned_to_id=context.user_id)

    return [
        ('products', '/inventory',
         Product.objects.filter(Q(name__icontains=query) | Q(sku__icontains=query)),
         lambda p: p.name, lambda p: f'/inventory?edit={p.id}'),
        ('tools', '/tools',
         Tool.objects.filter(Q(name__icontains=query) | Q(serial_number__icontains=query)),
         lambda t: t.name, lambda t: '/tools'),
        ('clients', '/clients',
         Client.objects.filter(Q(name__icontains=query) | Q(project_name__icontains=query)),
         lambda c: f'{c.name} - {c.project_name}' if c.project_name else c.name, lambda c: '/clients'),
        ('users', '/settings',
         User.objects.filter(Q(first_name__icontains=query) | Q(last_name__icontains=query)
                             | Q(email__icontains=query) | Q(username__icontains=query)),
         lambda u: f'{u.get_full_name() or u.username} - {u.role}', lambda u: '/settings?tab=users'),
        ('orders', '/orders',
         Order.objects.select_related('client').filter(Q(order_number__icontains=query) | Q(client__name__icontains=query)),
         lambda o: f'{o.order_number} - {o.client.name}', lambda o: '/orders'),
        ('purchase_orders', '/purchase-orders',
         PurchaseOrder.objects.select_related('supplier').filter(Q(po_number__icontains=query) | Q(supplier__name__icontains=query)),
         lambda po: f'{po.po_number} - {po.supplier.name}', lambda po: '/purchase-orders'),
        ('issuances', '/issuance',
         Issuance.objects.select_related('client').filter(Q(issuance_number__icontains=query) | Q(client__name__icontains=query)),
         lambda i: f'{i.issuance_number} - {i.client.name}', lambda i: f'/issuance?id={i.id}'),
        ('suppliers', '/suppliers',
         Supplier.objects.filter(name__icontains=query),
         lambda s: s.name, lambda s: '/suppliers'),
        ('tasks', '/tasks', tasks,
         lambda t: f'{t.title} - {t.assigned_to.get_full_name() or t.assigned_to.username}' if t.assigned_to else t.title,
         lambda t: '/tasks'),
    ]


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Search across entities, limited to the pages the caller can open"""
    query = request.query_params.get('q', '').strip()
    context = AuthorizationContext.for_request(request)

    results = {}
    for key, page, queryset, label, path in _search_sections(query, context):
        if not context.can_view(page):
            continue
        if not query:
            results[key] = []
            continue
        results[key] = [
            {'id': obj.id, 'label': label(obj), 'path': path(obj)}
            for obj in queryset[:SEARCH_LIMIT]
        ]
    return Response(results)
