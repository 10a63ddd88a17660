import logging

from rest_framework import generics, status, permissions, filters
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView
from django.contrib.auth import login, logout
from django.db import connection, DatabaseError
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema, OpenApiExample

from .audit import log_action
from .models import CustomUser, Branch, Role, Permission, BusinessSettings, AuditLog
from .permissions import HasPermission, MethodPermissionMixin, Permissions
from .serializers import (
    UserSerializer, LoginSerializer, ChangePasswordSerializer, BranchSerializer,
    PublicBranchSerializer, PermissionSerializer, RoleSerializer,
    RolePermissionUpdateSerializer, BusinessSettingsSerializer, AuditLogSerializer
)

logger = logging.getLogger(__name__)


def session_payload(user, account_type='user'):
    data = {
        'user': UserSerializer(user).data,
        'account_type': account_type,
        'permissions': user.get_permission_names(),
        'branch': None,
    }
    if user.branch_id:
        data['branch'] = PublicBranchSerializer(user.branch).data
    return data


# =============== AUTHENTICATION VIEWS ===============

class LoginView(TokenObtainPairView):
    """
    Login for user accounts and branch accounts.

    User accounts are tried first; when no user matches, the credentials are
    checked against branch accounts. Returns JWT tokens and also opens a
    session for browser clients.
    """
    serializer_class = LoginSerializer

    @extend_schema(
        summary="Login",
        description="Authenticate with username and password (user or branch account)",
        request=LoginSerializer,
        responses={
            200: {
                'type': 'object',
                'properties': {
                    'refresh': {'type': 'string', 'description': 'JWT refresh token'},
                    'access': {'type': 'string', 'description': 'JWT access token'},
                    'user': {'type': 'object', 'description': 'User information'},
                    'account_type': {'type': 'string', 'description': 'user or branch'},
                    'permissions': {'type': 'array', 'items': {'type': 'string'}},
                }
            },
            400: {'description': 'Invalid credentials'},
        },
        examples=[
            OpenApiExample(
                'Admin Login',
                value={"username": "admin", "password": "admin123"}
            ),
            OpenApiExample(
                'Branch Login',
                value={"username": "riverside", "password": "branch-secret"}
            )
        ]
    )
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = serializer.validated_data['user']
        account_type = serializer.validated_data['account_type']

        login(request, user, backend='django.contrib.auth.backends.ModelBackend')
        refresh = RefreshToken.for_user(user)

        log_action(
            request, 'login', 'auth',
            entity_id=user.id, entity_name=user.username,
            description=f"{account_type.title()} login: {user.username}",
            user=user,
        )

        data = session_payload(user, account_type)
        data['refresh'] = str(refresh)
        data['access'] = str(refresh.access_token)
        return Response(data, status=status.HTTP_200_OK)


@extend_schema(summary="Logout", responses={200: {'type': 'object'}})
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def logout_view(request):
    log_action(request, 'logout', 'auth', entity_id=request.user.id, entity_name=request.user.username)
    logout(request)
    return Response({'message': 'Logged out successfully'})


@extend_schema(summary="Current session", responses={200: {'type': 'object'}})
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated])
def session_view(request):
    account_type = 'branch' if request.user.role == CustomUser.ROLE_BRANCH else 'user'
    return Response(session_payload(request.user, account_type))


@extend_schema(
    summary="Change password",
    request=ChangePasswordSerializer,
    responses={200: {'type': 'object'}, 400: {'description': 'Validation error'}}
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated])
def change_password(request):
    if request.user.role == CustomUser.ROLE_BRANCH:
        return Response(
            {'error': True, 'message': 'Branch accounts change their password through branch management'},
            status=status.HTTP_400_BAD_REQUEST
        )

    serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
    serializer.is_valid(raise_exception=True)

    request.user.set_password(serializer.validated_data['new_password'])
    request.user.save(update_fields=['password'])
    log_action(request, 'update', 'user', entity_id=request.user.id, entity_name=request.user.username,
               description='Password changed')

    return Response({'message': 'Password changed successfully'})


# =============== USER MANAGEMENT VIEWS ===============

class UserListCreateView(generics.ListCreateAPIView):
    """List and create user accounts (branch accounts are managed through branches)"""
    serializer_class = UserSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['role', 'is_active', 'access_role']
    search_fields = ['username', 'full_name', 'email']
    ordering_fields = ['username', 'created_at']

    def get_permissions(self):
        return [permissions.IsAuthenticated(), HasPermission(Permissions.USERS_MANAGE)]

    def get_queryset(self):
        return CustomUser.objects.exclude(role=CustomUser.ROLE_BRANCH).select_related('access_role')

    def perform_create(self, serializer):
        user = serializer.save()
        log_action(self.request, 'create', 'user', entity_id=user.id, entity_name=user.username,
                   description=f"User {user.username} created")


class UserDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = UserSerializer

    def get_permissions(self):
        return [permissions.IsAuthenticated(), HasPermission(Permissions.USERS_MANAGE)]

    def get_queryset(self):
        return CustomUser.objects.exclude(role=CustomUser.ROLE_BRANCH)

    def perform_update(self, serializer):
        user = serializer.save()
        log_action(self.request, 'update', 'user', entity_id=user.id, entity_name=user.username,
                   description=f"User {user.username} updated")

    def perform_destroy(self, instance):
        if instance.pk == self.request.user.pk:
            raise ValidationError('You cannot delete your own account')
        log_action(self.request, 'delete', 'user', entity_id=instance.id, entity_name=instance.username,
                   description=f"User {instance.username} deleted")
        instance.delete()


# =============== ROLES & PERMISSIONS ===============

class RoleListCreateView(MethodPermissionMixin, generics.ListCreateAPIView):
    queryset = Role.objects.all()
    serializer_class = RoleSerializer
    permission_map = {'POST': Permissions.USERS_MANAGE}


class RoleDetailView(MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Role.objects.all()
    serializer_class = RoleSerializer
    permission_map = {
        'PUT': Permissions.USERS_MANAGE,
        'PATCH': Permissions.USERS_MANAGE,
        'DELETE': Permissions.USERS_MANAGE,
    }


class PermissionListView(generics.ListAPIView):
    """List every permission known to the system"""
    queryset = Permission.objects.all()
    serializer_class = PermissionSerializer
    pagination_class = None


@extend_schema(
    summary="Get or replace a role's permissions",
    request=RolePermissionUpdateSerializer,
    responses={200: RoleSerializer}
)
@api_view(['GET', 'PUT'])
@permission_classes([permissions.IsAuthenticated])
def role_permissions(request, pk):
    role = get_object_or_404(Role, pk=pk)

    if request.method == 'PUT':
        if not request.user.has_permission(Permissions.USERS_MANAGE):
            return Response(
                {'error': True, 'message': f"Missing permission: {Permissions.USERS_MANAGE}"},
                status=status.HTTP_403_FORBIDDEN
            )
        serializer = RolePermissionUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        serializer.save(role)
        log_action(request, 'update', 'role', entity_id=role.id, entity_name=role.name,
                   description='Role permissions replaced',
                   changes={'permissions': serializer.validated_data['permissions']})

    return Response(RoleSerializer(role).data)


# =============== BRANCH MANAGEMENT ===============

class BranchListCreateView(MethodPermissionMixin, generics.ListCreateAPIView):
    """List and create branches"""
    queryset = Branch.objects.all()
    serializer_class = BranchSerializer
    permission_map = {'POST': Permissions.BRANCHES_MANAGE}
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['is_active']
    search_fields = ['name', 'username', 'location']

    def perform_create(self, serializer):
        branch = serializer.save()
        log_action(self.request, 'create', 'branch', entity_id=branch.id, entity_name=branch.name,
                   description=f"Branch {branch.name} created")


class BranchDetailView(MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    """Retrieve, update or deactivate a branch"""
    queryset = Branch.objects.all()
    serializer_class = BranchSerializer
    permission_map = {
        'PUT': Permissions.BRANCHES_MANAGE,
        'PATCH': Permissions.BRANCHES_MANAGE,
        'DELETE': Permissions.BRANCHES_MANAGE,
    }

    def perform_update(self, serializer):
        branch = serializer.save()
        log_action(self.request, 'update', 'branch', entity_id=branch.id, entity_name=branch.name,
                   description=f"Branch {branch.name} updated")

    def perform_destroy(self, instance):
        instance.is_active = False
        instance.save(update_fields=['is_active', 'updated_at'])
        instance.accounts.update(is_active=False)
        log_action(self.request, 'delete', 'branch', entity_id=instance.id, entity_name=instance.name,
                   description=f"Branch {instance.name} deactivated")


@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def public_branches(request):
    branches = Branch.objects.filter(is_active=True)
    return Response(PublicBranchSerializer(branches, many=True).data)


# =============== SETTINGS ===============

@extend_schema(
    summary="Business settings",
    request=BusinessSettingsSerializer,
    responses={200: BusinessSettingsSerializer}
)
@api_view(['GET', 'PUT'])
@permission_classes([permissions.IsAuthenticated])
def settings_view(request):
    settings_obj = BusinessSettings.load()

    if request.method == 'PUT':
        if not request.user.has_permission(Permissions.SETTINGS_MANAGE):
            return Response(
                {'error': True, 'message': f"Missing permission: {Permissions.SETTINGS_MANAGE}"},
                status=status.HTTP_403_FORBIDDEN
            )
        serializer = BusinessSettingsSerializer(settings_obj, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        log_action(request, 'update', 'settings', entity_id=settings_obj.pk,
                   entity_name=settings_obj.business_name, description='Settings updated',
                   changes=request.data if isinstance(request.data, dict) else {})
        return Response(serializer.data)

    return Response(BusinessSettingsSerializer(settings_obj).data)


# =============== AUDIT LOGS ===============

class AuditLogListView(generics.ListAPIView):
    serializer_class = AuditLogSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['action', 'entity_type', 'user', 'branch']
    search_fields = ['username', 'description', 'entity_name']
    ordering_fields = ['created_at']

    def get_permissions(self):
        return [permissions.IsAuthenticated(), HasPermission(Permissions.USERS_MANAGE)]

    def get_queryset(self):
        queryset = AuditLog.objects.all()
        start_date = self.request.query_params.get('start_date')
        end_date = self.request.query_params.get('end_date')
        if start_date:
            queryset = queryset.filter(created_at__date__gte=start_date)
        if end_date:
            queryset = queryset.filter(created_at__date__lte=end_date)
        return queryset


# =============== SYSTEM ===============

@extend_schema(
    summary="System Health Check",
    description="Check system health and database connectivity",
    responses={200: {'type': 'object'}}
)
@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def health_check(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError as e:
        logger.error(f"Health check failed: {e}")
        return Response({
            'status': 'unhealthy',
            'timestamp': timezone.now().isoformat(),
            'database': 'disconnected',
        }, status=status.HTTP_503_SERVICE_UNAVAILABLE)

    return Response({
        'status': 'healthy',
        'timestamp': timezone.now().isoformat(),
        'database': 'connected',
        'version': '1.0.0'
    })
