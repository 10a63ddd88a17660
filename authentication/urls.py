from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView

from . import views

urlpatterns = [
    # =============== API DOCUMENTATION ===============
    path('schema/', SpectacularAPIView.as_view(), name='schema'),
    path('docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),

    # =============== AUTHENTICATION ===============
    path('auth/login/', views.LoginView.as_view(), name='login'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('auth/logout/', views.logout_view, name='logout'),
    path('auth/session/', views.session_view, name='session'),
    path('auth/change-password/', views.change_password, name='change_password'),

    # =============== USER MANAGEMENT ===============
    path('users/', views.UserListCreateView.as_view(), name='user_list_create'),
    path('users/<uuid:pk>/', views.UserDetailView.as_view(), name='user_detail'),

    # =============== ROLES & PERMISSIONS ===============
    path('roles/', views.RoleListCreateView.as_view(), name='role_list_create'),
    path('roles/<int:pk>/', views.RoleDetailView.as_view(), name='role_detail'),
    path('roles/<int:pk>/permissions/', views.role_permissions, name='role_permissions'),
    path('permissions/', views.PermissionListView.as_view(), name='permission_list'),

    # =============== BRANCH MANAGEMENT ===============
    path('branches/', views.BranchListCreateView.as_view(), name='branch_list_create'),
    path('branches/<uuid:pk>/', views.BranchDetailView.as_view(), name='branch_detail'),
    path('public/branches/', views.public_branches, name='public_branches'),

    # =============== SETTINGS & AUDIT ===============
    path('settings/', views.settings_view, name='settings'),
    path('audit-logs/', views.AuditLogListView.as_view(), name='audit_log_list'),

    # =============== SYSTEM ===============
    path('health/', views.health_check, name='health_check'),
]
