from django.urls import path, include
from drf_yasg.views import get_schema_view
from drf_yasg import openapi
from rest_framework import permissions

# Setup Swagger schema view
schema_view = get_schema_view(
    openapi.Info(
        title='BondPOS API',
        default_version='v1',
        description="Point of sale and back office API for BondPOS",
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path("api/", include("authentication.urls")),
    path("api/", include("inventory.urls")),
    path("api/", include("orders.urls")),
    path("api/", include("finance.urls")),
    path("api/", include("hrm.urls")),
    path("api/", include("dashboard.urls")),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
]
