import logging

from rest_framework import generics, permissions, filters
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.response import Response
from django.db.models import F, Q
from django_filters.rest_framework import DjangoFilterBackend

from authentication.audit import log_action
from authentication.mixins import BranchContextMixin
from authentication.models import BusinessSettings
from authentication.permissions import MethodPermissionMixin, Permissions
from .models import Category, Unit, Product, InventoryAdjustment, Purchase, MainProduct
from .serializers import (
    CategorySerializer, UnitSerializer, ProductSerializer, PublicProductSerializer,
    InventoryAdjustmentSerializer, PurchaseSerializer, MainProductSerializer
)
from .stock import apply_adjustment, receive_purchase, low_stock_queryset

logger = logging.getLogger(__name__)

READ_MANAGE = {
    'GET': Permissions.INVENTORY_VIEW,
    'POST': Permissions.INVENTORY_MANAGE,
    'PUT': Permissions.INVENTORY_MANAGE,
    'PATCH': Permissions.INVENTORY_MANAGE,
    'DELETE': Permissions.INVENTORY_MANAGE,
}


# Category Views
class CategoryListCreateView(MethodPermissionMixin, generics.ListCreateAPIView):
    """
    get: List all categories
    post: Create a category (inventory managers only)
    """
    queryset = Category.objects.all()
    serializer_class = CategorySerializer
    permission_map = READ_MANAGE
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['name']
    ordering_fields = ['name', 'created_at']


class CategoryDetailView(MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Category.objects.all()
    serializer_class = CategorySerializer
    permission_map = READ_MANAGE


# Unit Views
class UnitListCreateView(MethodPermissionMixin, generics.ListCreateAPIView):
    queryset = Unit.objects.all()
    serializer_class = UnitSerializer
    permission_map = READ_MANAGE
    pagination_class = None


class UnitDetailView(MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Unit.objects.all()
    serializer_class = UnitSerializer
    permission_map = READ_MANAGE


# Product Views
class ProductListCreateView(BranchContextMixin, MethodPermissionMixin, generics.ListCreateAPIView):
    """
    get: List products for the active branch (shared products included)
    post: Create a product (inventory managers only)
    """
    queryset = Product.objects.select_related('category')
    serializer_class = ProductSerializer
    permission_map = READ_MANAGE
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['category', 'unit']
    search_fields = ['name', 'barcode', 'description']
    ordering_fields = ['name', 'price', 'quantity', 'created_at']

    def perform_create(self, serializer):
        super().perform_create(serializer)
        product = serializer.instance
        log_action(self.request, 'create', 'product', entity_id=product.id, entity_name=product.name)


class ProductDetailView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Product.objects.select_related('category')
    serializer_class = ProductSerializer
    permission_map = READ_MANAGE

    def perform_update(self, serializer):
        product = serializer.save()
        log_action(self.request, 'update', 'product', entity_id=product.id, entity_name=product.name)

    def perform_destroy(self, instance):
        log_action(self.request, 'delete', 'product', entity_id=instance.id, entity_name=instance.name)
        instance.delete()


class ProductBarcodeView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveAPIView):
    """Scanner lookup; a product of the active branch wins over a shared one"""
    queryset = Product.objects.select_related('category')
    serializer_class = ProductSerializer
    permission_map = {'GET': Permissions.INVENTORY_VIEW}

    def get_object(self):
        product = (
            self.get_queryset()
            .filter(barcode=self.kwargs['barcode'])
            .order_by(F('branch').desc(nulls_last=True), 'id')
            .first()
        )
        if product is None:
            raise NotFound("Product not found")
        return product


class LowStockProductListView(BranchContextMixin, MethodPermissionMixin, generics.ListAPIView):
    """Products running low; ``?threshold=`` overrides the configured stock threshold"""
    queryset = Product.objects.select_related('category')
    serializer_class = ProductSerializer
    permission_map = {'GET': Permissions.INVENTORY_VIEW}

    def get_queryset(self):
        threshold = self.request.query_params.get('threshold')
        if threshold is None or not threshold.isdigit():
            threshold = BusinessSettings.load().stock_threshold
        return low_stock_queryset(int(threshold), super().get_queryset()).order_by('quantity')


# Inventory Adjustment Views
class InventoryAdjustmentListCreateView(MethodPermissionMixin, generics.ListCreateAPIView):
    """
    get: List stock adjustments
    post: Record an adjustment and apply it to the product quantity
    """
    queryset = InventoryAdjustment.objects.select_related('product', 'performed_by')
    serializer_class = InventoryAdjustmentSerializer
    permission_map = READ_MANAGE
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['product', 'adjustment_type']
    ordering_fields = ['created_at']

    def perform_create(self, serializer):
        adjustment = serializer.save(performed_by=self.request.user)
        new_quantity = apply_adjustment(adjustment)
        adjustment.product.refresh_from_db(fields=['quantity'])
        log_action(
            self.request, 'update', 'product',
            entity_id=adjustment.product_id, entity_name=adjustment.product.name,
            description=f"Stock {adjustment.adjustment_type} {adjustment.quantity}: {adjustment.reason}",
            changes={'quantity': str(new_quantity)},
        )


class InventoryAdjustmentDetailView(MethodPermissionMixin, generics.RetrieveAPIView):
    queryset = InventoryAdjustment.objects.select_related('product', 'performed_by')
    serializer_class = InventoryAdjustmentSerializer
    permission_map = READ_MANAGE


# Purchase Views
class PurchaseListCreateView(BranchContextMixin, MethodPermissionMixin, generics.ListCreateAPIView):
    """
    get: List purchases
    post: Record a purchase; stock of the matching product goes up
    """
    queryset = Purchase.objects.select_related('product', 'category')
    serializer_class = PurchaseSerializer
    permission_map = {'GET': Permissions.INVENTORY_VIEW, 'POST': Permissions.EXPENSES_MANAGE}
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['category', 'product', 'purchase_date']
    search_fields = ['item_name']
    ordering_fields = ['purchase_date', 'created_at']

    def perform_create(self, serializer):
        super().perform_create(serializer)
        purchase = serializer.instance
        receive_purchase(purchase)
        log_action(self.request, 'create', 'purchase', entity_id=purchase.id, entity_name=purchase.item_name,
                   description=f"Purchased {purchase.quantity} {purchase.unit} {purchase.item_name}")


class PurchaseDetailView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Purchase.objects.select_related('product', 'category')
    serializer_class = PurchaseSerializer
    permission_map = {
        'GET': Permissions.INVENTORY_VIEW,
        'PUT': Permissions.EXPENSES_MANAGE,
        'PATCH': Permissions.EXPENSES_MANAGE,
        'DELETE': Permissions.EXPENSES_MANAGE,
    }


# Main Product Views
class MainProductListCreateView(BranchContextMixin, MethodPermissionMixin, generics.ListCreateAPIView):
    queryset = MainProduct.objects.prefetch_related('products')
    serializer_class = MainProductSerializer
    permission_map = READ_MANAGE
    filter_backends = [filters.SearchFilter]
    search_fields = ['name']


class MainProductDetailView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = MainProduct.objects.prefetch_related('products')
    serializer_class = MainProductSerializer
    permission_map = READ_MANAGE


# Public menu
@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def public_categories(request):
    return Response(CategorySerializer(Category.objects.all(), many=True).data)


@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def public_products(request):
    """Menu for the web shop; ``?branch_id=`` adds that branch's products to the shared ones"""
    products = Product.objects.select_related('category')
    branch_id = request.query_params.get('branch_id')
    if branch_id:
        products = products.filter(Q(branch_id=branch_id) | Q(branch__isnull=True))
    else:
        products = products.filter(branch__isnull=True)

    category = request.query_params.get('category')
    if category:
        products = products.filter(category_id=category)
    return Response(PublicProductSerializer(products.order_by('name'), many=True).data)
