from django.urls import path
from . import views


urlpatterns = [
    # Category URLs
    path('categories/', views.CategoryListCreateView.as_view(), name='category-list-create'),
    path('categories/<int:pk>/', views.CategoryDetailView.as_view(), name='category-detail'),

    # Unit URLs
    path('units/', views.UnitListCreateView.as_view(), name='unit-list-create'),
    path('units/<int:pk>/', views.UnitDetailView.as_view(), name='unit-detail'),

    # Product URLs
    path('products/', views.ProductListCreateView.as_view(), name='product-list-create'),
    path('products/low-stock/', views.LowStockProductListView.as_view(), name='product-low-stock'),
    path('products/barcode/<str:barcode>/', views.ProductBarcodeView.as_view(), name='product-barcode'),
    path('products/<int:pk>/', views.ProductDetailView.as_view(), name='product-detail'),

    # Stock URLs
    path('inventory-adjustments/', views.InventoryAdjustmentListCreateView.as_view(), name='adjustment-list-create'),
    path('inventory-adjustments/<int:pk>/', views.InventoryAdjustmentDetailView.as_view(), name='adjustment-detail'),
    path('purchases/', views.PurchaseListCreateView.as_view(), name='purchase-list-create'),
    path('purchases/<int:pk>/', views.PurchaseDetailView.as_view(), name='purchase-detail'),

    # Main Product URLs
    path('main-products/', views.MainProductListCreateView.as_view(), name='main-product-list-create'),
    path('main-products/<int:pk>/', views.MainProductDetailView.as_view(), name='main-product-detail'),

    # Public menu
    path('public/categories/', views.public_categories, name='public-categories'),
    path('public/products/', views.public_products, name='public-products'),
]
