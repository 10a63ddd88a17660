from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    # Tables
    path('tables/', views.TableListCreateView.as_view(), name='table-list'),
    path('tables/<int:pk>/', views.TableDetailView.as_view(), name='table-detail'),
    path('tables/<int:pk>/order/', views.table_current_order, name='table-order'),
    path('tables/<int:pk>/status/', views.table_status, name='table-status'),

    # Customers
    path('customers/', views.CustomerListCreateView.as_view(), name='customer-list'),
    path('customers/bulk-delete/', views.customers_bulk_delete, name='customer-bulk-delete'),
    path('customers/<int:pk>/', views.CustomerDetailView.as_view(), name='customer-detail'),
    path('customers/<int:pk>/orders/paginated/', views.CustomerOrderHistoryView.as_view(), name='customer-orders'),

    # Orders
    path('orders/', views.OrderListCreateView.as_view(), name='order-list'),
    path('orders/drafts/', views.SourceOrderListView.as_view(order_filter={'status': 'draft'}), name='order-drafts'),
    path('orders/qr/', views.SourceOrderListView.as_view(order_filter={'order_source': 'qr'}), name='order-qr'),
    path('orders/web/', views.SourceOrderListView.as_view(order_filter={'order_source': 'web'}), name='order-web'),
    path('orders/<int:pk>/', views.OrderDetailView.as_view(), name='order-detail'),
    path('orders/<int:pk>/items/', views.order_items, name='order-items'),
    path('orders/<int:pk>/status/', views.order_status, name='order-status'),
    path('orders/<int:pk>/pay/', views.pay_order, name='order-pay'),
    path('orders/<int:pk>/accept/', views.accept_order, name='order-accept'),
    path('orders/<int:pk>/reject/', views.reject_order, name='order-reject'),
    path('orders/<int:pk>/receipt/', views.order_receipt, name='order-receipt'),
    path('orders/<int:pk>/kot/', views.order_kot, name='order-kot'),

    # Public web / QR ordering
    path('public/orders/', views.public_create_order, name='public-order-create'),
    path('public/orders/<str:order_number>/', views.public_order_status, name='public-order-status'),
]
