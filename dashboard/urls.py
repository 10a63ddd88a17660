from django.urls import path
from . import views

app_name = 'dashboard'

urlpatterns = [
    path('dashboard/stats/', views.dashboard_stats, name='dashboard-stats'),
    path('dashboard/sales-by-category/', views.sales_by_category, name='sales-by-category'),
    path('dashboard/sales-by-payment-method/', views.sales_by_payment_method, name='sales-by-payment-method'),
    path('dashboard/popular-products/', views.popular_products, name='popular-products'),
    path('dashboard/recent-orders/', views.recent_orders, name='recent-orders'),
    path('sales/stats/', views.sales_stats, name='sales-stats'),
    path('reports/items/', views.item_report, name='item-report'),
    path('orders/export/', views.export_orders, name='orders-export'),

    # Central dashboard, API key only
    path('central/stats/', views.central_stats, name='central-stats'),
    path('central/sales-summary/', views.central_sales_summary, name='central-sales-summary'),
]
