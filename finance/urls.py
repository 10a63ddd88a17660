from django.urls import path
from . import views

app_name = 'finance'

urlpatterns = [
    # Expenses
    path('expense-categories/', views.ExpenseCategoryListCreateView.as_view(), name='expense-category-list'),
    path('expense-categories/<int:pk>/', views.ExpenseCategoryDetailView.as_view(), name='expense-category-detail'),
    path('expenses/', views.ExpenseListCreateView.as_view(), name='expense-list'),
    path('expenses/stats/', views.ExpenseStatsView.as_view(), name='expense-stats'),
    path('expenses/export/', views.ExpenseExportView.as_view(), name='expense-export'),
    path('expenses/<int:pk>/', views.ExpenseDetailView.as_view(), name='expense-detail'),

    # Due management
    path('due-payments/', views.DuePaymentListCreateView.as_view(), name='due-payment-list'),
    path('due-payments/<int:pk>/', views.DuePaymentDetailView.as_view(), name='due-payment-detail'),
    path('due-payments/<int:pk>/allocations/', views.due_payment_allocations, name='due-payment-allocations'),
    path('due/customers-summary/', views.customers_due_summary, name='customers-due-summary'),
    path('due/export/', views.due_export, name='due-export'),
    path('customers/<int:pk>/due-summary/', views.customer_due_summary, name='customer-due-summary'),
    path('customers/<int:pk>/transactions/paginated/', views.CustomerTransactionsView.as_view(), name='customer-transactions'),

    # Payment adjustments
    path('payment-adjustments/', views.PaymentAdjustmentListCreateView.as_view(), name='payment-adjustment-list'),
    path('payment-adjustments/<int:pk>/', views.PaymentAdjustmentDetailView.as_view(), name='payment-adjustment-detail'),
]
