from decimal import Decimal

from django.db import models
from django.utils import timezone

from authentication.models import Branch, CustomUser
from orders.models import Customer, Order
from orders.pricing import money


class ExpenseCategory(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)

    def __str__(self):
        return self.name

    class Meta:
        verbose_name_plural = "Expense categories"
        ordering = ['name']


class Expense(models.Model):
    expense_date = models.DateTimeField(default=timezone.now)
    category = models.ForeignKey(ExpenseCategory, on_delete=models.PROTECT, related_name='expenses')
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='expenses')
    description = models.TextField()
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    unit = models.CharField(max_length=50)
    quantity = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('1.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2, blank=True)
    slip_image = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        if self.total is None:
            self.total = money(self.amount * self.quantity)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.description} ({self.total})"

    class Meta:
        ordering = ['-expense_date']


class DuePayment(models.Model):
    """Money received from a customer against outstanding due orders"""
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='due_payments')
    payment_date = models.DateTimeField(default=timezone.now)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    # Part of the payment not applied to any order; counts as customer credit
    unapplied_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    payment_method = models.CharField(max_length=50)
    reference = models.CharField(max_length=255, blank=True)
    note = models.TextField(blank=True)
    payment_slips = models.JSONField(default=list, blank=True)
    recorded_by = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True)
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='due_payments')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.customer} paid {self.amount}"

    class Meta:
        ordering = ['-payment_date']


class DuePaymentAllocation(models.Model):
    payment = models.ForeignKey(DuePayment, on_delete=models.CASCADE, related_name='allocations')
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='due_allocations')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.amount} -> #{self.order.order_number}"


class PaymentAdjustment(models.Model):
    """Manual correction to a payment method's takings, e.g. cash counted short"""
    ADJUSTMENT_TYPES = (
        ("add", "Add"),
        ("subtract", "Subtract"),
    )
    payment_method = models.CharField(max_length=50)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    adjustment_type = models.CharField(max_length=10, choices=ADJUSTMENT_TYPES, default="add")
    description = models.TextField(blank=True)
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def signed_amount(self):
        return self.amount if self.adjustment_type == 'add' else -self.amount

    def __str__(self):
        return f"{self.adjustment_type} {self.amount} {self.payment_method}"

    class Meta:
        ordering = ['-created_at']
