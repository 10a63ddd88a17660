from django.db import models, transaction
from django.utils import timezone
from decimal import Decimal

from authentication.models import Branch, CustomUser
from inventory.models import Product
from .pricing import money, global_discount, ZERO


class Table(models.Model):
    STATUS_CHOICES = (
        ("available", "Available"),
        ("occupied", "Occupied"),
        ("reserved", "Reserved"),
    )
    table_number = models.CharField(max_length=20, unique=True)
    capacity = models.IntegerField(default=4)
    description = models.TextField(blank=True)
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, null=True, blank=True, related_name='tables')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="available")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"Table: {self.table_number}"

    def current_order(self, branch_id=None):
        """Open order currently seated at this table"""
        orders = self.orders.filter(status__in=['draft', 'confirmed'])
        if branch_id is not None:
            orders = orders.filter(branch_id=branch_id)
        return orders.order_by('-created_at').first()

    class Meta:
        ordering = ['table_number']


class Customer(models.Model):
    WALK_IN = 'Walk-in Customer'

    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='customers')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        ordering = ['name']


class OrderCounter(models.Model):
    """Single row holding the last issued order number"""
    last_number = models.PositiveIntegerField(default=0)

    @classmethod
    def next_number(cls):
        with transaction.atomic():
            counter, _ = cls.objects.select_for_update().get_or_create(pk=1)
            counter.last_number += 1
            counter.save(update_fields=['last_number'])
            return str(counter.last_number)


class Order(models.Model):
    DINING_OPTIONS = (
        ("dine-in", "Dine In"),
        ("takeaway", "Takeaway"),
        ("delivery", "Delivery"),
    )

    SOURCE_POS = 'pos'
    SOURCE_QR = 'qr'
    SOURCE_WEB = 'web'
    SOURCE_DUE = 'due-management'
    SOURCE_CHOICES = (
        (SOURCE_POS, "POS"),
        (SOURCE_QR, "QR Menu"),
        (SOURCE_WEB, "Web"),
        (SOURCE_DUE, "Due Management"),
    )

    STATUS_CHOICES = (
        ("draft", "Draft"),
        ("confirmed", "Confirmed"),
        ("pending", "Pending"),
        ("web-pending", "Web Pending"),
        ("preparing", "Preparing"),
        ("ready", "Ready"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
        ("due", "Due"),
    )

    PAYMENT_STATUS_CHOICES = (
        ("pending", "Pending"),
        ("paid", "Paid"),
        ("partial", "Partial"),
        ("due", "Due"),
    )

    DISCOUNT_TYPES = (
        ("amount", "Amount"),
        ("percentage", "Percentage"),
    )

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    table = models.ForeignKey(Table, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    created_by = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_orders')

    dining_option = models.CharField(max_length=20, choices=DINING_OPTIONS, default="dine-in")
    customer_name = models.CharField(max_length=255, blank=True)
    customer_phone = models.CharField(max_length=50, blank=True)
    customer_contact_type = models.CharField(max_length=30, blank=True)
    order_source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default=SOURCE_POS)

    # Pricing fields
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPES, default="amount")
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    # Payment fields
    due_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="draft")
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default="pending")
    payment_method = models.CharField(max_length=50, blank=True)
    # [{"method": "cash", "amount": "5.00"}, ...]
    payment_splits = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = OrderCounter.next_number()
        if self.status == 'completed' and self.completed_at is None:
            self.completed_at = timezone.now()
        super().save(*args, **kwargs)

    @property
    def discount_amount(self):
        return global_discount(self.subtotal, self.discount, self.discount_type)

    @property
    def balance(self):
        """What is still owed on a due or partial order"""
        return max(ZERO, money(self.total) - money(self.paid_amount))

    def calculate_totals(self):
        """Recalculate order totals from its items"""
        subtotal = sum((item.total for item in self.items.all()), ZERO)
        self.subtotal = money(subtotal)
        self.total = money(max(ZERO, self.subtotal - self.discount_amount))

    def __str__(self):
        return f"#{self.order_number} - {self.table if self.table else self.dining_option}"

    class Meta:
        ordering = ['-created_at']


class OrderItem(models.Model):
    order = models.ForeignKey(Order, related_name='items', on_delete=models.CASCADE)
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, related_name='order_items')
    product_name = models.CharField(max_length=255, blank=True)
    quantity = models.IntegerField(default=1)
    # Unit price charged (size price when a size was picked)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    # Line total after the item discount
    total = models.DecimalField(max_digits=12, decimal_places=2)
    item_discount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    item_discount_type = models.CharField(max_length=20, choices=Order.DISCOUNT_TYPES, default="amount")
    selected_size = models.CharField(max_length=50, blank=True)

    def save(self, *args, **kwargs):
        self.price = money(self.price)
        self.total = money(self.total)
        if not self.product_name and self.product_id:
            self.product_name = self.product.name
        super().save(*args, **kwargs)

    def __str__(self):
        size = f" ({self.selected_size})" if self.selected_size else ""
        return f"{self.quantity} x {self.product_name}{size}"

    class Meta:
        ordering = ['id']
