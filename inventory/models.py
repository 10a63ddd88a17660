from django.db import models
from django.utils.text import slugify
from decimal import Decimal
from authentication.models import Branch, CustomUser
from orders.pricing import unit_price


class Category(models.Model):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return str(self.name)

    def save(self, *args, **kwargs):
        if not self.slug:
            base = slugify(self.name) or 'category'
            slug = base
            suffix = 2
            while Category.objects.filter(slug=slug).exclude(pk=self.pk).exists():
                slug = f"{base}-{suffix}"
                suffix += 1
            self.slug = slug
        super().save(*args, **kwargs)

    class Meta:
        verbose_name_plural = "Categories"
        ordering = ['name']


class Unit(models.Model):
    name = models.CharField(max_length=50, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        ordering = ['name']


class Product(models.Model):
    name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    purchase_cost = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name="products")
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, null=True, blank=True, related_name="products")
    image_url = models.TextField(blank=True)
    unit = models.CharField(max_length=50, default='piece')
    description = models.TextField(blank=True)
    quantity = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    stock_short = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    stock_short_reason = models.TextField(blank=True)
    barcode = models.CharField(max_length=100, blank=True)
    # {"S": "2.50", "M": "3.00"}
    size_prices = models.JSONField(default=dict, blank=True)
    size_purchase_prices = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    def price_for_size(self, size):
        return unit_price(self.price, self.size_prices, size)

    class Meta:
        ordering = ['name']


class InventoryAdjustment(models.Model):
    ADJUSTMENT_TYPES = (
        ("add", "Add"),
        ("remove", "Remove"),
        ("set", "Set"),
    )
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='adjustments')
    adjustment_type = models.CharField(max_length=10, choices=ADJUSTMENT_TYPES)
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    reason = models.CharField(max_length=255)
    notes = models.TextField(blank=True)
    performed_by = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.adjustment_type} {self.quantity} x {self.product.name}"

    class Meta:
        ordering = ['-created_at']


class Purchase(models.Model):
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True)
    product = models.ForeignKey(Product, on_delete=models.SET_NULL, null=True, blank=True, related_name='purchases')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, null=True, blank=True)
    item_name = models.CharField(max_length=255)
    quantity = models.DecimalField(max_digits=12, decimal_places=2)
    unit = models.CharField(max_length=50)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    pieces_per_unit = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    price_per_piece = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    purchase_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.quantity} {self.unit} {self.item_name}"

    @property
    def total_cost(self):
        return self.quantity * self.price

    class Meta:
        ordering = ['-purchase_date', '-created_at']


class MainProduct(models.Model):
    """Grouping of products sold together, e.g. a set menu"""
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, null=True, blank=True)
    products = models.ManyToManyField(Product, through='MainProductItem', related_name='main_products')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        ordering = ['name']


class MainProductItem(models.Model):
    main_product = models.ForeignKey(MainProduct, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.CASCADE)

    class Meta:
        unique_together = ['main_product', 'product']
