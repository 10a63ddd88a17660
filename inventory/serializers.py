from decimal import Decimal

from rest_framework import serializers
from .models import Category, Unit, Product, InventoryAdjustment, Purchase, MainProduct, MainProductItem


class CategorySerializer(serializers.ModelSerializer):
    products_count = serializers.IntegerField(source='products.count', read_only=True)

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'products_count', 'created_at']
        read_only_fields = ['created_at']
        extra_kwargs = {'slug': {'required': False}}

    def validate_name(self, value):
        queryset = Category.objects.filter(name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(id=self.instance.id)
        if queryset.exists():
            raise serializers.ValidationError("Category with this name already exists.")
        return value


class UnitSerializer(serializers.ModelSerializer):
    class Meta:
        model = Unit
        fields = ['id', 'name', 'created_at']
        read_only_fields = ['created_at']


def _validate_size_map(value, label):
    if not isinstance(value, dict):
        raise serializers.ValidationError(f"{label} must map size names to prices")
    for size, price in value.items():
        try:
            if Decimal(str(price)) < 0:
                raise serializers.ValidationError(f"{label}: price for '{size}' cannot be negative")
        except ArithmeticError:
            raise serializers.ValidationError(f"{label}: invalid price for '{size}'")
    return value


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'price', 'purchase_cost', 'category', 'category_name', 'branch',
            'image_url', 'unit', 'description', 'quantity', 'stock_short', 'stock_short_reason',
            'barcode', 'size_prices', 'size_purchase_prices', 'created_at'
        ]
        read_only_fields = ['created_at']
        extra_kwargs = {
            'price': {'min_value': Decimal('0')},
            'quantity': {'min_value': Decimal('0')},
        }

    def validate_size_prices(self, value):
        return _validate_size_map(value, 'Size prices')

    def validate_size_purchase_prices(self, value):
        return _validate_size_map(value, 'Size purchase prices')


class PublicProductSerializer(serializers.ModelSerializer):
    """Menu view of a product for the web shop and QR menu"""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    in_stock = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'name', 'price', 'category', 'category_name', 'image_url', 'description', 'size_prices', 'in_stock']

    def get_in_stock(self, obj):
        return obj.quantity > 0


class InventoryAdjustmentSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    performed_by_name = serializers.CharField(source='performed_by.username', read_only=True, default=None)
    new_quantity = serializers.SerializerMethodField()

    class Meta:
        model = InventoryAdjustment
        fields = [
            'id', 'product', 'product_name', 'adjustment_type', 'quantity', 'reason', 'notes',
            'performed_by', 'performed_by_name', 'new_quantity', 'created_at'
        ]
        read_only_fields = ['performed_by', 'created_at']
        extra_kwargs = {'quantity': {'min_value': Decimal('0')}}

    def get_new_quantity(self, obj):
        return obj.product.quantity


class PurchaseSerializer(serializers.ModelSerializer):
    total_cost = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = Purchase
        fields = [
            'id', 'category', 'product', 'branch', 'item_name', 'quantity', 'unit', 'price',
            'pieces_per_unit', 'price_per_piece', 'purchase_date', 'total_cost', 'created_at'
        ]
        read_only_fields = ['created_at']
        extra_kwargs = {
            'quantity': {'min_value': Decimal('0.01')},
            'price': {'min_value': Decimal('0')},
        }


class MainProductSerializer(serializers.ModelSerializer):
    product_ids = serializers.PrimaryKeyRelatedField(
        queryset=Product.objects.all(), many=True, write_only=True, required=False
    )
    products = ProductSerializer(many=True, read_only=True)

    class Meta:
        model = MainProduct
        fields = ['id', 'name', 'description', 'branch', 'products', 'product_ids', 'created_at']
        read_only_fields = ['created_at']

    def _set_products(self, main_product, products):
        main_product.items.all().delete()
        MainProductItem.objects.bulk_create(
            MainProductItem(main_product=main_product, product=product) for product in products
        )

    def create(self, validated_data):
        products = validated_data.pop('product_ids', [])
        main_product = MainProduct.objects.create(**validated_data)
        self._set_products(main_product, products)
        return main_product

    def update(self, instance, validated_data):
        products = validated_data.pop('product_ids', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        if products is not None:
            self._set_products(instance, products)
        return instance
