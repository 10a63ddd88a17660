from decimal import Decimal

from rest_framework import serializers

from authentication.models import Branch, BusinessSettings
from inventory.models import Product
from .models import Table, Customer, Order, OrderItem
from .pricing import DISCOUNT_PERCENTAGE, to_decimal
from . import services


class TableSerializer(serializers.ModelSerializer):
    current_order_id = serializers.SerializerMethodField()

    class Meta:
        model = Table
        fields = ['id', 'table_number', 'capacity', 'description', 'branch', 'status', 'current_order_id', 'created_at']
        read_only_fields = ['id', 'created_at']

    def get_current_order_id(self, obj):
        order = obj.current_order()
        return order.id if order else None


class TableStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Table.STATUS_CHOICES)


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ['id', 'name', 'phone', 'email', 'branch', 'notes', 'created_at']
        read_only_fields = ['id', 'created_at']


class BulkDeleteSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


# =============== ORDER ITEMS ===============

class OrderItemReadSerializer(serializers.ModelSerializer):
    product_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'product_id', 'product_name', 'quantity', 'price', 'total',
            'item_discount', 'item_discount_type', 'selected_size'
        ]


class OrderItemWriteSerializer(serializers.Serializer):
    product_id = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), source='product')
    quantity = serializers.IntegerField(min_value=1)
    selected_size = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    item_discount = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, min_value=Decimal('0'))
    item_discount_type = serializers.ChoiceField(choices=Order.DISCOUNT_TYPES, required=False)


# =============== ORDERS ===============

class OrderReadSerializer(serializers.ModelSerializer):
    items = OrderItemReadSerializer(many=True, read_only=True)
    table_number = serializers.CharField(source='table.table_number', read_only=True, default=None)
    branch_name = serializers.CharField(source='branch.name', read_only=True, default=None)
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    balance = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'table', 'table_number', 'customer', 'branch', 'branch_name',
            'dining_option', 'customer_name', 'customer_phone', 'customer_contact_type', 'order_source',
            'subtotal', 'discount', 'discount_type', 'discount_amount', 'total',
            'due_amount', 'paid_amount', 'balance', 'status', 'payment_status', 'payment_method',
            'payment_splits', 'created_by', 'created_by_name', 'items',
            'created_at', 'updated_at', 'completed_at'
        ]


class OrderWriteSerializer(serializers.ModelSerializer):
    items = OrderItemWriteSerializer(many=True, required=False)

    class Meta:
        model = Order
        fields = [
            'table', 'customer', 'branch', 'dining_option', 'customer_name', 'customer_phone',
            'customer_contact_type', 'order_source', 'discount', 'discount_type',
            'due_amount', 'paid_amount', 'status', 'payment_status', 'payment_method',
            'created_at', 'items'
        ]
        extra_kwargs = {
            'discount': {'min_value': Decimal('0')},
            'created_at': {'required': False},
        }

    def validate(self, attrs):
        if self.instance is None and not attrs.get('items'):
            raise serializers.ValidationError({'items': 'An order needs at least one item'})

        discount = attrs.get('discount', getattr(self.instance, 'discount', None))
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', 'amount'))
        if discount and discount_type == DISCOUNT_PERCENTAGE and ('discount' in attrs or 'discount_type' in attrs):
            self._check_max_discount(to_decimal(discount))
        return attrs

    def _check_max_discount(self, percent):
        # amount discounts are only capped at the subtotal, in pricing
        max_discount = BusinessSettings.load().max_discount
        if percent > max_discount:
            raise serializers.ValidationError({'discount': f"Discount cannot exceed {max_discount}%"})

    def create(self, validated_data):
        items = validated_data.pop('items')
        user = self.context['request'].user
        return services.create_order(validated_data, items, user=user)

    def update(self, instance, validated_data):
        items = validated_data.pop('items', None)
        return services.update_order(instance, validated_data, items)

    def to_representation(self, instance):
        return OrderReadSerializer(instance, context=self.context).data


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)


class PaymentSplitSerializer(serializers.Serializer):
    method = serializers.CharField(max_length=50)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))


class PayOrderSerializer(serializers.Serializer):
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True)
    amount_paid = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=Decimal('0'))
    payment_splits = PaymentSplitSerializer(many=True, required=False)

    def validate(self, attrs):
        if not attrs.get('payment_splits') and not attrs.get('payment_method'):
            raise serializers.ValidationError({'payment_method': 'Payment method is required'})
        return attrs


# =============== PUBLIC ORDERING ===============

class PublicOrderSerializer(serializers.Serializer):
    """Order placed from the web shop or a table's QR menu"""
    PAYMENT_METHODS = {
        'cash_on_delivery': 'cash',
        'cash': 'cash',
        'card': 'card',
        'aba': 'aba',
        'acleda': 'acleda',
        'due': 'due',
    }

    branch_id = serializers.PrimaryKeyRelatedField(
        queryset=Branch.objects.filter(is_active=True), source='branch', required=False, allow_null=True
    )
    table_id = serializers.PrimaryKeyRelatedField(
        queryset=Table.objects.all(), source='table', required=False, allow_null=True
    )
    customer_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    customer_phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    customer_contact_type = serializers.CharField(max_length=30, required=False, allow_blank=True)
    dining_option = serializers.ChoiceField(choices=Order.DINING_OPTIONS, required=False)
    payment_method = serializers.CharField(max_length=50, required=False, allow_blank=True)
    items = OrderItemWriteSerializer(many=True, allow_empty=False)

    def validate_payment_method(self, value):
        if not value:
            return value
        if value not in self.PAYMENT_METHODS:
            raise serializers.ValidationError(f"Unsupported payment method '{value}'")
        return value

    def create(self, validated_data):
        items = validated_data.pop('items')
        table = validated_data.get('table')
        requested_method = validated_data.pop('payment_method', '')

        data = dict(validated_data)
        data['order_source'] = Order.SOURCE_QR if table else Order.SOURCE_WEB
        data['status'] = 'web-pending'
        data.setdefault('dining_option', 'dine-in' if table else 'takeaway')
        if table and not data.get('branch') and table.branch_id:
            data['branch'] = table.branch

        if requested_method:
            data['payment_method'] = self.PAYMENT_METHODS[requested_method]
            if data['payment_method'] == 'due':
                data['payment_status'] = 'due'

        return services.create_order(data, items)
