from decimal import Decimal

from rest_framework import serializers

from orders.models import Order
from .models import ExpenseCategory, Expense, DuePayment, DuePaymentAllocation, PaymentAdjustment


class ExpenseCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ExpenseCategory
        fields = ['id', 'name', 'description']


class ExpenseSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)

    class Meta:
        model = Expense
        fields = [
            'id', 'expense_date', 'category', 'category_name', 'branch', 'description',
            'amount', 'unit', 'quantity', 'total', 'slip_image', 'created_at'
        ]
        read_only_fields = ['created_at']
        extra_kwargs = {
            'amount': {'min_value': Decimal('0')},
            'quantity': {'min_value': Decimal('0.01')},
            'total': {'required': False},
        }

    def validate(self, attrs):
        # total follows amount x quantity unless given explicitly
        if 'total' not in attrs and ('amount' in attrs or 'quantity' in attrs):
            amount = attrs.get('amount', getattr(self.instance, 'amount', None))
            quantity = attrs.get('quantity', getattr(self.instance, 'quantity', Decimal('1')))
            if amount is not None:
                attrs['total'] = (amount * quantity).quantize(Decimal('0.01'))
        return attrs


class DuePaymentAllocationSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True)

    class Meta:
        model = DuePaymentAllocation
        fields = ['id', 'order', 'order_number', 'amount', 'created_at']


class AllocationInputSerializer(serializers.Serializer):
    order_id = serializers.PrimaryKeyRelatedField(queryset=Order.objects.all(), source='order')
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))


class DuePaymentSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    recorded_by_name = serializers.CharField(source='recorded_by.username', read_only=True, default=None)
    allocations = DuePaymentAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = DuePayment
        fields = [
            'id', 'customer', 'customer_name', 'payment_date', 'amount', 'unapplied_amount',
            'payment_method', 'reference', 'note', 'payment_slips', 'recorded_by',
            'recorded_by_name', 'branch', 'allocations', 'created_at'
        ]
        read_only_fields = ['unapplied_amount', 'recorded_by', 'created_at']


class DuePaymentCreateSerializer(serializers.ModelSerializer):
    allocations = AllocationInputSerializer(many=True, required=False)

    class Meta:
        model = DuePayment
        fields = [
            'customer', 'payment_date', 'amount', 'payment_method', 'reference', 'note',
            'payment_slips', 'branch', 'allocations'
        ]
        extra_kwargs = {'amount': {'min_value': Decimal('0.01')}}

    def validate(self, attrs):
        customer = attrs['customer']
        for allocation in attrs.get('allocations', []):
            order = allocation['order']
            if order.customer_id != customer.pk:
                raise serializers.ValidationError(
                    {'allocations': f"Order #{order.order_number} does not belong to {customer.name}"}
                )
        return attrs


class DuePaymentUpdateSerializer(serializers.ModelSerializer):
    """Only the bookkeeping details; amounts are fixed once allocated"""

    class Meta:
        model = DuePayment
        fields = ['payment_date', 'payment_method', 'reference', 'note', 'payment_slips']


class PaymentAdjustmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentAdjustment
        fields = ['id', 'payment_method', 'amount', 'adjustment_type', 'description', 'branch', 'created_at']
        read_only_fields = ['created_at']
        extra_kwargs = {'amount': {'min_value': Decimal('0.01')}}
