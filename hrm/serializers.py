from decimal import Decimal

from rest_framework import serializers
from .models import Position, Department, Employee, Attendance, Leave, Payroll, StaffSalary


class PositionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Position
        fields = ['id', 'name', 'description', 'created_at']
        read_only_fields = ['created_at']


class DepartmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Department
        fields = ['id', 'name', 'description', 'created_at']
        read_only_fields = ['created_at']


class EmployeeSerializer(serializers.ModelSerializer):
    position_name = serializers.CharField(source='position.name', read_only=True, default=None)
    department_name = serializers.CharField(source='department.name', read_only=True, default=None)

    class Meta:
        model = Employee
        fields = [
            'id', 'employee_id', 'name', 'position', 'position_name', 'department', 'department_name',
            'branch', 'email', 'phone', 'joining_date', 'salary', 'photo_url', 'status', 'created_at'
        ]
        read_only_fields = ['created_at']
        extra_kwargs = {'salary': {'min_value': Decimal('0')}}


class AttendanceSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source='employee.name', read_only=True)

    class Meta:
        model = Attendance
        fields = ['id', 'employee', 'employee_name', 'date', 'check_in', 'check_out', 'status', 'created_at']
        read_only_fields = ['created_at']

    def validate(self, attrs):
        check_in = attrs.get('check_in', getattr(self.instance, 'check_in', None))
        check_out = attrs.get('check_out', getattr(self.instance, 'check_out', None))
        if check_in and check_out and check_out < check_in:
            raise serializers.ValidationError({'check_out': 'Check-out cannot be before check-in'})
        return attrs


class LeaveSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source='employee.name', read_only=True)
    days = serializers.IntegerField(read_only=True)

    class Meta:
        model = Leave
        fields = [
            'id', 'employee', 'employee_name', 'leave_type', 'start_date', 'end_date',
            'days', 'reason', 'status', 'created_at'
        ]
        read_only_fields = ['created_at']

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': 'End date cannot be before start date'})
        return attrs


class PayrollSerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source='employee.name', read_only=True)

    class Meta:
        model = Payroll
        fields = [
            'id', 'employee', 'employee_name', 'month', 'year', 'base_salary', 'bonus',
            'deductions', 'net_salary', 'status', 'created_at'
        ]
        read_only_fields = ['net_salary', 'created_at']


class StaffSalarySerializer(serializers.ModelSerializer):
    employee_name = serializers.CharField(source='employee.name', read_only=True)
    employee_code = serializers.CharField(source='employee.employee_id', read_only=True)

    class Meta:
        model = StaffSalary
        fields = [
            'id', 'employee', 'employee_name', 'employee_code', 'salary_date', 'salary_amount',
            'deduct_salary', 'total_salary', 'note', 'created_at'
        ]
        read_only_fields = ['total_salary', 'created_at']
        extra_kwargs = {
            'salary_amount': {'min_value': Decimal('0')},
            'deduct_salary': {'min_value': Decimal('0')},
        }

    def validate(self, attrs):
        amount = attrs.get('salary_amount', getattr(self.instance, 'salary_amount', None))
        deduct = attrs.get('deduct_salary', getattr(self.instance, 'deduct_salary', Decimal('0')))
        if amount is not None and deduct > amount:
            raise serializers.ValidationError({'deduct_salary': 'Deduction cannot exceed the salary amount'})
        return attrs


class BulkReleaseSerializer(serializers.Serializer):
    """Pay every active employee their base salary on one date"""
    salary_date = serializers.DateField()
    employee_ids = serializers.ListField(child=serializers.IntegerField(), required=False)
    note = serializers.CharField(required=False, allow_blank=True)
