import logging

from rest_framework import generics, status, permissions, filters
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.db import transaction
from django.db.models import Sum, Count
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend

from authentication.audit import log_action
from authentication.mixins import BranchContextMixin
from authentication.permissions import MethodPermissionMixin, Permissions, require_permission
from dashboard.exports import export_response
from orders.filters import filter_by_period
from orders.pricing import money
from .models import Position, Department, Employee, Attendance, Leave, Payroll, StaffSalary
from .serializers import (
    PositionSerializer, DepartmentSerializer, EmployeeSerializer, AttendanceSerializer,
    LeaveSerializer, PayrollSerializer, StaffSalarySerializer, BulkReleaseSerializer
)

logger = logging.getLogger(__name__)

HRM_PERMISSIONS = {
    'GET': Permissions.HRM_VIEW,
    'POST': Permissions.HRM_MANAGE,
    'PUT': Permissions.HRM_MANAGE,
    'PATCH': Permissions.HRM_MANAGE,
    'DELETE': Permissions.HRM_MANAGE,
}


class HRMListCreateView(MethodPermissionMixin, generics.ListCreateAPIView):
    permission_map = HRM_PERMISSIONS
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]


class HRMDetailView(MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    permission_map = HRM_PERMISSIONS


class PositionListCreateView(HRMListCreateView):
    queryset = Position.objects.all()
    serializer_class = PositionSerializer
    search_fields = ['name']
    pagination_class = None


class PositionDetailView(HRMDetailView):
    queryset = Position.objects.all()
    serializer_class = PositionSerializer


class DepartmentListCreateView(HRMListCreateView):
    queryset = Department.objects.all()
    serializer_class = DepartmentSerializer
    search_fields = ['name']
    pagination_class = None


class DepartmentDetailView(HRMDetailView):
    queryset = Department.objects.all()
    serializer_class = DepartmentSerializer


class EmployeeListCreateView(BranchContextMixin, HRMListCreateView):
    queryset = Employee.objects.select_related('position', 'department')
    serializer_class = EmployeeSerializer
    filterset_fields = ['status', 'position', 'department']
    search_fields = ['employee_id', 'name', 'email', 'phone']
    ordering_fields = ['name', 'joining_date', 'salary']

    def perform_create(self, serializer):
        super().perform_create(serializer)
        employee = serializer.instance
        log_action(self.request, 'create', 'employee', entity_id=employee.id, entity_name=employee.name)


class EmployeeDetailView(BranchContextMixin, HRMDetailView):
    queryset = Employee.objects.select_related('position', 'department')
    serializer_class = EmployeeSerializer

    def perform_destroy(self, instance):
        log_action(self.request, 'delete', 'employee', entity_id=instance.id, entity_name=instance.name)
        instance.delete()


class AttendanceListCreateView(HRMListCreateView):
    queryset = Attendance.objects.select_related('employee')
    serializer_class = AttendanceSerializer
    filterset_fields = ['employee', 'date', 'status']
    search_fields = ['employee__name']
    ordering_fields = ['date']


class AttendanceDetailView(HRMDetailView):
    queryset = Attendance.objects.select_related('employee')
    serializer_class = AttendanceSerializer


class LeaveListCreateView(HRMListCreateView):
    queryset = Leave.objects.select_related('employee')
    serializer_class = LeaveSerializer
    filterset_fields = ['employee', 'status', 'leave_type']
    search_fields = ['employee__name', 'reason']
    ordering_fields = ['start_date']


class LeaveDetailView(HRMDetailView):
    queryset = Leave.objects.select_related('employee')
    serializer_class = LeaveSerializer


class PayrollListCreateView(HRMListCreateView):
    queryset = Payroll.objects.select_related('employee')
    serializer_class = PayrollSerializer
    filterset_fields = ['employee', 'month', 'year', 'status']
    search_fields = ['employee__name']


class PayrollDetailView(HRMDetailView):
    queryset = Payroll.objects.select_related('employee')
    serializer_class = PayrollSerializer


class StaffSalaryListCreateView(HRMListCreateView):
    """
    get: List salary payouts (``date_filter``, ``start_date``, ``end_date``)
    post: Record a payout; total is amount minus deduction
    """
    serializer_class = StaffSalarySerializer
    filterset_fields = ['employee']
    search_fields = ['employee__name', 'employee__employee_id', 'note']
    ordering_fields = ['salary_date', 'total_salary']

    def get_queryset(self):
        queryset = StaffSalary.objects.select_related('employee')
        return filter_by_period(queryset, self.request.query_params, field='salary_date')


class StaffSalaryDetailView(HRMDetailView):
    queryset = StaffSalary.objects.select_related('employee')
    serializer_class = StaffSalarySerializer


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.HRM_VIEW)])
def staff_salary_summary(request):
    queryset = filter_by_period(StaffSalary.objects.all(), request.query_params, field='salary_date')
    totals = queryset.aggregate(
        salary_sum=Sum('salary_amount'),
        deduction_sum=Sum('deduct_salary'),
        paid_sum=Sum('total_salary'),
        payouts=Count('id'),
        employees=Count('employee', distinct=True),
    )
    return Response({
        'total_salary': money(totals['salary_sum']),
        'total_deductions': money(totals['deduction_sum']),
        'total_paid': money(totals['paid_sum']),
        'payouts': totals['payouts'],
        'employees': totals['employees'],
    })


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.HRM_MANAGE)])
def staff_salary_bulk_release(request):
    serializer = BulkReleaseSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    employees = Employee.objects.filter(status='active')
    if data.get('employee_ids'):
        employees = employees.filter(pk__in=data['employee_ids'])

    with transaction.atomic():
        created = [
            StaffSalary.objects.create(
                employee=employee,
                salary_date=data['salary_date'],
                salary_amount=employee.salary,
                note=data.get('note', ''),
            )
            for employee in employees
        ]

    log_action(request, 'create', 'staff_salary', description=f"Released {len(created)} salaries for {data['salary_date']}")
    logger.info(f"Bulk salary release: {len(created)} payouts on {data['salary_date']}")
    return Response(StaffSalarySerializer(created, many=True).data, status=status.HTTP_201_CREATED)


EMPLOYEE_COLUMNS = ['Employee ID', 'Name', 'Position', 'Department', 'Email', 'Phone', 'Joining Date', 'Salary', 'Status']
SALARY_COLUMNS = ['Date', 'Employee ID', 'Employee', 'Salary', 'Deduction', 'Total', 'Note']


class EmployeeExportView(BranchContextMixin, MethodPermissionMixin, generics.GenericAPIView):
    """``?format=csv|excel|pdf`` plus the employee list filters"""
    queryset = Employee.objects.select_related('position', 'department')
    permission_map = {'GET': Permissions.HRM_VIEW}
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['status', 'position', 'department']
    search_fields = ['employee_id', 'name', 'email', 'phone']

    def get(self, request):
        rows = [
            {
                'Employee ID': employee.employee_id,
                'Name': employee.name,
                'Position': employee.position.name if employee.position else '',
                'Department': employee.department.name if employee.department else '',
                'Email': employee.email,
                'Phone': employee.phone,
                'Joining Date': employee.joining_date.isoformat(),
                'Salary': float(employee.salary),
                'Status': employee.status,
            }
            for employee in self.filter_queryset(self.get_queryset()).order_by('employee_id')
        ]
        filename = f"employees_{timezone.localdate():%Y%m%d}"
        return export_response(request.query_params.get('format', 'csv'), rows, EMPLOYEE_COLUMNS, filename, 'Employees')


class StaffSalaryExportView(MethodPermissionMixin, generics.GenericAPIView):
    """``?format=csv|excel|pdf`` of salary payouts for a period"""
    permission_map = {'GET': Permissions.HRM_VIEW}
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['employee']
    search_fields = ['employee__name', 'employee__employee_id', 'note']

    def get_queryset(self):
        queryset = StaffSalary.objects.select_related('employee')
        return filter_by_period(queryset, self.request.query_params, field='salary_date')

    def get(self, request):
        salaries = self.filter_queryset(self.get_queryset()).order_by('-salary_date', '-id')
        rows = [
            {
                'Date': salary.salary_date.isoformat(),
                'Employee ID': salary.employee.employee_id,
                'Employee': salary.employee.name,
                'Salary': float(salary.salary_amount),
                'Deduction': float(salary.deduct_salary),
                'Total': float(salary.total_salary),
                'Note': salary.note,
            }
            for salary in salaries
        ]
        totals = {
            'Salary': sum(row['Salary'] for row in rows),
            'Deduction': sum(row['Deduction'] for row in rows),
            'Total': sum(row['Total'] for row in rows),
        }
        filename = f"staff_salaries_{timezone.localdate():%Y%m%d}"
        return export_response(
            request.query_params.get('format', 'csv'), rows, SALARY_COLUMNS, filename, 'Staff Salaries', totals=totals
        )
