from django.urls import path
from . import views

app_name = 'hrm'

urlpatterns = [
    path('positions/', views.PositionListCreateView.as_view(), name='position-list'),
    path('positions/<int:pk>/', views.PositionDetailView.as_view(), name='position-detail'),
    path('departments/', views.DepartmentListCreateView.as_view(), name='department-list'),
    path('departments/<int:pk>/', views.DepartmentDetailView.as_view(), name='department-detail'),
    path('employees/', views.EmployeeListCreateView.as_view(), name='employee-list'),
    path('employees/export/', views.EmployeeExportView.as_view(), name='employee-export'),
    path('employees/<int:pk>/', views.EmployeeDetailView.as_view(), name='employee-detail'),
    path('attendance/', views.AttendanceListCreateView.as_view(), name='attendance-list'),
    path('attendance/<int:pk>/', views.AttendanceDetailView.as_view(), name='attendance-detail'),
    path('leaves/', views.LeaveListCreateView.as_view(), name='leave-list'),
    path('leaves/<int:pk>/', views.LeaveDetailView.as_view(), name='leave-detail'),
    path('payroll/', views.PayrollListCreateView.as_view(), name='payroll-list'),
    path('payroll/<int:pk>/', views.PayrollDetailView.as_view(), name='payroll-detail'),
    path('staff-salaries/', views.StaffSalaryListCreateView.as_view(), name='staff-salary-list'),
    path('staff-salaries/summary/', views.staff_salary_summary, name='staff-salary-summary'),
    path('staff-salaries/bulk-release/', views.staff_salary_bulk_release, name='staff-salary-bulk-release'),
    path('staff-salaries/export/', views.StaffSalaryExportView.as_view(), name='staff-salary-export'),
    path('staff-salaries/<int:pk>/', views.StaffSalaryDetailView.as_view(), name='staff-salary-detail'),
]
