from decimal import Decimal

from django.db import models
from django.utils import timezone

from authentication.models import Branch
from orders.pricing import money


class Position(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        ordering = ['name']


class Department(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        ordering = ['name']


class Employee(models.Model):
    STATUS_CHOICES = (
        ("active", "Active"),
        ("inactive", "Inactive"),
        ("terminated", "Terminated"),
    )
    employee_id = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=255)
    position = models.ForeignKey(Position, on_delete=models.SET_NULL, null=True, blank=True, related_name='employees')
    department = models.ForeignKey(Department, on_delete=models.SET_NULL, null=True, blank=True, related_name='employees')
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='employees')
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    joining_date = models.DateField(default=timezone.localdate)
    salary = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    photo_url = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.employee_id} - {self.name}"

    class Meta:
        ordering = ['name']


class Attendance(models.Model):
    STATUS_CHOICES = (
        ("present", "Present"),
        ("absent", "Absent"),
        ("late", "Late"),
        ("half-day", "Half Day"),
        ("leave", "On Leave"),
    )
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='attendance')
    date = models.DateField(default=timezone.localdate)
    check_in = models.TimeField(null=True, blank=True)
    check_out = models.TimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="present")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.employee.name} {self.date} {self.status}"

    class Meta:
        ordering = ['-date']
        unique_together = ['employee', 'date']


class Leave(models.Model):
    STATUS_CHOICES = (
        ("pending", "Pending"),
        ("approved", "Approved"),
        ("rejected", "Rejected"),
    )
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='leaves')
    leave_type = models.CharField(max_length=50)
    start_date = models.DateField()
    end_date = models.DateField()
    reason = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def days(self):
        return (self.end_date - self.start_date).days + 1

    def __str__(self):
        return f"{self.employee.name} {self.leave_type} {self.start_date}..{self.end_date}"

    class Meta:
        ordering = ['-start_date']


class Payroll(models.Model):
    STATUS_CHOICES = (
        ("pending", "Pending"),
        ("paid", "Paid"),
    )
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='payrolls')
    month = models.CharField(max_length=20)
    year = models.CharField(max_length=4)
    base_salary = models.DecimalField(max_digits=10, decimal_places=2)
    bonus = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    deductions = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    net_salary = models.DecimalField(max_digits=10, decimal_places=2, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    created_at = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        self.net_salary = money(self.base_salary + self.bonus - self.deductions)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.employee.name} {self.month}/{self.year}"

    class Meta:
        ordering = ['-year', '-created_at']
        unique_together = ['employee', 'month', 'year']


class StaffSalary(models.Model):
    """A salary payout; deductions come off the amount"""
    employee = models.ForeignKey(Employee, on_delete=models.CASCADE, related_name='salaries')
    salary_date = models.DateField(default=timezone.localdate)
    salary_amount = models.DecimalField(max_digits=10, decimal_places=2)
    deduct_salary = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total_salary = models.DecimalField(max_digits=10, decimal_places=2, blank=True)
    note = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def save(self, *args, **kwargs):
        self.total_salary = money(self.salary_amount - self.deduct_salary)
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.employee.name} {self.salary_date} {self.total_salary}"

    class Meta:
        verbose_name_plural = "Staff salaries"
        ordering = ['-salary_date']
