from django.db import models
from django.contrib.auth.hashers import make_password, check_password
from django.core.validators import RegexValidator
from decimal import Decimal
import uuid
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager


class CustomUserManager(BaseUserManager):
    def create_user(self, username, password=None, **extra_fields):
        if not username:
            raise ValueError('The Username field must be set')
        email = extra_fields.pop('email', '')
        user = self.model(username=username, email=self.normalize_email(email) if email else '', **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, username, password=None, **extra_fields):
        extra_fields.setdefault('role', CustomUser.ROLE_ADMIN)

        if extra_fields.get('role') != CustomUser.ROLE_ADMIN:
            raise ValueError('Superuser must have role=admin.')

        return self.create_user(username, password, **extra_fields)


class TimeStampedModel(models.Model):
    """Base model with created_at and updated_at fields"""
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


# =============== BRANCH MODELS ===============

class Branch(TimeStampedModel):
    """Physical location; doubles as a login account for its POS terminals"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    username = models.CharField(max_length=100, unique=True)
    password = models.CharField(max_length=128)
    location = models.TextField(blank=True)
    contact_person = models.CharField(max_length=255, blank=True)
    phone_regex = RegexValidator(regex=r'^\+?[\d\s-]{6,20}$')
    phone = models.CharField(validators=[phone_regex], max_length=20, blank=True)
    email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'branches'
        ordering = ['name']

    def __str__(self):
        return self.name

    def set_password(self, raw_password):
        self.password = make_password(raw_password)

    def check_password(self, raw_password):
        return check_password(raw_password, self.password)

    def get_login_user(self):
        """Return (creating on first use) the account user that represents this branch"""
        user, created = CustomUser.objects.get_or_create(
            branch=self,
            role=CustomUser.ROLE_BRANCH,
            defaults={
                'username': f"branch:{self.username}",
                'full_name': self.name,
                'email': self.email,
            }
        )
        if created:
            user.set_unusable_password()
            user.save(update_fields=['password'])
        return user


# =============== PERMISSION MANAGEMENT ===============

class Role(TimeStampedModel):
    """Named bundle of permissions assignable to staff users"""
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)

    class Meta:
        db_table = 'roles'
        ordering = ['name']

    def __str__(self):
        return self.name

    def permission_names(self):
        return list(
            self.role_permissions.select_related('permission')
            .values_list('permission__name', flat=True)
        )


class Permission(models.Model):
    """Permission model for granular access control"""
    PERMISSION_CATEGORIES = [
        ('sales', 'Sales'),
        ('inventory', 'Inventory'),
        ('reports', 'Reports'),
        ('users', 'User Management'),
        ('settings', 'Settings'),
        ('financial', 'Financial'),
        ('due', 'Due Management'),
        ('hrm', 'Human Resources'),
    ]

    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=50, choices=PERMISSION_CATEGORIES)

    class Meta:
        db_table = 'permissions'
        ordering = ['category', 'name']

    def __str__(self):
        return self.name


class RolePermission(models.Model):
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name='role_permissions')
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name='role_permissions')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'role_permissions'
        unique_together = ['role', 'permission']


# =============== USER MANAGEMENT ===============

class CustomUser(AbstractBaseUser):
    """POS user. Branch accounts are users with role=branch pinned to one branch"""
    ROLE_ADMIN = 'admin'
    ROLE_MANAGER = 'manager'
    ROLE_CASHIER = 'cashier'
    ROLE_STAFF = 'staff'
    ROLE_BRANCH = 'branch'

    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_CASHIER, 'Cashier'),
        (ROLE_STAFF, 'Staff'),
        (ROLE_BRANCH, 'Branch'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    username = models.CharField(max_length=150, unique=True)
    full_name = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_STAFF)
    access_role = models.ForeignKey(Role, on_delete=models.SET_NULL, null=True, blank=True, related_name='users')
    employee = models.ForeignKey('hrm.Employee', on_delete=models.SET_NULL, null=True, blank=True, related_name='user_accounts')
    branch = models.ForeignKey(Branch, on_delete=models.CASCADE, null=True, blank=True, related_name='accounts')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    USERNAME_FIELD = 'username'
    REQUIRED_FIELDS = []
    objects = CustomUserManager()

    class Meta:
        db_table = 'users'
        ordering = ['username']

    def __str__(self):
        return self.username

    @property
    def has_full_access(self):
        return self.role in (self.ROLE_ADMIN, self.ROLE_BRANCH)

    def get_permission_names(self):
        """Resolved permission list; '*' means every permission"""
        if self.has_full_access:
            return ['*']
        if self.access_role_id is None:
            return []
        return self.access_role.permission_names()

    def has_permission(self, name):
        granted = self.get_permission_names()
        return '*' in granted or name in granted


# =============== BUSINESS SETTINGS ===============

class BusinessSettings(TimeStampedModel):
    """Single-row business configuration"""
    RECEIPT_TEMPLATES = [
        ('classic', 'Classic'),
        ('modern', 'Modern'),
        ('compact', 'Compact'),
        ('detailed', 'Detailed'),
        ('elegant', 'Elegant'),
    ]

    PAPER_SIZES = [
        ('58mm', '58mm'),
        ('80mm', '80mm'),
        ('a4', 'A4'),
    ]

    business_name = models.CharField(max_length=255, default='BondPos POS')
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)

    # Receipt
    invoice_prefix = models.CharField(max_length=20, default='INV-')
    receipt_header = models.TextField(blank=True)
    receipt_footer = models.TextField(blank=True)
    receipt_logo = models.TextField(blank=True)
    show_logo_on_receipt = models.BooleanField(default=False)
    receipt_template = models.CharField(max_length=20, choices=RECEIPT_TEMPLATES, default='classic')
    paper_size = models.CharField(max_length=10, choices=PAPER_SIZES, default='80mm')

    # Tax & discount
    vat_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    service_tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    max_discount = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('50.00'))

    # Payment methods
    enable_cash = models.BooleanField(default=True)
    enable_card = models.BooleanField(default=True)
    enable_aba = models.BooleanField(default=True)
    enable_acleda = models.BooleanField(default=True)
    enable_credit = models.BooleanField(default=True)

    # Currency
    currency = models.CharField(max_length=3, default='USD')
    secondary_currency = models.CharField(max_length=3, default='KHR')
    exchange_rate = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('4100.00'))

    # Inventory
    stock_threshold = models.IntegerField(default=10)

    class Meta:
        db_table = 'settings'

    def __str__(self):
        return self.business_name

    @classmethod
    def load(cls):
        settings_obj, _ = cls.objects.get_or_create(pk=1)
        return settings_obj


# =============== AUDIT LOG ===============

class AuditLog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='audit_logs')
    username = models.CharField(max_length=150, blank=True)
    action = models.CharField(max_length=50)
    entity_type = models.CharField(max_length=50)
    entity_id = models.CharField(max_length=64, blank=True)
    entity_name = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.username} {self.action} {self.entity_type} {self.entity_id}"
