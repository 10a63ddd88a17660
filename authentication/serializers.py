from rest_framework import serializers
from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
from django.db import transaction
from .models import (
    CustomUser, Branch, Role, Permission, RolePermission,
    BusinessSettings, AuditLog
)


class UserSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password], required=False)
    confirm_password = serializers.CharField(write_only=True, required=False)
    access_role_name = serializers.CharField(source='access_role.name', read_only=True)
    permissions = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = CustomUser
        fields = [
            'id', 'username', 'full_name', 'email', 'role', 'access_role',
            'access_role_name', 'employee', 'branch', 'is_active',
            'password', 'confirm_password', 'permissions', 'last_login', 'created_at'
        ]
        read_only_fields = ['id', 'last_login', 'created_at']

    def get_permissions(self, obj):
        return obj.get_permission_names()

    def validate_username(self, value):
        queryset = CustomUser.objects.filter(username__iexact=value)
        if self.instance:
            queryset = queryset.exclude(id=self.instance.id)
        if queryset.exists():
            raise serializers.ValidationError("Username already exists")
        return value

    def validate(self, attrs):
        if 'password' in attrs and 'confirm_password' in attrs:
            if attrs['password'] != attrs['confirm_password']:
                raise serializers.ValidationError("Passwords don't match")
        if not self.instance and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'Password is required'})
        return attrs

    def create(self, validated_data):
        validated_data.pop('confirm_password', None)
        password = validated_data.pop('password')
        user = CustomUser(**validated_data)
        user.set_password(password)
        user.save()
        return user

    def update(self, instance, validated_data):
        validated_data.pop('confirm_password', None)
        password = validated_data.pop('password', None)

        for attr, value in validated_data.items():
            setattr(instance, attr, value)

        if password:
            instance.set_password(password)

        instance.save()
        return instance


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        username = attrs.get('username')
        password = attrs.get('password')

        # User accounts first
        user = authenticate(
            request=self.context.get('request'),
            username=username,
            password=password
        )
        if user is not None:
            attrs['user'] = user
            attrs['branch'] = user.branch
            attrs['account_type'] = 'user'
            return attrs

        # Then branch accounts
        branch = Branch.objects.filter(username=username).first()
        if branch is not None and branch.check_password(password):
            if not branch.is_active:
                raise serializers.ValidationError('Branch account is disabled')
            attrs['user'] = branch.get_login_user()
            attrs['branch'] = branch
            attrs['account_type'] = 'branch'
            return attrs

        raise serializers.ValidationError('Invalid username or password')


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=6)

    def validate_current_password(self, value):
        user = self.context['request'].user
        if not user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect')
        return value

    def validate_new_password(self, value):
        validate_password(value, self.context['request'].user)
        return value


class BranchSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, min_length=6)

    class Meta:
        model = Branch
        fields = [
            'id', 'name', 'username', 'password', 'location', 'contact_person',
            'phone', 'email', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        if not self.instance and not attrs.get('password'):
            raise serializers.ValidationError({'password': 'Password is required'})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop('password')
        branch = Branch(**validated_data)
        branch.set_password(password)
        branch.save()
        return branch

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance


class PublicBranchSerializer(serializers.ModelSerializer):
    class Meta:
        model = Branch
        fields = ['id', 'name', 'location', 'phone']


class PermissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Permission
        fields = ['id', 'name', 'description', 'category']


class RoleSerializer(serializers.ModelSerializer):
    permissions = serializers.SerializerMethodField()
    users_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = ['id', 'name', 'description', 'permissions', 'users_count', 'created_at']
        read_only_fields = ['created_at']

    def get_permissions(self, obj):
        return obj.permission_names()

    def get_users_count(self, obj):
        return obj.users.count()


class RolePermissionUpdateSerializer(serializers.Serializer):
    """Replace the full permission set of a role"""
    permissions = serializers.ListField(
        child=serializers.CharField(),
        allow_empty=True
    )

    def validate_permissions(self, value):
        names = set(value)
        found = set(Permission.objects.filter(name__in=names).values_list('name', flat=True))
        missing = names - found
        if missing:
            raise serializers.ValidationError(f"Unknown permissions: {', '.join(sorted(missing))}")
        return sorted(names)

    @transaction.atomic
    def save(self, role):
        names = self.validated_data['permissions']
        RolePermission.objects.filter(role=role).delete()
        RolePermission.objects.bulk_create([
            RolePermission(role=role, permission=permission)
            for permission in Permission.objects.filter(name__in=names)
        ])
        return role


class BusinessSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = BusinessSettings
        exclude = ['id']
        read_only_fields = ['created_at', 'updated_at']

    def validate_max_discount(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("Max discount must be between 0 and 100")
        return value

    def validate_exchange_rate(self, value):
        if value <= 0:
            raise serializers.ValidationError("Exchange rate must be positive")
        return value


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = [
            'id', 'user', 'username', 'action', 'entity_type', 'entity_id',
            'entity_name', 'description', 'changes', 'ip_address', 'user_agent',
            'branch', 'created_at'
        ]
