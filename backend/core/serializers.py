from rest_framework import serializers
from django.contrib.auth.models import Group
from django.contrib.auth.password_validation import validate_password
from .choices import ROLES
from .models import User, AuditLog
from .permissions import get_primary_role, get_user_roles


class UserSerializer(serializers.ModelSerializer):
    roles = serializers.SerializerMethodField()
    role = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'supplier', 'customer_id',
                  'roles', 'role', 'is_active', 'is_staff', 'created_at', 'updated_at', 'last_login']
        read_only_fields = ['created_at', 'updated_at', 'last_login', 'is_staff']

    def get_roles(self, obj):
        return get_user_roles(obj)

    def get_role(self, obj):
        return get_primary_role(obj)


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)
    role = serializers.ChoiceField(choices=ROLES, write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name',
                  'phone', 'supplier', 'customer_id', 'role']

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        role = validated_data.pop('role')
        user = User.objects.create(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
        return user


class UserUpdateSerializer(serializers.ModelSerializer):
    role = serializers.ChoiceField(choices=ROLES, write_only=True, required=False)

    class Meta:
        model = User
        fields = ['email', 'first_name', 'last_name', 'phone', 'supplier', 'customer_id', 'is_active', 'role']

    def update(self, instance, validated_data):
        role = validated_data.pop('role', None)
        instance = super().update(instance, validated_data)
        if role:
            instance.groups.remove(*Group.objects.filter(name__in=ROLES))
            group, _ = Group.objects.get_or_create(name=role)
            instance.groups.add(group)
        return instance


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, validators=[validate_password])
    confirm_password = serializers.CharField(write_only=True)

    def validate_current_password(self, value):
        if not self.context['request'].user.check_password(value):
            raise serializers.ValidationError("Current password is incorrect")
        return value

    def validate(self, attrs):
        if attrs['new_password'] != attrs['confirm_password']:
            raise serializers.ValidationError({"confirm_password": "Passwords don't match"})
        return attrs


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'username', 'user_role', 'action', 'entity_type', 'entity_id',
                  'entity_reference', 'old_values', 'new_values', 'additional_data',
                  'ip_address', 'user_agent', 'result', 'error_message', 'created_at']


class AuditReportRequestSerializer(serializers.Serializer):
    from_date = serializers.DateTimeField()
    to_date = serializers.DateTimeField()
    entity_type = serializers.CharField(required=False, allow_blank=True)
    action = serializers.CharField(required=False, allow_blank=True)
    user_id = serializers.IntegerField(required=False)
    include_successful = serializers.BooleanField(default=True)
    include_failed = serializers.BooleanField(default=True)
    group_by_user = serializers.BooleanField(default=True)
    group_by_action = serializers.BooleanField(default=True)
    group_by_entity_type = serializers.BooleanField(default=True)

    def validate(self, attrs):
        if attrs['from_date'] > attrs['to_date']:
            raise serializers.ValidationError({"to_date": "to_date must be after from_date"})
        return attrs
