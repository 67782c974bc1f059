from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, Setting, AuditLog

PROFILE_EDITABLE = ('first_name', 'last_name', 'email', 'phone', 'avatar_url')


class UserSerializer(serializers.ModelSerializer):
    """Account as seen by administrators"""
    is_admin = serializers.BooleanField(read_only=True)
    full_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'full_name', 'phone',
                  'role', 'is_admin', 'avatar_url', 'is_active', 'last_login', 'created_at']
        read_only_fields = ['username', 'last_login', 'created_at']

    def get_full_name(self, obj):
        return obj.get_full_name() or obj.username


class ProfileSerializer(UserSerializer):
    """
    The logged-in user's own account. Only contact details are editable;
    the area flags tell the frontend which screens to show.
    """

    class Meta(UserSerializer.Meta):
        read_only_fields = [f for f in UserSerializer.Meta.fields if f not in PROFILE_EDITABLE]

    def to_representation(self, instance):
        data = super().to_representation(instance)
        # Catalog, contacts and insumos are open to everyone
        for area in ('pipeline', 'reports', 'settings'):
            data[f'can_access_{area}'] = instance.is_admin
        return data


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone']

    def validate_email(self, value):
        if value and User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Já existe uma conta com este e-mail')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs.pop('password_confirm'):
            raise serializers.ValidationError({'password_confirm': 'As senhas não coincidem'})
        return attrs

    def create(self, validated_data):
        # Self-registered accounts start as brokers; admins are promoted from the users screen
        return User.objects.create_user(role='user', **validated_data)


class SettingSerializer(serializers.ModelSerializer):

    class Meta:
        model = Setting
        fields = ['key', 'value', 'description', 'updated_at']
        read_only_fields = ['updated_at']

    def validate_key(self, value):
        key = value.strip().lower().replace(' ', '_')
        if not key:
            raise serializers.ValidationError('Chave obrigatória')
        return key


class AuditLogSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True, default=None)
    action_display = serializers.CharField(source='get_action_display', read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'username', 'action', 'action_display', 'model_name', 'object_id',
                  'object_name', 'changes', 'ip_address', 'created_at']
