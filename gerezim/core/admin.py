from django.contrib import admin, messages
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, Setting, AuditLog


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'get_full_name', 'email', 'role', 'is_active', 'last_login']
    list_filter = ['role', 'is_active']
    search_fields = ['username', 'email', 'first_name', 'last_name', 'phone']
    actions = ['promote_to_admin', 'demote_to_broker']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Gerezim', {'fields': ('role', 'phone', 'avatar_url')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Gerezim', {'fields': ('role', 'phone')}),
    )

    @admin.action(description='Tornar administrador')
    def promote_to_admin(self, request, queryset):
        updated = queryset.update(role='adm')
        self.message_user(request, f'{updated} usuário(s) agora são administradores.', messages.SUCCESS)

    @admin.action(description='Tornar corretor')
    def demote_to_broker(self, request, queryset):
        updated = queryset.exclude(pk=request.user.pk).update(role='user')
        self.message_user(request, f'{updated} usuário(s) agora são corretores.', messages.SUCCESS)


@admin.register(Setting)
class SettingAdmin(admin.ModelAdmin):
    list_display = ['key', 'value', 'description', 'updated_at']
    list_editable = ['value']
    search_fields = ['key']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'user', 'action', 'model_name', 'object_name']
    list_filter = ['action', 'model_name']
    search_fields = ['object_name', 'object_id', 'user__username']
    date_hierarchy = 'created_at'
    list_select_related = ['user']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
