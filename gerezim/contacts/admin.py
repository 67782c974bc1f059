from django.contrib import admin
from .models import Contact, Interaction


class InteractionInline(admin.TabularInline):
    model = Interaction
    extra = 0
    readonly_fields = ['created_by', 'created_at']


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone', 'email', 'source', 'status', 'created_at']
    list_filter = ['status', 'source']
    search_fields = ['name', 'phone', 'email', 'interests']
    ordering = ['name']
    inlines = [InteractionInline]
