from django.contrib import admin
from .models import ConciergeFolder, ConciergeConversation, ConciergeMessage


@admin.register(ConciergeFolder)
class ConciergeFolderAdmin(admin.ModelAdmin):
    list_display = ['name', 'position', 'created_at']
    ordering = ['position']


class ConciergeMessageInline(admin.TabularInline):
    model = ConciergeMessage
    extra = 0
    readonly_fields = ['sender', 'content', 'created_at']


@admin.register(ConciergeConversation)
class ConciergeConversationAdmin(admin.ModelAdmin):
    list_display = ['title', 'folder', 'created_at', 'updated_at']
    list_filter = ['folder']
    search_fields = ['title']
    inlines = [ConciergeMessageInline]
