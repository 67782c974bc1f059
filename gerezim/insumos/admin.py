from django.contrib import admin
from .models import Insumo


@admin.register(Insumo)
class InsumoAdmin(admin.ModelAdmin):
    list_display = ['title', 'is_folder', 'parent', 'file_type', 'file_size', 'product', 'created_at']
    list_filter = ['is_folder', 'file_type']
    search_fields = ['title', 'description', 'product__title']
    raw_id_fields = ['parent', 'product']
    ordering = ['-is_folder', 'title']
