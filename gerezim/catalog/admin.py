from django.contrib import admin
from .models import Product, Favorite


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'item_type', 'price', 'currency', 'status', 'stock', 'is_active', 'created_at']
    list_filter = ['category', 'item_type', 'status', 'is_active']
    search_fields = ['title', 'subtitle', 'description']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Favorite)
class FavoriteAdmin(admin.ModelAdmin):
    list_display = ['user', 'product', 'created_at']
    search_fields = ['user__username', 'product__title']
    ordering = ['-created_at']
