from rest_framework import serializers
from .models import Product, Favorite


class ProductSerializer(serializers.ModelSerializer):
    thumbnail = serializers.CharField(read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'title', 'subtitle', 'description', 'price', 'commission_percent', 'currency',
                  'category', 'status', 'item_type', 'tags', 'stock', 'images', 'thumbnail',
                  'is_active', 'created_at', 'updated_at']
        read_only_fields = ['images', 'created_at', 'updated_at']

    def validate_title(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('O título é obrigatório')
        return value.strip()

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError('O preço não pode ser negativo')
        return value

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError('Tags devem ser uma lista de textos')
        return value


class ProductListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list and storefront views"""
    thumbnail = serializers.CharField(read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'title', 'subtitle', 'price', 'currency', 'category', 'status',
                  'item_type', 'tags', 'thumbnail', 'created_at']


class FavoriteSerializer(serializers.ModelSerializer):
    product = ProductListSerializer(read_only=True)

    class Meta:
        model = Favorite
        fields = ['id', 'product', 'created_at']
