from django.conf import settings
from django.db import models
from decimal import Decimal


class Product(models.Model):
    """An asset offered by the brokerage (vehicle, property, company, premium good)"""
    TYPE_CHOICES = [
        ('produto', 'Produto'),
        ('oportunidade', 'Oportunidade'),
    ]

    CATEGORY_CHOICES = [
        ('Carros de Luxo', 'Carros de Luxo'),
        ('Imóveis', 'Imóveis'),
        ('Empresas', 'Empresas'),
        ('Premium', 'Premium'),
        ('Eletrônicos', 'Eletrônicos'),
        ('Cartas Contempladas', 'Cartas Contempladas'),
        ('Indústrias', 'Indústrias'),
        ('Embarcações', 'Embarcações'),
    ]

    title = models.CharField(max_length=200, db_index=True)
    subtitle = models.CharField(max_length=255, blank=True, null=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    commission_percent = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, default='BRL')
    category = models.CharField(max_length=100, choices=CATEGORY_CHOICES, db_index=True)
    status = models.CharField(max_length=50, default='Ativo')
    item_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='produto')
    tags = models.JSONField(default=list, blank=True)
    stock = models.IntegerField(default=1)
    images = models.JSONField(default=list, blank=True)  # public URLs, first one is the thumbnail
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    @property
    def thumbnail(self):
        return self.images[0] if self.images else None

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']


class Favorite(models.Model):
    """A product bookmarked by a user"""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='favorites')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='favorites')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user} - {self.product}"

    class Meta:
        db_table = 'favorites'
        constraints = [
            models.UniqueConstraint(fields=['user', 'product'], name='unique_favorite_per_user'),
        ]
