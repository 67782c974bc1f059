# Generated manually
import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(db_index=True, max_length=200)),
                ('subtitle', models.CharField(blank=True, max_length=255, null=True)),
                ('description', models.TextField(blank=True)),
                ('price', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('commission_percent', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ('currency', models.CharField(default='BRL', max_length=3)),
                ('category', models.CharField(choices=[('Carros de Luxo', 'Carros de Luxo'), ('Imóveis', 'Imóveis'), ('Empresas', 'Empresas'), ('Premium', 'Premium'), ('Eletrônicos', 'Eletrônicos'), ('Cartas Contempladas', 'Cartas Contempladas'), ('Indústrias', 'Indústrias'), ('Embarcações', 'Embarcações')], db_index=True, max_length=100)),
                ('status', models.CharField(default='Ativo', max_length=50)),
                ('item_type', models.CharField(choices=[('produto', 'Produto'), ('oportunidade', 'Oportunidade')], default='produto', max_length=20)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('stock', models.IntegerField(default=1)),
                ('images', models.JSONField(blank=True, default=list)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'products',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Favorite',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='favorites', to='catalog.product')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='favorites', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'favorites',
                'constraints': [models.UniqueConstraint(fields=('user', 'product'), name='unique_favorite_per_user')],
            },
        ),
    ]
