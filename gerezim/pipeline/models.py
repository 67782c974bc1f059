from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal


class PipelineStage(models.TextChoices):
    """Funnel stages, in funnel order"""
    NEW = 'Novo', 'Novo'
    INTERESTED = 'Interessado', 'Interessado'
    PROPOSAL_SENT = 'Proposta enviada', 'Proposta Enviada'
    NEGOTIATION = 'Negociação', 'Em Negociação'
    CLOSED = 'Finalizado', 'Finalizado'


STAGE_ORDER = [stage.value for stage in PipelineStage]


class Opportunity(models.Model):
    """A prospective deal, shown as a card on the pipeline board"""
    CATEGORY_CHOICES = [
        ('carro', 'Carro'),
        ('imovel', 'Imóvel'),
        ('empresa', 'Empresa'),
        ('item_premium', 'Item Premium'),
    ]

    STATUS_CHOICES = [
        ('novo', 'Novo'),
        ('em_negociacao', 'Em negociação'),
        ('vendido', 'Vendido'),
    ]

    title = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, blank=True, null=True, db_index=True)
    value = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'), validators=[MinValueValidator(Decimal('0'))])
    pipeline_stage = models.CharField(max_length=30, choices=PipelineStage.choices, default=PipelineStage.NEW, db_index=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='novo', db_index=True)
    contact = models.ForeignKey('contacts.Contact', on_delete=models.SET_NULL, null=True, blank=True, related_name='opportunities')
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='opportunities')
    notes = models.TextField(blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    location = models.CharField(max_length=255, blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='opportunities')
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.title} ({self.pipeline_stage})"

    class Meta:
        db_table = 'opportunities'
        ordering = ['-created_at']
