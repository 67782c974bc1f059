"""
Backing-store gateway for the pipeline board.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from gerezim.catalog.models import Product
from gerezim.contacts.models import Contact
from gerezim.core.cache_utils import invalidate_dashboard_cache
from gerezim.core.exceptions import EnrichmentError, FetchError, NotFoundError, PersistenceError, ValidationError
from .models import Opportunity

logger = logging.getLogger(__name__)


@dataclass
class Card:
    id: int
    title: str
    pipeline_stage: str
    value: Decimal = Decimal('0')
    category: Optional[str] = None
    status: str = 'novo'
    notes: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    contact_id: Optional[int] = None
    product_id: Optional[int] = None
    created_at: Optional[datetime] = None
    # Display data filled in by enrichment
    contact_name: Optional[str] = None
    contact_avatar: Optional[str] = None
    product_title: Optional[str] = None
    product_thumbnail: Optional[str] = None

    @classmethod
    def from_model(cls, opportunity):
        return cls(
            id=opportunity.id,
            title=opportunity.title,
            pipeline_stage=opportunity.pipeline_stage,
            value=opportunity.value,
            category=opportunity.category,
            status=opportunity.status,
            notes=opportunity.notes,
            description=opportunity.description,
            location=opportunity.location,
            contact_id=opportunity.contact_id,
            product_id=opportunity.product_id,
            created_at=opportunity.created_at,
        )


class OpportunityClient:
    """ORM access to opportunities and the contacts/products they reference"""

    def __init__(self, user=None):
        self.user = user

    def close(self):
        pass

    def fetch_all(self):
        """Every opportunity, newest first, without display data"""
        try:
            return [Card.from_model(opportunity) for opportunity in Opportunity.objects.order_by('-created_at', '-id')]
        except DatabaseError as e:
            raise FetchError(f"Erro ao carregar oportunidades: {str(e)}") from e

    def fetch_contacts(self, ids):
        """{id: {'name', 'avatar_url'}} for a set of contact ids, in one query"""
        try:
            contacts = Contact.objects.only('id', 'name', 'avatar_url').in_bulk(list(ids))
        except DatabaseError as e:
            raise EnrichmentError(f"Erro ao carregar contatos: {str(e)}") from e
        return {pk: {'name': c.name, 'avatar_url': c.avatar_url} for pk, c in contacts.items()}

    def fetch_products(self, ids):
        """{id: {'title', 'thumbnail'}} for a set of product ids, in one query"""
        try:
            products = Product.objects.only('id', 'title', 'images').in_bulk(list(ids))
        except DatabaseError as e:
            raise EnrichmentError(f"Erro ao carregar produtos: {str(e)}") from e
        return {pk: {'title': p.title, 'thumbnail': p.thumbnail} for pk, p in products.items()}

    def _check_references(self, fields):
        """A card may only point at a contact or product that exists"""
        for key, model, label in (('contact_id', Contact, 'Contato'), ('product_id', Product, 'Produto')):
            pk = fields.get(key)
            if pk is None:
                continue
            try:
                exists = model.objects.filter(pk=pk).exists()
            except DatabaseError as e:
                raise PersistenceError(f"Erro ao validar {label.lower()}: {str(e)}") from e
            if not exists:
                raise ValidationError(f"{label} {pk} não encontrado")

    def insert(self, **fields):
        self._check_references(fields)
        try:
            opportunity = Opportunity.objects.create(created_by=self.user, **fields)
        except DatabaseError as e:
            raise PersistenceError(f"Erro ao criar: {str(e)}") from e
        return Card.from_model(opportunity)

    def update(self, card_id, **fields):
        self._check_references(fields)
        try:
            updated = Opportunity.objects.filter(pk=card_id).update(updated_at=timezone.now(), **fields)
        except DatabaseError as e:
            raise PersistenceError(f"Erro ao atualizar: {str(e)}") from e
        if not updated:
            raise NotFoundError(f"Oportunidade {card_id} não encontrada")
        # Queryset updates bypass post_save
        invalidate_dashboard_cache()

    def update_stage(self, card_id, stage):
        self.update(card_id, pipeline_stage=stage)

    def delete(self, card_id):
        try:
            deleted, _ = Opportunity.objects.filter(pk=card_id).delete()
        except DatabaseError as e:
            raise PersistenceError(f"Erro ao excluir: {str(e)}") from e
        if not deleted:
            raise NotFoundError(f"Oportunidade {card_id} não encontrada")
