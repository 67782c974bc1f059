"""
Backing-store gateway for the file repository.

InsumoClient wraps the Insumo table and the 'insumos' blob bucket. It returns
plain Node records and turns database/storage failures into the domain errors
the TreeStore expects.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.db import DatabaseError
from django.utils import timezone

from gerezim.core.exceptions import FetchError, NotFoundError, PersistenceError
from gerezim.core.storage import get_blob_storage
from .models import Insumo

logger = logging.getLogger(__name__)

INSUMOS_BUCKET = 'insumos'


@dataclass
class Node:
    id: int
    title: str
    is_folder: bool
    parent_id: Optional[int] = None
    description: str = ''
    file_url: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    product_id: Optional[int] = None
    product_title: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, insumo):
        return cls(
            id=insumo.id,
            title=insumo.title,
            is_folder=insumo.is_folder,
            parent_id=insumo.parent_id,
            description=insumo.description,
            file_url=insumo.file_url,
            file_type=insumo.file_type,
            file_size=insumo.file_size,
            product_id=insumo.product_id,
            product_title=insumo.product_title,
            created_at=insumo.created_at,
        )


class InsumoClient:
    """ORM + blob storage access for one request"""

    def __init__(self, user=None, storage=None):
        self.user = user
        self.storage = storage or get_blob_storage(INSUMOS_BUCKET)

    def close(self):
        self.storage = None

    def fetch_children(self, folder_id=None):
        try:
            queryset = Insumo.objects.filter(parent_id=folder_id).select_related('product')
            return [Node.from_model(insumo) for insumo in queryset]
        except DatabaseError as e:
            raise FetchError(f"Erro ao carregar insumos: {str(e)}") from e

    def fetch_node(self, node_id):
        try:
            return Node.from_model(Insumo.objects.select_related('product').get(pk=node_id))
        except Insumo.DoesNotExist:
            raise NotFoundError(f"Insumo {node_id} não encontrado")
        except DatabaseError as e:
            raise FetchError(f"Erro ao carregar insumo: {str(e)}") from e

    def insert_node(self, **fields):
        try:
            insumo = Insumo.objects.create(created_by=self.user, **fields)
        except DatabaseError as e:
            raise PersistenceError(f"Erro ao salvar insumo: {str(e)}") from e
        return Node.from_model(insumo)

    def update_node(self, node_id, **fields):
        try:
            updated = Insumo.objects.filter(pk=node_id).update(updated_at=timezone.now(), **fields)
        except DatabaseError as e:
            raise PersistenceError(f"Erro ao atualizar insumo: {str(e)}") from e
        if not updated:
            raise NotFoundError(f"Insumo {node_id} não encontrado")

    def delete_node(self, node_id):
        # Descendant rows go through the parent FK cascade
        try:
            deleted, _ = Insumo.objects.filter(pk=node_id).delete()
        except DatabaseError as e:
            raise PersistenceError(f"Erro ao excluir: {str(e)}") from e
        if not deleted:
            raise NotFoundError(f"Insumo {node_id} não encontrado")

    def upload_blob(self, blob_name, content, content_type=None):
        """Upload a file and return its public URL"""
        path = self.storage.upload(blob_name, content, content_type)
        return self.storage.public_url(path)

    def remove_blob(self, file_url):
        path = self.storage.path_from_url(file_url)
        if path:
            self.storage.remove([path])
