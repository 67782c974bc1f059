"""
Catalog services: product image upload and the favorites store.
"""
import logging
import time

from django.db import DatabaseError, IntegrityError

from gerezim.core.exceptions import FetchError, PersistenceError, ValidationError
from gerezim.core.notifications import ERROR, SUCCESS, log_notification
from gerezim.core.optimistic import toggle_membership_optimistically
from gerezim.core.storage import get_blob_storage
from .models import Favorite, Product

logger = logging.getLogger(__name__)

PRODUCT_IMAGES_BUCKET = 'product-images'


def upload_product_images(product, files, storage=None):
    """
    Upload image files for a product and append their public URLs to product.images.

    Each file is stored under <product_id>/<epoch-ms>-<name with spaces as _>.
    An upload failure stops the batch; images uploaded before it stay attached.

    Returns:
        List of public URLs of the uploaded images
    """
    if not files:
        raise ValidationError('Nenhuma imagem enviada')

    storage = storage or get_blob_storage(PRODUCT_IMAGES_BUCKET)
    urls = []
    try:
        for upload in files:
            filename = f"{int(time.time() * 1000)}-{upload.name.replace(' ', '_')}"
            path = storage.upload(f"{product.id}/{filename}", upload, getattr(upload, 'content_type', None))
            urls.append(storage.public_url(path))
    finally:
        if urls:
            product.images = list(product.images or []) + urls
            product.save(update_fields=['images', 'updated_at'])
            logger.info(f"Attached {len(urls)} image(s) to product {product.id}")
    return urls


class FavoriteClient:
    """Reads and writes favorites rows for one user"""

    def __init__(self, user):
        self.user = user

    def fetch_product_ids(self):
        try:
            return set(Favorite.objects.filter(user=self.user).values_list('product_id', flat=True))
        except DatabaseError as e:
            raise FetchError(f"Erro ao carregar favoritos: {str(e)}") from e

    def add(self, product_id):
        try:
            Favorite.objects.create(user=self.user, product_id=product_id)
        except (IntegrityError, DatabaseError) as e:
            raise PersistenceError(f"Erro ao favoritar: {str(e)}") from e

    def remove(self, product_id):
        try:
            Favorite.objects.filter(user=self.user, product_id=product_id).delete()
        except DatabaseError as e:
            raise PersistenceError(f"Erro ao remover favorito: {str(e)}") from e


class FavoritesStore:
    """The set of product ids a user has favorited, toggled optimistically"""

    def __init__(self, client, notify=None):
        self.client = client
        self.notify = notify or log_notification
        self.product_ids = set()

    def load(self):
        self.product_ids = self.client.fetch_product_ids()
        return self.product_ids

    def is_favorite(self, product_id):
        return product_id in self.product_ids

    def toggle(self, product_id):
        """
        Flip the favorite state of a product.

        Returns:
            True when the product is now a favorite
        Raises:
            PersistenceError: after restoring the previous state
        """
        def persist(added):
            if added:
                self.client.add(product_id)
            else:
                self.client.remove(product_id)
            return added

        try:
            added = toggle_membership_optimistically(self.product_ids, product_id, persist)
        except PersistenceError as e:
            self.notify(ERROR, f"Erro ao favoritar: {e.message}")
            raise
        self.notify(SUCCESS, 'Adicionado aos favoritos' if added else 'Removido dos favoritos')
        return added


def get_product_or_none(product_id):
    if product_id in (None, '', 'none'):
        return None
    return Product.objects.filter(pk=product_id).first()
