from django.conf import settings
from django.db import models


class Insumo(models.Model):
    """
    A node of the file repository: either a folder or a file.
    Folders carry no file fields; files point at a blob through file_url.
    """
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    is_folder = models.BooleanField(default=False, db_index=True)
    parent = models.ForeignKey('self', on_delete=models.CASCADE, null=True, blank=True, related_name='children')
    file_url = models.URLField(max_length=1000, blank=True, null=True)
    file_type = models.CharField(max_length=100, blank=True, null=True)
    file_size = models.BigIntegerField(null=True, blank=True)
    product = models.ForeignKey('catalog.Product', on_delete=models.SET_NULL, null=True, blank=True, related_name='insumos')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='insumos')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.title}/" if self.is_folder else self.title

    @property
    def product_title(self):
        return self.product.title if self.product_id else None

    class Meta:
        db_table = 'insumos'
        ordering = ['-is_folder', 'title']
        indexes = [
            models.Index(fields=['parent', 'is_folder'], name='insumos_parent__4f1b7d_idx'),
        ]
