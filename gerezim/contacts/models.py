from django.conf import settings
from django.db import models


class Contact(models.Model):
    """CRM contact (buyer, seller or lead)"""
    STATUS_CHOICES = [
        ('novo', 'Novo'),
        ('quente', 'Quente'),
        ('morno', 'Morno'),
        ('frio', 'Frio'),
    ]

    name = models.CharField(max_length=200, db_index=True)
    phone = models.CharField(max_length=20, blank=True, null=True)
    email = models.EmailField(blank=True)
    source = models.CharField(max_length=100, blank=True, null=True)
    interests = models.TextField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='novo', db_index=True)
    avatar_url = models.URLField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='contacts')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'contacts'
        ordering = ['name']


class Interaction(models.Model):
    """A note about a conversation or event with a contact"""
    contact = models.ForeignKey(Contact, on_delete=models.CASCADE, related_name='interactions')
    content = models.TextField()
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='interactions')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.contact.name} - {self.created_at:%d/%m/%Y}"

    class Meta:
        db_table = 'interactions'
        ordering = ['-created_at']
