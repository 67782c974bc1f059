from django.conf import settings
from django.db import models


class ConciergeFolder(models.Model):
    """Sidebar folder grouping concierge conversations; ordered by position"""
    name = models.CharField(max_length=100)
    position = models.PositiveIntegerField(default=0, db_index=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='concierge_folders')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'concierge_folders'
        ordering = ['position', 'id']


class ConciergeConversation(models.Model):
    title = models.CharField(max_length=255)
    folder = models.ForeignKey(ConciergeFolder, on_delete=models.SET_NULL, null=True, blank=True, related_name='conversations')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='concierge_conversations')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'concierge_conversations'
        ordering = ['-updated_at']


class ConciergeMessage(models.Model):
    SENDER_CHOICES = [
        ('user', 'Usuário'),
        ('bot', 'Concierge'),
    ]

    conversation = models.ForeignKey(ConciergeConversation, on_delete=models.CASCADE, related_name='messages')
    content = models.TextField()
    sender = models.CharField(max_length=10, choices=SENDER_CHOICES)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.sender}: {self.content[:50]}"

    class Meta:
        db_table = 'concierge_messages'
        ordering = ['created_at', 'id']
