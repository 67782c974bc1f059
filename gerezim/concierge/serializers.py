from rest_framework import serializers
from .models import ConciergeFolder, ConciergeConversation, ConciergeMessage


class ConciergeFolderSerializer(serializers.ModelSerializer):
    class Meta:
        model = ConciergeFolder
        fields = ['id', 'name', 'position', 'created_at']
        read_only_fields = ['position', 'created_at']

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('Digite o nome da pasta')
        return value.strip()


class ConciergeConversationSerializer(serializers.ModelSerializer):
    class Meta:
        model = ConciergeConversation
        fields = ['id', 'title', 'folder', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_title(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('Digite o título da conversa')
        return value.strip()


class ConciergeMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ConciergeMessage
        fields = ['id', 'conversation', 'content', 'sender', 'created_at']
        read_only_fields = ['conversation', 'sender', 'created_at']


class FolderReorderSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class WebhookSettingSerializer(serializers.Serializer):
    url = serializers.URLField(allow_blank=True)
