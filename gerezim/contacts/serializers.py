from rest_framework import serializers
from .models import Contact, Interaction


class InteractionSerializer(serializers.ModelSerializer):
    created_by_name = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Interaction
        fields = ['id', 'contact', 'content', 'created_by_name', 'created_at']
        read_only_fields = ['contact', 'created_at']

    def validate_content(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('O conteúdo é obrigatório')
        return value.strip()


class ContactSerializer(serializers.ModelSerializer):
    interactions_count = serializers.IntegerField(source='interactions.count', read_only=True)

    class Meta:
        model = Contact
        fields = ['id', 'name', 'phone', 'email', 'source', 'interests', 'status', 'avatar_url',
                  'interactions_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        if not value or not value.strip():
            raise serializers.ValidationError('O nome é obrigatório')
        return value.strip()
