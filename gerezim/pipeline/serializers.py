from decimal import Decimal
from rest_framework import serializers
from .models import Opportunity, PipelineStage


class OpportunitySerializer(serializers.ModelSerializer):
    contact_name = serializers.CharField(source='contact.name', read_only=True, default=None)
    product_title = serializers.CharField(source='product.title', read_only=True, default=None)
    stage_label = serializers.CharField(source='get_pipeline_stage_display', read_only=True)

    class Meta:
        model = Opportunity
        fields = ['id', 'title', 'category', 'value', 'pipeline_stage', 'stage_label', 'status',
                  'contact', 'contact_name', 'product', 'product_title', 'notes', 'description',
                  'location', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class CardSerializer(serializers.Serializer):
    """Board card with its contact/product display data"""
    id = serializers.IntegerField(read_only=True)
    title = serializers.CharField(read_only=True)
    category = serializers.CharField(read_only=True, allow_null=True)
    value = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    pipeline_stage = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    notes = serializers.CharField(read_only=True, allow_null=True)
    description = serializers.CharField(read_only=True, allow_null=True)
    location = serializers.CharField(read_only=True, allow_null=True)
    contact_id = serializers.IntegerField(read_only=True, allow_null=True)
    contact_name = serializers.CharField(read_only=True, allow_null=True)
    contact_avatar = serializers.CharField(read_only=True, allow_null=True)
    product_id = serializers.IntegerField(read_only=True, allow_null=True)
    product_title = serializers.CharField(read_only=True, allow_null=True)
    product_thumbnail = serializers.CharField(read_only=True, allow_null=True)
    created_at = serializers.DateTimeField(read_only=True)


class CardMoveSerializer(serializers.Serializer):
    stage = serializers.CharField()


class CardFieldsSerializer(serializers.Serializer):
    """
    Writable card fields. Bounds follow the Opportunity columns, so anything
    accepted here can be stored and read back.
    """
    title = serializers.CharField(max_length=255)
    value = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))
    category = serializers.ChoiceField(choices=Opportunity.CATEGORY_CHOICES, required=False, allow_null=True, allow_blank=True)
    status = serializers.ChoiceField(choices=Opportunity.STATUS_CHOICES, required=False)
    pipeline_stage = serializers.ChoiceField(choices=PipelineStage.choices, required=False)
    notes = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    location = serializers.CharField(max_length=255, required=False, allow_null=True, allow_blank=True)
