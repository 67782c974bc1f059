from rest_framework import serializers
from gerezim.catalog.services import get_product_or_none
from gerezim.core.exceptions import ValidationError
from gerezim.core.utils import parse_optional_id


class InsumoSerializer(serializers.Serializer):
    """Read-only representation shared by Insumo rows and tree Nodes"""
    id = serializers.IntegerField(read_only=True)
    title = serializers.CharField(read_only=True)
    description = serializers.CharField(read_only=True)
    is_folder = serializers.BooleanField(read_only=True)
    parent_id = serializers.IntegerField(read_only=True, allow_null=True)
    file_url = serializers.CharField(read_only=True, allow_null=True)
    file_type = serializers.CharField(read_only=True, allow_null=True)
    file_size = serializers.IntegerField(read_only=True, allow_null=True)
    product_id = serializers.IntegerField(read_only=True, allow_null=True)
    product_title = serializers.CharField(read_only=True, allow_null=True)
    created_at = serializers.DateTimeField(read_only=True)


class OptionalIdField(serializers.CharField):
    """Integer id where '', 'none' and null mean no reference"""

    def __init__(self, **kwargs):
        kwargs.setdefault('allow_blank', True)
        kwargs.setdefault('allow_null', True)
        super().__init__(**kwargs)

    def to_internal_value(self, data):
        try:
            return parse_optional_id(super().to_internal_value(data))
        except ValidationError as e:
            raise serializers.ValidationError(e.message)

    def run_validation(self, data=serializers.empty):
        if data == '':
            return None
        return super().run_validation(data)


class InsumoCreateSerializer(serializers.Serializer):
    mode = serializers.ChoiceField(choices=['folder', 'file'], default='file')
    title = serializers.CharField(allow_blank=True, required=False, default='')
    description = serializers.CharField(allow_blank=True, required=False, default='')
    parent = OptionalIdField(required=False, default=None)
    product = OptionalIdField(required=False, default=None)
    file = serializers.FileField(required=False, allow_null=True, default=None)

    def validate_product(self, value):
        if value is not None and get_product_or_none(value) is None:
            raise serializers.ValidationError('Produto não encontrado')
        return value


class InsumoRenameSerializer(serializers.Serializer):
    title = serializers.CharField(allow_blank=True)


class InsumoMoveSerializer(serializers.Serializer):
    parent = OptionalIdField()
