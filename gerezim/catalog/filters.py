import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Storefront/catalog filters: free-text search, category, status, type and sorting"""
    TYPE_FILTERS = {
        'opportunities': 'oportunidade',
        'products': 'produto',
    }
    SORT_OPTIONS = {
        'newest': ('-created_at', '-id'),
        'oldest': ('created_at', 'id'),
        'price_asc': ('price', 'id'),
        'price_desc': ('-price', 'id'),
    }

    search = django_filters.CharFilter(method='filter_search')
    category = django_filters.CharFilter(method='filter_category')
    status = django_filters.CharFilter(method='filter_status')
    type = django_filters.CharFilter(method='filter_type')
    sort = django_filters.CharFilter(method='filter_sort')
    min_price = django_filters.NumberFilter(field_name='price', lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name='price', lookup_expr='lte')

    class Meta:
        model = Product
        fields = ['search', 'category', 'status', 'type', 'sort', 'min_price', 'max_price']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(title__icontains=value) |
            Q(subtitle__icontains=value) |
            Q(description__icontains=value)
        )

    def filter_category(self, queryset, name, value):
        if not value or value == 'all':
            return queryset
        return queryset.filter(category=value)

    def filter_status(self, queryset, name, value):
        if not value or value == 'all':
            return queryset
        return queryset.filter(status=value)

    def filter_type(self, queryset, name, value):
        item_type = self.TYPE_FILTERS.get(value)
        if item_type is None:
            return queryset
        return queryset.filter(item_type=item_type)

    def filter_sort(self, queryset, name, value):
        ordering = self.SORT_OPTIONS.get(value)
        if ordering is None:
            return queryset
        return queryset.order_by(*ordering)
