import django_filters
from django.db.models import Q
from .models import Contact


class ContactFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.ChoiceFilter(choices=Contact.STATUS_CHOICES)
    source = django_filters.CharFilter(field_name='source', lookup_expr='iexact')

    class Meta:
        model = Contact
        fields = ['search', 'status', 'source']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(phone__icontains=value) |
            Q(email__icontains=value) |
            Q(interests__icontains=value)
        )
