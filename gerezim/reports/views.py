import logging
from decimal import Decimal
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.conf import settings
from django.db import DatabaseError
from django.db.models import F

from gerezim.catalog.models import Product
from gerezim.contacts.models import Contact
from gerezim.core.cache_utils import get_cached_dashboard, cache_dashboard, get_cached_report, cache_report
from gerezim.core.exceptions import FetchError, GerezimError
from gerezim.core.permissions import IsAdminRole
from gerezim.core.utils import error_response
from gerezim.pipeline.models import Opportunity
from . import aggregator

logger = logging.getLogger(__name__)


def fetch_opportunity_records():
    """Opportunity rows as the plain dicts the aggregator works on"""
    try:
        return list(
            Opportunity.objects.order_by('created_at', 'id').values(
                'id', 'title', 'category', 'value', 'created_at', 'pipeline_stage', 'status',
                'product_id', product_title=F('product__title'),
            )
        )
    except DatabaseError as e:
        raise FetchError(f"Erro ao carregar oportunidades: {str(e)}") from e


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    """
    Dashboard metrics for ?range= (7d, 30d, 90d, 365d or all; default 30d):
    KPIs, category totals and averages, time series, stage/status counts,
    funnel conversion, value ranges and top products
    """
    range_key = request.query_params.get('range', aggregator.DEFAULT_RANGE)
    if range_key not in aggregator.RANGES:
        return Response(
            {'error': f"Período inválido. Use um de: {', '.join(aggregator.RANGES)}"},
            status=status.HTTP_400_BAD_REQUEST
        )

    cached_data, cache_key = get_cached_dashboard(range_key, request.user.id)
    if cached_data is not None:
        return Response(cached_data)

    try:
        records = fetch_opportunity_records()
        products = list(
            Product.objects.filter(is_active=True).order_by('-created_at').values('id', 'title', 'price', 'category')
        )
        contacts_count = Contact.objects.count()
    except GerezimError as e:
        logger.error(f"Dashboard fetch failed: {e.message}")
        return error_response(e)
    except DatabaseError as e:
        logger.error(f"Dashboard fetch failed: {str(e)}")
        return error_response(FetchError(f"Erro ao carregar dados: {str(e)}"))

    data = aggregator.build_dashboard(records, products, contacts_count, range_key)
    cache_dashboard(cache_key, data)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def sales_report(request):
    """Sold opportunities, their total value and the estimated commission"""
    cached_data, cache_key = get_cached_report('sales', request.user.id)
    if cached_data is not None:
        return Response(cached_data)

    try:
        records = fetch_opportunity_records()
    except GerezimError as e:
        logger.error(f"Sales report fetch failed: {e.message}")
        return error_response(e)

    commission_rate = Decimal(str(settings.REPORTS_COMMISSION_RATE))
    data = aggregator.sales_report(records, commission_rate)
    data['top_by_sales'] = aggregator.top_by_sales(records)
    cache_report(cache_key, data)
    return Response(data)
