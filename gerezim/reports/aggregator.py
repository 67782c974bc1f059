"""
Dashboard aggregations.

Pure functions folding opportunity records (plain dicts) into chart-ready
buckets. Nothing here touches the database; the views fetch the rows and pass
them in. Monetary values are summed as Decimal.

Record keys used: category, value, created_at, pipeline_stage, status,
product_id, product_title, title.
"""
from collections import Counter
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from gerezim.core.exceptions import ValidationError
from gerezim.pipeline.models import PipelineStage, STAGE_ORDER

KNOWN_CATEGORIES = ('carro', 'imovel', 'empresa', 'item_premium')
UNCATEGORIZED = 'sem_categoria'

KNOWN_STATUSES = ('novo', 'em_negociacao', 'vendido')

# Days covered by each range, None meaning every record
RANGES = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '365d': 365,
    'all': None,
}
DEFAULT_RANGE = '30d'

FUNNEL_PAIRS = list(zip(STAGE_ORDER, STAGE_ORDER[1:]))

# (label, lower bound inclusive, upper bound exclusive or None)
VALUE_BINS = [
    ('Até R$ 100 mil', Decimal('0'), Decimal('100000')),
    ('R$ 100 mil - 500 mil', Decimal('100000'), Decimal('500000')),
    ('R$ 500 mil - 1 mi', Decimal('500000'), Decimal('1000000')),
    ('R$ 1 mi - 5 mi', Decimal('1000000'), Decimal('5000000')),
    ('Acima de R$ 5 mi', Decimal('5000000'), None),
]

CLOSED_STAGE = PipelineStage.CLOSED.value
SOLD_STATUS = 'vendido'
NEGOTIATION_STATUS = 'em_negociacao'

CENTS = Decimal('0.01')


def to_decimal(value):
    if value is None or value == '':
        return Decimal('0')
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal('0')


def to_date(value):
    """Calendar date (in the current time zone) of a datetime, date or ISO string"""
    if value is None:
        return None
    if isinstance(value, str):
        parsed = parse_datetime(value)
        value = parsed if parsed is not None else parse_date(value)
        if value is None:
            return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _today(now=None):
    return to_date(now) if now is not None else timezone.localdate()


def _range_days(range_key):
    if range_key not in RANGES:
        raise ValidationError(f"Período inválido: {range_key}")
    return RANGES[range_key]


def category_rollup(records, known=KNOWN_CATEGORIES):
    """
    Count and total value per category.

    Known categories come first, in their fixed order and even when empty;
    other categories follow in the order they first appear. Records without a
    category are reported under 'sem_categoria'.
    """
    totals = {category: {'category': category, 'count': 0, 'value': Decimal('0')} for category in known}
    for record in records:
        category = record.get('category') or UNCATEGORIZED
        bucket = totals.setdefault(category, {'category': category, 'count': 0, 'value': Decimal('0')})
        bucket['count'] += 1
        bucket['value'] += to_decimal(record.get('value'))
    return list(totals.values())


def average_value_by_category(records):
    return [
        {'category': bucket['category'], 'avg_value': (bucket['value'] / bucket['count']).quantize(CENTS)}
        for bucket in category_rollup(records)
        if bucket['count']
    ]


def filter_by_range(records, range_key, now=None):
    """Records created within the range, ending today. Records without a date are dropped."""
    days = _range_days(range_key)
    today = _today(now)
    start = None if days is None else today - timedelta(days=days - 1)
    selected = []
    for record in records:
        created = to_date(record.get('created_at'))
        if created is None or created > today:
            continue
        if start is not None and created < start:
            continue
        selected.append(record)
    return selected


def _month_starts(first, last):
    current = first.replace(day=1)
    while current <= last:
        yield current
        if current.month == 12:
            current = current.replace(year=current.year + 1, month=1)
        else:
            current = current.replace(month=current.month + 1)


def time_series(records, range_key, now=None):
    """
    Count and value per period, in chronological order.

    7d gives exactly seven day buckets ending today. Every other range gives one
    bucket per month, from the month the range starts in (the earliest record's
    month for 'all') up to the current month.
    """
    days = _range_days(range_key)
    today = _today(now)
    selected = filter_by_range(records, range_key, now=today)

    if range_key == '7d':
        starts = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
        label_format = '%d/%m'

        def bucket_key(day):
            return day
    else:
        if days is None:
            dates = [to_date(record.get('created_at')) for record in selected]
            first = min(dates) if dates else today
        else:
            first = today - timedelta(days=days - 1)
        starts = list(_month_starts(first, today))
        label_format = '%m/%Y'

        def bucket_key(day):
            return day.replace(day=1)

    buckets = {
        start: {'label': start.strftime(label_format), 'start': start.isoformat(), 'count': 0, 'value': Decimal('0')}
        for start in starts
    }
    for record in selected:
        bucket = buckets.get(bucket_key(to_date(record.get('created_at'))))
        if bucket is None:
            continue
        bucket['count'] += 1
        bucket['value'] += to_decimal(record.get('value'))
    return list(buckets.values())


def stage_distribution(records):
    counts = Counter(record.get('pipeline_stage') for record in records)
    return [
        {'stage': stage, 'label': PipelineStage(stage).label, 'count': counts[stage]}
        for stage in STAGE_ORDER
    ]


def status_distribution(records):
    counts = Counter(record.get('status') or 'novo' for record in records)
    statuses = list(KNOWN_STATUSES) + [status for status in counts if status not in KNOWN_STATUSES]
    return [{'status': status, 'count': counts[status]} for status in statuses]


def funnel_conversion(records):
    """
    Conversion between adjacent stages: count(later) / count(earlier) * 100.
    Pairs with a zero ratio, including those with no earlier records, are left out.
    """
    counts = Counter(record.get('pipeline_stage') for record in records)
    conversions = []
    for earlier, later in FUNNEL_PAIRS:
        ratio = round(counts[later] / counts[earlier] * 100, 2) if counts[earlier] else 0
        if not ratio:
            continue
        conversions.append({
            'label': f"{PipelineStage(earlier).label} → {PipelineStage(later).label}",
            'from': earlier,
            'to': later,
            'ratio': ratio,
        })
    return conversions


def value_histogram(records, bins=VALUE_BINS):
    """Number of records per value range; empty ranges are left out"""
    counts = [0] * len(bins)
    for record in records:
        value = to_decimal(record.get('value'))
        for index, (_, low, high) in enumerate(bins):
            if value >= low and (high is None or value < high):
                counts[index] += 1
                break
    return [
        {'label': label, 'count': count}
        for (label, _, _), count in zip(bins, counts)
        if count
    ]


def top_by_price(products, n=5):
    """Most expensive products; equal prices keep their input order"""
    return sorted(products, key=lambda product: to_decimal(product.get('price')), reverse=True)[:n]


def is_closed(record):
    return record.get('pipeline_stage') == CLOSED_STAGE or record.get('status') == SOLD_STATUS


def top_by_sales(records, n=5):
    """
    Products with the most closed opportunities. Records without a product are
    grouped by title. Equal counts keep the order in which the product first appears.
    """
    groups = {}
    for record in records:
        if not is_closed(record):
            continue
        product_id = record.get('product_id')
        key = ('product', product_id) if product_id else ('title', record.get('title'))
        group = groups.setdefault(key, {
            'product_id': product_id,
            'title': record.get('product_title') or record.get('title'),
            'sales': 0,
            'value': Decimal('0'),
        })
        group['sales'] += 1
        group['value'] += to_decimal(record.get('value'))
    return sorted(groups.values(), key=lambda group: group['sales'], reverse=True)[:n]


def summary_kpis(records, contacts_count=0):
    return {
        'opportunities_count': len(records),
        'contacts_count': contacts_count,
        'total_value': sum((to_decimal(r.get('value')) for r in records), Decimal('0')),
        'negotiation_value': sum(
            (to_decimal(r.get('value')) for r in records if r.get('status') == NEGOTIATION_STATUS),
            Decimal('0')
        ),
    }


def sales_report(records, commission_rate=Decimal('0.05')):
    """Items sold, their total value and the estimated commission on it"""
    rate = to_decimal(commission_rate)
    sold = [record for record in records if record.get('status') == SOLD_STATUS]
    total = sum((to_decimal(record.get('value')) for record in sold), Decimal('0'))
    return {
        'items_sold': len(sold),
        'total_sold_value': total,
        'commission_rate': rate,
        'estimated_commission': (total * rate).quantize(CENTS),
    }


def build_dashboard(records, products=(), contacts_count=0, range_key=DEFAULT_RANGE, now=None):
    """Every dashboard aggregation for the records created within range_key"""
    in_range = filter_by_range(records, range_key, now=now)
    return {
        'range': range_key,
        'summary': summary_kpis(in_range, contacts_count),
        'categories': category_rollup(in_range),
        'average_by_category': average_value_by_category(in_range),
        'time_series': time_series(records, range_key, now=now),
        'stages': stage_distribution(in_range),
        'statuses': status_distribution(in_range),
        'funnel': funnel_conversion(in_range),
        'value_ranges': value_histogram(in_range),
        'top_by_price': top_by_price(list(products)),
        'top_by_sales': top_by_sales(in_range),
    }
