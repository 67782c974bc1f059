"""
Test suite for Reports module
Tests: dashboard aggregations, range bucketing, dashboard/sales endpoints and caching
"""
from datetime import date
from decimal import Decimal
from unittest import mock
from django.core.cache import cache
from django.test import TestCase, SimpleTestCase
from rest_framework import status
from gerezim.core.exceptions import ValidationError
from gerezim.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gerezim.pipeline.models import PipelineStage
from gerezim.reports import aggregator

TODAY = date(2026, 3, 15)


def record(category='carro', value='100', created_at=TODAY, stage=PipelineStage.NEW, status='novo', **extra):
    data = {
        'category': category,
        'value': Decimal(value),
        'created_at': created_at,
        'pipeline_stage': stage,
        'status': status,
        'product_id': None,
        'product_title': None,
        'title': 'Oportunidade',
    }
    data.update(extra)
    return data


class CategoryAggregationTests(SimpleTestCase):

    def test_rollup_and_average(self):
        records = [record(value='100'), record(value='300')]
        rollup = {bucket['category']: bucket for bucket in aggregator.category_rollup(records)}
        self.assertEqual(rollup['carro']['count'], 2)
        self.assertEqual(rollup['carro']['value'], Decimal('400'))
        self.assertEqual(rollup['imovel']['count'], 0)

        averages = aggregator.average_value_by_category(records)
        self.assertEqual(averages, [{'category': 'carro', 'avg_value': Decimal('200.00')}])

    def test_rollup_counts_every_record(self):
        records = [record(), record(category=None), record(category=''), record(category='barco'), record(category='imovel')]
        rollup = aggregator.category_rollup(records)
        self.assertEqual(sum(bucket['count'] for bucket in rollup), len(records))
        categories = [bucket['category'] for bucket in rollup]
        self.assertEqual(categories[:4], list(aggregator.KNOWN_CATEGORIES))
        self.assertEqual(categories[4:], [aggregator.UNCATEGORIZED, 'barco'])
        self.assertEqual(rollup[4]['count'], 2)

    def test_average_skips_empty_categories(self):
        averages = aggregator.average_value_by_category([record(category='empresa', value='10')])
        self.assertEqual([a['category'] for a in averages], ['empresa'])

    def test_empty_input(self):
        self.assertEqual(aggregator.average_value_by_category([]), [])
        self.assertTrue(all(bucket['count'] == 0 for bucket in aggregator.category_rollup([])))


class TimeSeriesTests(SimpleTestCase):

    def test_seven_day_buckets(self):
        records = [
            record(created_at=TODAY),
            record(created_at=date(2026, 3, 9), value='50'),
            record(created_at=date(2026, 3, 8)),
        ]
        series = aggregator.time_series(records, '7d', now=TODAY)
        self.assertEqual(len(series), 7)
        starts = [bucket['start'] for bucket in series]
        self.assertEqual(starts, sorted(set(starts)))
        self.assertEqual(series[0]['label'], '09/03')
        self.assertEqual(series[-1]['label'], '15/03')
        self.assertEqual(series[0]['count'], 1)
        self.assertEqual(series[0]['value'], Decimal('50'))
        self.assertEqual(sum(bucket['count'] for bucket in series), 2)

    def test_month_buckets(self):
        records = [
            record(created_at=date(2026, 2, 20)),
            record(created_at=date(2026, 2, 10)),
            record(created_at=date(2026, 3, 1)),
        ]
        series = aggregator.time_series(records, '30d', now=TODAY)
        self.assertEqual([bucket['label'] for bucket in series], ['02/2026', '03/2026'])
        self.assertEqual([bucket['count'] for bucket in series], [1, 1])

    def test_all_starts_at_earliest_record(self):
        records = [record(created_at=date(2025, 11, 5)), record(created_at=date(2026, 3, 1))]
        series = aggregator.time_series(records, 'all', now=TODAY)
        self.assertEqual(
            [bucket['label'] for bucket in series],
            ['11/2025', '12/2025', '01/2026', '02/2026', '03/2026']
        )

    def test_unknown_range(self):
        with self.assertRaises(ValidationError):
            aggregator.time_series([], '2w', now=TODAY)
        with self.assertRaises(ValidationError):
            aggregator.filter_by_range([], 'forever', now=TODAY)

    def test_filter_by_range(self):
        records = [
            record(created_at=TODAY),
            record(created_at=date(2026, 3, 16)),
            record(created_at=date(2025, 1, 1)),
            record(created_at=None),
            record(created_at='2026-03-10T10:00:00'),
        ]
        self.assertEqual(len(aggregator.filter_by_range(records, '30d', now=TODAY)), 2)
        self.assertEqual(len(aggregator.filter_by_range(records, 'all', now=TODAY)), 3)


class DistributionTests(SimpleTestCase):

    def test_stage_and_status_distribution(self):
        records = [record(stage=PipelineStage.CLOSED, status='vendido'), record()]
        stages = aggregator.stage_distribution(records)
        self.assertEqual([s['stage'] for s in stages], [s.value for s in PipelineStage])
        self.assertEqual(stages[-1]['count'], 1)
        statuses = {s['status']: s['count'] for s in aggregator.status_distribution(records)}
        self.assertEqual(statuses, {'novo': 1, 'em_negociacao': 0, 'vendido': 1})

    def test_funnel_skips_zero_ratios(self):
        records = (
            [record(stage=PipelineStage.NEW)] * 4
            + [record(stage=PipelineStage.INTERESTED)] * 2
            + [record(stage=PipelineStage.NEGOTIATION)]
        )
        funnel = aggregator.funnel_conversion(records)
        self.assertEqual(len(funnel), 1)
        self.assertEqual(funnel[0]['from'], PipelineStage.NEW)
        self.assertEqual(funnel[0]['to'], PipelineStage.INTERESTED)
        self.assertEqual(funnel[0]['ratio'], 50.0)
        self.assertEqual(funnel[0]['label'], 'Novo → Interessado')

    def test_funnel_rounds_ratio(self):
        records = [record(stage=PipelineStage.NEW)] * 3 + [record(stage=PipelineStage.INTERESTED)]
        self.assertEqual(aggregator.funnel_conversion(records)[0]['ratio'], 33.33)

    def test_value_histogram_skips_empty_bins(self):
        records = [record(value='50000'), record(value='200000'), record(value='250000'), record(value='6000000')]
        histogram = aggregator.value_histogram(records)
        self.assertEqual(
            [(h['label'], h['count']) for h in histogram],
            [('Até R$ 100 mil', 1), ('R$ 100 mil - 500 mil', 2), ('Acima de R$ 5 mi', 1)]
        )

    def test_bin_boundaries(self):
        histogram = aggregator.value_histogram([record(value='100000'), record(value='5000000')])
        self.assertEqual([h['label'] for h in histogram], ['R$ 100 mil - 500 mil', 'Acima de R$ 5 mi'])


class RankingTests(SimpleTestCase):

    def test_top_by_price_is_stable(self):
        products = [
            {'id': 1, 'price': Decimal('10')},
            {'id': 2, 'price': Decimal('50')},
            {'id': 3, 'price': Decimal('10')},
            {'id': 4, 'price': Decimal('50')},
        ]
        self.assertEqual([p['id'] for p in aggregator.top_by_price(products, n=3)], [2, 4, 1])
        self.assertEqual(aggregator.top_by_price([]), [])

    def test_top_by_sales(self):
        records = [
            record(stage=PipelineStage.CLOSED, product_id=1, product_title='Porsche', value='10'),
            record(status='vendido', product_id=2, product_title='Iate', value='30'),
            record(status='vendido', product_id=2, product_title='Iate', value='20'),
            record(stage=PipelineStage.CLOSED, title='Relógio avulso'),
            record(product_id=3, product_title='Aberta'),
        ]
        top = aggregator.top_by_sales(records)
        self.assertEqual([t['title'] for t in top], ['Iate', 'Porsche', 'Relógio avulso'])
        self.assertEqual(top[0]['sales'], 2)
        self.assertEqual(top[0]['value'], Decimal('50'))

    def test_sales_report(self):
        records = [
            record(status='vendido', value='100000'),
            record(status='vendido', value='50000'),
            record(status='em_negociacao', value='999'),
        ]
        report = aggregator.sales_report(records, Decimal('0.05'))
        self.assertEqual(report['items_sold'], 2)
        self.assertEqual(report['total_sold_value'], Decimal('150000'))
        self.assertEqual(report['estimated_commission'], Decimal('7500.00'))

    def test_summary_kpis(self):
        records = [record(value='10', status='em_negociacao'), record(value='5')]
        summary = aggregator.summary_kpis(records, contacts_count=3)
        self.assertEqual(summary['opportunities_count'], 2)
        self.assertEqual(summary['total_value'], Decimal('15'))
        self.assertEqual(summary['negotiation_value'], Decimal('10'))
        self.assertEqual(summary['contacts_count'], 3)

    def test_build_dashboard_keys(self):
        data = aggregator.build_dashboard([record()], [], 0, '7d', now=TODAY)
        self.assertEqual(set(data), {
            'range', 'summary', 'categories', 'average_by_category', 'time_series', 'stages',
            'statuses', 'funnel', 'value_ranges', 'top_by_price', 'top_by_sales',
        })
        self.assertEqual(data['summary']['opportunities_count'], 1)


class ReportAPITests(TestCase):

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        TestDataFactory.create_contact()
        TestDataFactory.create_opportunity(value=Decimal('100'), category='carro')
        TestDataFactory.create_opportunity(value=Decimal('300'), category='carro', status='em_negociacao')
        TestDataFactory.create_opportunity(value=Decimal('900'), category='imovel', created_at=TestDataFactory.days_ago(400))

    def tearDown(self):
        cache.clear()

    def test_dashboard_default_range(self):
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['range'], '30d')
        summary = response.data['summary']
        self.assertEqual(summary['opportunities_count'], 2)
        self.assertEqual(summary['contacts_count'], 1)
        self.assertEqual(summary['negotiation_value'], Decimal('300'))
        self.assertEqual(response.data['average_by_category'], [{'category': 'carro', 'avg_value': Decimal('200.00')}])

    def test_dashboard_all_range(self):
        response = self.client.get('/api/v1/reports/dashboard/', {'range': 'all'})
        self.assertEqual(response.data['summary']['opportunities_count'], 3)
        self.assertGreaterEqual(len(response.data['time_series']), 13)

    def test_dashboard_invalid_range(self):
        response = self.client.get('/api/v1/reports/dashboard/', {'range': '2w'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dashboard_requires_auth(self):
        self.client.logout()
        response = self.client.get('/api/v1/reports/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_dashboard_is_cached_until_data_changes(self):
        with mock.patch('gerezim.reports.views.aggregator.build_dashboard', wraps=aggregator.build_dashboard) as build:
            self.client.get('/api/v1/reports/dashboard/')
            self.client.get('/api/v1/reports/dashboard/')
            self.assertEqual(build.call_count, 1)

            TestDataFactory.create_opportunity()
            response = self.client.get('/api/v1/reports/dashboard/')
            self.assertEqual(build.call_count, 2)
            self.assertEqual(response.data['summary']['opportunities_count'], 3)

    def test_sales_report_admin_only(self):
        response = self.client.get('/api/v1/reports/sales/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_sales_report(self):
        product = TestDataFactory.create_product(title='Lancha')
        TestDataFactory.create_opportunity(value=Decimal('100000'), status='vendido', product=product)
        TestDataFactory.create_opportunity(value=Decimal('50000'), status='vendido', stage=PipelineStage.CLOSED, product=product)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/reports/sales/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items_sold'], 2)
        self.assertEqual(response.data['total_sold_value'], Decimal('150000.00'))
        self.assertEqual(response.data['estimated_commission'], Decimal('7500.00'))
        self.assertEqual(response.data['top_by_sales'][0]['title'], 'Lancha')
        self.assertEqual(response.data['top_by_sales'][0]['sales'], 2)
