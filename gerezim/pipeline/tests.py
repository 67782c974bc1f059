"""
Test suite for Pipeline module
Tests: board state (optimistic moves, validation, enrichment, drag), REST endpoints
"""
from decimal import Decimal
from unittest import mock
from django.test import TestCase, SimpleTestCase
from rest_framework import status
from gerezim.core.exceptions import EnrichmentError, FetchError, NotFoundError, PersistenceError, ValidationError
from gerezim.core.models import AuditLog
from gerezim.core.notifications import SUCCESS, NotificationCollector
from gerezim.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gerezim.pipeline.board import PipelineBoard, clean_fields
from gerezim.pipeline.clients import Card, OpportunityClient
from gerezim.pipeline.models import Opportunity, PipelineStage, STAGE_ORDER


class FakeOpportunityClient:
    """In-memory opportunities; flags inject failures"""

    def __init__(self, cards=()):
        self.rows = [Card(**vars(card)) for card in cards]
        self.contacts = {}
        self.products = {}
        self.calls = []
        self.fail_fetch = False
        self.fail_update = False
        self.fail_insert = False
        self.fail_contacts = False
        self.closed = False

    def close(self):
        self.closed = True

    def fetch_all(self):
        self.calls.append(('fetch_all',))
        if self.fail_fetch:
            raise FetchError('offline')
        return [Card(**vars(card)) for card in self.rows]

    def fetch_contacts(self, ids):
        self.calls.append(('fetch_contacts', set(ids)))
        if self.fail_contacts:
            raise EnrichmentError('contacts offline')
        return {pk: self.contacts[pk] for pk in ids if pk in self.contacts}

    def fetch_products(self, ids):
        self.calls.append(('fetch_products', set(ids)))
        return {pk: self.products[pk] for pk in ids if pk in self.products}

    def insert(self, **fields):
        self.calls.append(('insert', fields))
        if self.fail_insert:
            raise PersistenceError('insert rejected')
        card = Card(id=max([c.id for c in self.rows] or [0]) + 1, **fields)
        self.rows.insert(0, card)
        return Card(**vars(card))

    def update(self, card_id, **fields):
        self.calls.append(('update', card_id, fields))
        if self.fail_update:
            raise PersistenceError('update rejected')
        for card in self.rows:
            if card.id == card_id:
                for key, value in fields.items():
                    setattr(card, key, value)

    def update_stage(self, card_id, stage):
        self.update(card_id, pipeline_stage=stage)

    def delete(self, card_id):
        self.calls.append(('delete', card_id))
        self.rows = [card for card in self.rows if card.id != card_id]

    def call_names(self):
        return [call[0] for call in self.calls]


class PipelineBoardTests(SimpleTestCase):
    """Board state over the in-memory client"""

    def setUp(self):
        self.client = FakeOpportunityClient([
            Card(id=3, title='Cobertura', pipeline_stage=PipelineStage.PROPOSAL_SENT, value=Decimal('900000'), contact_id=20),
            Card(id=2, title='Porsche', pipeline_stage=PipelineStage.NEW, value=Decimal('450000'), contact_id=10, product_id=7),
            Card(id=1, title='Rolex', pipeline_stage=PipelineStage.NEW, value=Decimal('80000'), contact_id=10),
        ])
        self.client.contacts = {10: {'name': 'Ana', 'avatar_url': None}, 20: {'name': 'Bruno', 'avatar_url': 'https://a/b.png'}}
        self.client.products = {7: {'title': 'Porsche 911', 'thumbnail': 'https://cdn/p.jpg'}}
        self.notifications = NotificationCollector()
        self.board = PipelineBoard(self.client, notify=self.notifications)
        self.board.load_board()

    def test_load_enriches_cards(self):
        card = self.board.get_card(2)
        self.assertEqual(card.contact_name, 'Ana')
        self.assertEqual(card.product_title, 'Porsche 911')
        self.assertEqual(card.product_thumbnail, 'https://cdn/p.jpg')
        self.assertEqual(self.board.get_card(3).contact_avatar, 'https://a/b.png')

    def test_enrichment_is_batched(self):
        contact_calls = [call for call in self.client.calls if call[0] == 'fetch_contacts']
        self.assertEqual(contact_calls, [('fetch_contacts', {10, 20})])
        self.assertEqual(self.client.call_names().count('fetch_products'), 1)

    def test_enrichment_failure_keeps_cards(self):
        self.client.fail_contacts = True
        self.board.load_board()
        self.assertEqual([card.id for card in self.board.cards], [3, 2, 1])
        self.assertTrue(all(card.contact_name is None for card in self.board.cards))
        self.assertEqual(self.board.get_card(2).product_title, 'Porsche 911')
        self.assertEqual(self.notifications.items, [])

    def test_load_failure_notifies(self):
        self.client.fail_fetch = True
        with self.assertRaises(FetchError):
            self.board.load_board()
        self.assertEqual(len(self.notifications.errors()), 1)

    def test_columns_in_funnel_order(self):
        columns = self.board.columns()
        self.assertEqual(list(columns), STAGE_ORDER)
        self.assertEqual([card.id for card in columns[PipelineStage.NEW]], [2, 1])
        self.assertEqual(columns[PipelineStage.CLOSED], [])
        self.assertEqual(sum(len(cards) for cards in columns.values()), 3)

    def test_move_card(self):
        self.assertTrue(self.board.move_card(1, PipelineStage.INTERESTED))
        self.assertEqual(self.board.get_card(1).pipeline_stage, PipelineStage.INTERESTED)
        self.assertEqual(self.client.rows[2].pipeline_stage, PipelineStage.INTERESTED)
        self.assertEqual(self.notifications.items, [
            {'level': SUCCESS, 'message': 'Oportunidade movida para "Interessado"'}
        ])

    def test_move_failure_rolls_back(self):
        self.client.fail_update = True
        with self.assertRaises(PersistenceError):
            self.board.move_card(1, PipelineStage.NEGOTIATION)
        self.assertEqual(self.board.get_card(1).pipeline_stage, PipelineStage.NEW)
        self.assertEqual(len(self.notifications.items), 1)
        self.assertEqual(len(self.notifications.errors()), 1)

    def test_interleaved_failures_only_roll_back_the_failed_move(self):
        steps = [
            (1, PipelineStage.INTERESTED, False),
            (2, PipelineStage.CLOSED, True),
            (1, PipelineStage.NEGOTIATION, True),
            (3, PipelineStage.NEGOTIATION, False),
            (2, PipelineStage.INTERESTED, False),
            (3, PipelineStage.NEW, True),
        ]
        expected = {card.id: card.pipeline_stage for card in self.board.cards}
        for card_id, stage, fails in steps:
            self.client.fail_update = fails
            if fails:
                with self.assertRaises(PersistenceError):
                    self.board.move_card(card_id, stage)
            else:
                self.assertTrue(self.board.move_card(card_id, stage))
                expected[card_id] = stage
            self.assertEqual({card.id: card.pipeline_stage for card in self.board.cards}, expected)
            self.assertEqual({card.id: card.pipeline_stage for card in self.client.rows}, expected)
        self.assertEqual(len(self.notifications.errors()), 3)
        self.assertEqual(len(self.notifications.items), len(steps))

    def test_move_to_same_stage_is_noop(self):
        self.assertFalse(self.board.move_card(1, PipelineStage.NEW))
        self.assertNotIn('update', self.client.call_names())
        self.assertEqual(self.notifications.items, [])

    def test_move_to_unknown_stage(self):
        with self.assertRaises(ValidationError):
            self.board.move_card(1, 'Perdido')

    def test_create_card_in_target_stage(self):
        card = self.board.create_card(PipelineStage.NEGOTIATION, {
            'title': ' Iate ', 'value': '1500000,50', 'contact': '20', 'category': 'item_premium'
        })
        self.assertEqual(card.pipeline_stage, PipelineStage.NEGOTIATION)
        self.assertEqual(card.title, 'Iate')
        self.assertEqual(card.value, Decimal('1500000.50'))
        self.assertEqual(card.contact_name, 'Bruno')
        self.assertEqual(len(self.board.columns()[PipelineStage.NEGOTIATION]), 1)

    def test_create_card_requires_title(self):
        with self.assertRaises(ValidationError):
            self.board.create_card(PipelineStage.NEW, {'title': '  ', 'value': '100'})
        self.assertNotIn('insert', self.client.call_names())
        self.assertEqual(len(self.board.cards), 3)

    def test_create_card_rejects_non_positive_value(self):
        for value in ('0', '-10', 'abc', '', 'Infinity'):
            with self.assertRaises(ValidationError):
                self.board.create_card(PipelineStage.NEW, {'title': 'Lancha', 'value': value})
        self.assertNotIn('insert', self.client.call_names())
        self.assertEqual(len(self.board.cards), 3)

    def test_create_card_rejects_values_the_column_cannot_hold(self):
        for value in ('0.001', '1e20'):
            with self.assertRaises(ValidationError):
                self.board.create_card(PipelineStage.NEW, {'title': 'Relogio', 'value': value})
        self.assertNotIn('insert', self.client.call_names())

    def test_create_card_failure_notifies(self):
        self.client.fail_insert = True
        with self.assertRaises(PersistenceError):
            self.board.create_card(PipelineStage.NEW, {'title': 'Lancha', 'value': '10'})
        self.assertEqual(len(self.notifications.errors()), 1)

    def test_update_card(self):
        card = self.board.update_card(3, {'value': '950000', 'notes': 'Cliente pediu desconto'})
        self.assertEqual(card.value, Decimal('950000'))
        self.assertEqual(card.notes, 'Cliente pediu desconto')

    def test_update_card_without_fields(self):
        with self.assertRaises(ValidationError):
            self.board.update_card(3, {'unknown': 'x'})

    def test_delete_card(self):
        self.board.delete_card(1)
        self.assertEqual([card.id for card in self.board.cards], [3, 2])

    def test_drop_moves_dragged_card(self):
        self.board.start_drag(2)
        self.board.drag_enter(PipelineStage.CLOSED)
        self.assertEqual(self.board.drag_over_stage, PipelineStage.CLOSED)
        self.assertTrue(self.board.drop(PipelineStage.CLOSED))
        self.assertEqual(self.board.get_card(2).pipeline_stage, PipelineStage.CLOSED)
        self.assertIsNone(self.board.dragging_id)

    def test_drop_clears_drag_state_on_failure(self):
        self.client.fail_update = True
        self.board.start_drag(2)
        self.board.drag_enter(PipelineStage.CLOSED)
        with self.assertRaises(PersistenceError):
            self.board.drop(PipelineStage.CLOSED)
        self.assertIsNone(self.board.dragging_id)
        self.assertIsNone(self.board.drag_over_stage)
        self.assertEqual(self.board.get_card(2).pipeline_stage, PipelineStage.NEW)

    def test_drop_without_drag(self):
        self.assertFalse(self.board.drop(PipelineStage.CLOSED))

    def test_drag_leave(self):
        self.board.drag_enter(PipelineStage.INTERESTED)
        self.board.drag_leave()
        self.assertIsNone(self.board.drag_over_stage)

    def test_close(self):
        self.board.close()
        self.assertTrue(self.client.closed)
        self.assertEqual(self.board.cards, [])


class CleanFieldsTests(SimpleTestCase):

    def test_value_is_bounded_by_the_column(self):
        self.assertEqual(clean_fields({'value': '99'}, partial=True)['value'], Decimal('99.00'))
        self.assertEqual(clean_fields({'value': '1234,50'}, partial=True)['value'], Decimal('1234.50'))
        self.assertEqual(clean_fields({'value': '999999999999.99'}, partial=True)['value'], Decimal('999999999999.99'))
        for value in ('0.001', '1.234', '1e20', '1000000000000', 'NaN'):
            with self.assertRaises(ValidationError):
                clean_fields({'value': value}, partial=True)

    def test_text_fields_are_trimmed_and_blank_means_none(self):
        cleaned = clean_fields({'title': ' Iate ', 'value': '10', 'category': '', 'notes': ''})
        self.assertEqual(cleaned['title'], 'Iate')
        self.assertIsNone(cleaned['category'])
        self.assertIsNone(cleaned['notes'])

    def test_partial_maps_references(self):
        cleaned = clean_fields({'contact': '', 'product': '5', 'status': 'vendido'}, partial=True)
        self.assertEqual(cleaned, {'contact_id': None, 'product_id': 5, 'status': 'vendido'})

    def test_invalid_category_and_status(self):
        with self.assertRaises(ValidationError):
            clean_fields({'category': 'barco'}, partial=True)
        with self.assertRaises(ValidationError):
            clean_fields({'status': 'perdido'}, partial=True)


class OpportunityClientTests(TestCase):

    def test_fetch_all_newest_first(self):
        older = TestDataFactory.create_opportunity(title='Antiga', created_at=TestDataFactory.days_ago(3))
        newer = TestDataFactory.create_opportunity(title='Nova')
        cards = OpportunityClient().fetch_all()
        self.assertEqual([card.id for card in cards], [newer.id, older.id])

    def test_fetch_contacts_and_products(self):
        contact = TestDataFactory.create_contact(name='Carla')
        product = TestDataFactory.create_product(title='Ferrari', images=['https://cdn/f.jpg'])
        client = OpportunityClient()
        self.assertEqual(client.fetch_contacts({contact.id})[contact.id]['name'], 'Carla')
        self.assertEqual(client.fetch_products({product.id})[product.id]['thumbnail'], 'https://cdn/f.jpg')

    def test_update_missing(self):
        with self.assertRaises(NotFoundError):
            OpportunityClient().update(999, title='x')

    def test_unknown_references_are_rejected(self):
        client = OpportunityClient()
        with self.assertRaises(ValidationError):
            client.insert(title='Iate', value=Decimal('10'), pipeline_stage=PipelineStage.NEW, contact_id=999)
        opportunity = TestDataFactory.create_opportunity()
        with self.assertRaises(ValidationError):
            client.update(opportunity.id, product_id=999)
        self.assertEqual(Opportunity.objects.count(), 1)


class PipelineAPITests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.contact = TestDataFactory.create_contact(name='Ana')
        self.opportunity = TestDataFactory.create_opportunity(title='Porsche', contact=self.contact)

    def test_regular_user_forbidden(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/pipeline/board/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_board(self):
        response = self.client.get('/api/v1/pipeline/board/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([stage['id'] for stage in response.data['stages']], STAGE_ORDER)
        novo = response.data['stages'][0]
        self.assertEqual(novo['count'], 1)
        self.assertEqual(novo['cards'][0]['contact_name'], 'Ana')
        self.assertEqual(response.data['stages'][3]['label'], 'Em Negociação')

    def test_create(self):
        response = self.client.post('/api/v1/opportunities/', {
            'title': 'Fazenda', 'value': '3000000', 'stage': PipelineStage.PROPOSAL_SENT, 'category': 'imovel'
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['card']['pipeline_stage'], PipelineStage.PROPOSAL_SENT)
        opportunity = Opportunity.objects.get(title='Fazenda')
        self.assertEqual(opportunity.created_by, self.admin)
        self.assertTrue(AuditLog.objects.filter(model_name='Opportunity', action='create').exists())

    def test_create_invalid(self):
        response = self.client.post('/api/v1/opportunities/', {'title': '', 'value': '10'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Digite um título para a oportunidade')
        response = self.client.post('/api/v1/opportunities/', {'title': 'X', 'value': '0'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Opportunity.objects.count(), 1)

    def test_create_out_of_range_value_keeps_board_readable(self):
        for value in ('1e20', '0.001'):
            response = self.client.post('/api/v1/opportunities/', {'title': 'Iate', 'value': value})
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['error'], 'Digite um valor válido')
        self.assertEqual(Opportunity.objects.count(), 1)
        response = self.client.get('/api/v1/pipeline/board/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_create_with_unknown_contact(self):
        response = self.client.post('/api/v1/opportunities/', {'title': 'Iate', 'value': '10', 'contact': 999})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Contato 999 não encontrado')
        self.assertEqual(Opportunity.objects.count(), 1)

    def test_list_filters(self):
        TestDataFactory.create_opportunity(title='Lancha', stage=PipelineStage.CLOSED, status='vendido')
        response = self.client.get('/api/v1/opportunities/', {'stage': PipelineStage.CLOSED})
        self.assertEqual([o['title'] for o in response.data], ['Lancha'])
        response = self.client.get('/api/v1/opportunities/', {'status': 'novo'})
        self.assertEqual([o['title'] for o in response.data], ['Porsche'])

    def test_move(self):
        url = f'/api/v1/opportunities/{self.opportunity.id}/move/'
        response = self.client.post(url, {'stage': PipelineStage.NEGOTIATION})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['moved'])
        self.opportunity.refresh_from_db()
        self.assertEqual(self.opportunity.pipeline_stage, PipelineStage.NEGOTIATION)
        self.assertTrue(AuditLog.objects.filter(action='stage_move').exists())

        response = self.client.post(url, {'stage': PipelineStage.NEGOTIATION})
        self.assertFalse(response.data['moved'])

    def test_move_invalid_stage(self):
        response = self.client.post(f'/api/v1/opportunities/{self.opportunity.id}/move/', {'stage': 'Perdido'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @mock.patch('gerezim.pipeline.clients.OpportunityClient.update_stage', side_effect=PersistenceError('offline'))
    def test_move_failure(self, mock_update):
        response = self.client.post(
            f'/api/v1/opportunities/{self.opportunity.id}/move/', {'stage': PipelineStage.CLOSED}
        )
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(len(response.data['notifications']), 1)
        self.opportunity.refresh_from_db()
        self.assertEqual(self.opportunity.pipeline_stage, PipelineStage.NEW)

    def test_patch_and_delete(self):
        url = f'/api/v1/opportunities/{self.opportunity.id}/'
        response = self.client.patch(url, {'value': '520000', 'status': 'em_negociacao'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.opportunity.refresh_from_db()
        self.assertEqual(self.opportunity.value, Decimal('520000'))
        self.assertEqual(self.opportunity.status, 'em_negociacao')

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Opportunity.objects.exists())
        self.assertEqual(sum(stage['count'] for stage in response.data['stages']), 0)

    def test_detail_missing(self):
        response = self.client.get('/api/v1/opportunities/999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
