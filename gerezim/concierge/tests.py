"""
Test suite for Concierge module
Tests: folders, conversations, webhook messaging, webhook settings and proxy
"""
from unittest import mock
import requests
from django.test import TestCase, SimpleTestCase
from rest_framework import status
from gerezim.concierge.models import ConciergeMessage
from gerezim.concierge.webhook import WEBHOOK_SETTING_KEY, WebhookClient, extract_reply
from gerezim.core.exceptions import WebhookError
from gerezim.core.models import AuditLog, Setting
from gerezim.core.test_utils import TestDataFactory, AuthenticatedAPIClient

WEBHOOK_URL = 'https://hooks.example.com/concierge'


def fake_response(status_code=200, json_data=None, text=''):
    response = mock.Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError('not json')
    else:
        response.json.return_value = json_data
    return response


class WebhookClientTests(SimpleTestCase):

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_send_returns_reply(self, mock_post):
        mock_post.return_value = fake_response(json_data={'reply': ' Bom dia! '})
        client = WebhookClient(WEBHOOK_URL, timeout=5)
        self.assertEqual(client.send({'message': 'oi'}), 'Bom dia!')
        mock_post.assert_called_once_with(
            WEBHOOK_URL, json={'message': 'oi'}, headers={'Content-Type': 'application/json'}, timeout=5
        )

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_plain_text_body(self, mock_post):
        mock_post.return_value = fake_response(text='resposta em texto')
        self.assertEqual(WebhookClient(WEBHOOK_URL).post({}), {'message': 'resposta em texto'})

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_error_status(self, mock_post):
        mock_post.return_value = fake_response(status_code=500, json_data={'detail': 'boom'})
        with self.assertRaises(WebhookError) as ctx:
            WebhookClient(WEBHOOK_URL).post({})
        self.assertEqual(ctx.exception.upstream_status, 500)
        self.assertEqual(ctx.exception.upstream_body, {'detail': 'boom'})

    @mock.patch('gerezim.concierge.webhook.requests.post', side_effect=requests.exceptions.Timeout('slow'))
    def test_transport_error(self, mock_post):
        with self.assertRaises(WebhookError):
            WebhookClient(WEBHOOK_URL).post({})

    def test_extract_reply(self):
        self.assertEqual(extract_reply({'reply': 'a', 'message': 'b'}), 'a')
        self.assertEqual(extract_reply({'message': 'b'}), 'b')
        self.assertEqual(extract_reply({'other': 'c'}), '')


class FolderAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_appends_at_end(self):
        first = self.client.post('/api/v1/concierge/folders/', {'name': 'Clientes VIP'})
        second = self.client.post('/api/v1/concierge/folders/', {'name': ' Leads '})
        self.assertEqual(first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(first.data['position'], 0)
        self.assertEqual(second.data['position'], 1)
        self.assertEqual(second.data['name'], 'Leads')

    def test_empty_name_rejected(self):
        response = self.client.post('/api/v1/concierge/folders/', {'name': '  '})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_reorder(self):
        a = TestDataFactory.create_concierge_folder(name='A', position=0)
        b = TestDataFactory.create_concierge_folder(name='B', position=1)
        c = TestDataFactory.create_concierge_folder(name='C', position=2)
        response = self.client.post('/api/v1/concierge/folders/reorder/', {'ids': [c.id, a.id, b.id]})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([f['name'] for f in response.data], ['C', 'A', 'B'])

    def test_reorder_unknown_folder(self):
        a = TestDataFactory.create_concierge_folder(name='A')
        response = self.client.post('/api/v1/concierge/folders/reorder/', {'ids': [a.id, 999]})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rename_and_delete(self):
        folder = TestDataFactory.create_concierge_folder(name='Antiga')
        conversation = TestDataFactory.create_conversation(folder=folder)
        response = self.client.patch(f'/api/v1/concierge/folders/{folder.id}/', {'name': 'Nova'})
        self.assertEqual(response.data['name'], 'Nova')

        response = self.client.delete(f'/api/v1/concierge/folders/{folder.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        conversation.refresh_from_db()
        self.assertIsNone(conversation.folder)


class ConversationAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.folder = TestDataFactory.create_concierge_folder()

    def test_create_and_filter(self):
        response = self.client.post('/api/v1/concierge/conversations/', {'title': 'Cliente Porsche', 'folder': self.folder.id})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        TestDataFactory.create_conversation(title='Solta')

        response = self.client.get('/api/v1/concierge/conversations/', {'folder': self.folder.id})
        self.assertEqual([c['title'] for c in response.data], ['Cliente Porsche'])
        response = self.client.get('/api/v1/concierge/conversations/', {'folder': 'none'})
        self.assertEqual([c['title'] for c in response.data], ['Solta'])

    def test_move_to_folder_and_delete(self):
        conversation = TestDataFactory.create_conversation()
        TestDataFactory.create_message(conversation)
        url = f'/api/v1/concierge/conversations/{conversation.id}/'
        response = self.client.patch(url, {'folder': self.folder.id})
        self.assertEqual(response.data['folder'], self.folder.id)

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(ConciergeMessage.objects.exists())


class MessageAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.conversation = TestDataFactory.create_conversation(title='Iate')
        self.url = f'/api/v1/concierge/conversations/{self.conversation.id}/messages/'
        Setting.set_value(WEBHOOK_SETTING_KEY, WEBHOOK_URL)

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_message_with_reply(self, mock_post):
        mock_post.return_value = fake_response(json_data={'reply': 'Temos 3 opções disponíveis.'})
        response = self.client.post(self.url, {'content': 'Quais iates vocês têm?'})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user_message']['sender'], 'user')
        self.assertEqual(response.data['bot_message']['content'], 'Temos 3 opções disponíveis.')
        sent = mock_post.call_args.kwargs['json']
        self.assertEqual(sent['message'], 'Quais iates vocês têm?')
        self.assertEqual(sent['conversation_id'], self.conversation.id)
        self.assertEqual(sent['user_email'], self.user.email)
        self.assertEqual(sent['url'], WEBHOOK_URL)
        self.assertTrue(AuditLog.objects.filter(action='webhook_call').exists())

        response = self.client.get(self.url)
        self.assertEqual([m['sender'] for m in response.data], ['user', 'bot'])

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_message_field_and_text_replies(self, mock_post):
        mock_post.return_value = fake_response(json_data={'message': 'Via message'})
        response = self.client.post(self.url, {'message': 'oi'})
        self.assertEqual(response.data['bot_message']['content'], 'Via message')

        mock_post.return_value = fake_response(text='Texto puro')
        response = self.client.post(self.url, {'content': 'oi de novo'})
        self.assertEqual(response.data['bot_message']['content'], 'Texto puro')

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_empty_reply_stores_no_bot_message(self, mock_post):
        mock_post.return_value = fake_response(json_data={'status': 'ok'})
        response = self.client.post(self.url, {'content': 'oi'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIsNone(response.data['bot_message'])
        self.assertEqual(ConciergeMessage.objects.count(), 1)

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_webhook_error_keeps_user_message(self, mock_post):
        mock_post.return_value = fake_response(status_code=500, text='Internal error')
        response = self.client.post(self.url, {'content': 'oi'})
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['user_message']['content'], 'oi')
        self.assertEqual(list(ConciergeMessage.objects.values_list('sender', flat=True)), ['user'])
        self.assertTrue(AuditLog.objects.filter(action='webhook_call').exists())

    @mock.patch('gerezim.concierge.webhook.requests.post', side_effect=requests.exceptions.ConnectionError('down'))
    def test_webhook_unreachable(self, mock_post):
        response = self.client.post(self.url, {'content': 'oi'})
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)

    def test_empty_message_rejected(self):
        response = self.client.post(self.url, {'content': '   '})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_missing_webhook_url(self, mock_post):
        Setting.objects.filter(key=WEBHOOK_SETTING_KEY).delete()
        response = self.client.post(self.url, {'content': 'oi'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Configure a URL do Webhook primeiro!')
        self.assertFalse(ConciergeMessage.objects.exists())
        mock_post.assert_not_called()


class WebhookSettingsAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.url = '/api/v1/concierge/settings/webhook/'

    def test_get_default(self):
        self.client.authenticate_user(self.user)
        response = self.client.get(self.url)
        self.assertEqual(response.data, {'url': ''})

    def test_only_admin_can_change(self):
        self.client.authenticate_user(self.user)
        response = self.client.put(self.url, {'url': WEBHOOK_URL})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.put(self.url, {'url': WEBHOOK_URL})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Setting.get_value(WEBHOOK_SETTING_KEY), WEBHOOK_URL)

    def test_invalid_url(self):
        self.client.authenticate_user(self.admin)
        response = self.client.put(self.url, {'url': 'not a url'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class WebhookProxyAPITests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user())
        self.url = '/api/v1/concierge/webhook/'

    def test_url_required(self):
        response = self.client.post(self.url, {'message': 'oi'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'URL is required'})

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_relays_json(self, mock_post):
        mock_post.return_value = fake_response(json_data={'reply': 'ok'})
        response = self.client.post(self.url, {'url': WEBHOOK_URL, 'message': 'oi'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'reply': 'ok'})
        self.assertEqual(mock_post.call_args.kwargs['json'], {'message': 'oi'})

    @mock.patch('gerezim.concierge.webhook.requests.post')
    def test_relays_upstream_error(self, mock_post):
        mock_post.return_value = fake_response(status_code=404, text='Not Found')
        response = self.client.post(self.url, {'url': WEBHOOK_URL})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'message': 'Not Found'})

    @mock.patch('gerezim.concierge.webhook.requests.post', side_effect=requests.exceptions.ConnectionError('down'))
    def test_transport_error(self, mock_post):
        response = self.client.post(self.url, {'url': WEBHOOK_URL})
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
