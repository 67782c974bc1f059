"""
Test suite for Contacts module
Tests: Contact CRUD, filters, interactions
"""
from django.test import TestCase
from rest_framework import status
from gerezim.contacts.models import Contact, Interaction
from gerezim.core.models import AuditLog
from gerezim.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ContactAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_contact(self):
        response = self.client.post('/api/v1/contacts/', {
            'name': '  Ana Souza ',
            'phone': '11988887777',
            'source': 'Instagram',
            'interests': 'Imóveis no litoral',
            'status': 'quente',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        contact = Contact.objects.get()
        self.assertEqual(contact.name, 'Ana Souza')
        self.assertEqual(contact.created_by, self.user)
        self.assertTrue(AuditLog.objects.filter(model_name='Contact', action='create').exists())

    def test_create_requires_name(self):
        response = self.client.post('/api/v1/contacts/', {'name': '   '})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_status_rejected(self):
        response = self.client.post('/api/v1/contacts/', {'name': 'Ana', 'status': 'fervendo'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters(self):
        TestDataFactory.create_contact(name='Bruno', status='quente', phone='21955554444')
        TestDataFactory.create_contact(name='Carla', status='frio', phone='11911112222')

        response = self.client.get('/api/v1/contacts/', {'status': 'quente'})
        self.assertEqual([c['name'] for c in response.data], ['Bruno'])

        response = self.client.get('/api/v1/contacts/', {'search': '1111'})
        self.assertEqual([c['name'] for c in response.data], ['Carla'])

        response = self.client.get('/api/v1/contacts/')
        self.assertEqual([c['name'] for c in response.data], ['Bruno', 'Carla'])

    def test_update_status_is_audited(self):
        contact = TestDataFactory.create_contact(status='novo')
        response = self.client.patch(f'/api/v1/contacts/{contact.id}/', {'status': 'morno'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(model_name='Contact', action='update')
        self.assertEqual(log.changes['status'], {'old': 'novo', 'new': 'morno'})

    def test_delete_contact(self):
        contact = TestDataFactory.create_contact()
        TestDataFactory.create_interaction(contact)
        response = self.client.delete(f'/api/v1/contacts/{contact.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Interaction.objects.exists())

    def test_missing_contact(self):
        response = self.client.get('/api/v1/contacts/999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class InteractionAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.contact = TestDataFactory.create_contact()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.url = f'/api/v1/contacts/{self.contact.id}/interactions/'

    def test_add_and_list_interactions(self):
        response = self.client.post(self.url, {'content': 'Ligou pedindo fotos do imóvel'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by_name'], self.user.username)

        response = self.client.get(self.url)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['contact'], self.contact.id)

        response = self.client.get(f'/api/v1/contacts/{self.contact.id}/')
        self.assertEqual(response.data['interactions_count'], 1)

    def test_empty_interaction_rejected(self):
        response = self.client.post(self.url, {'content': ''})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
