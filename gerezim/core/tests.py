"""
Test suite for Core module
Tests: optimistic helpers, notifications, blob storage, cache utilities, auth, settings, audit logs, global search
"""
import shutil
import tempfile
from decimal import Decimal
from django.core.cache import cache
from django.core.files.base import ContentFile
from django.core.files.storage import FileSystemStorage
from django.test import SimpleTestCase, TestCase
from rest_framework import status
from gerezim.core import cache_utils
from gerezim.core.exceptions import (
    EnrichmentError, GerezimError, NotFoundError, PersistenceError, StorageError, ValidationError, WebhookError
)
from gerezim.core.models import AuditLog, Setting
from gerezim.core.notifications import ERROR, SUCCESS, NotificationCollector
from gerezim.core.optimistic import (
    optimistic_update, set_attribute_optimistically, toggle_membership_optimistically
)
from gerezim.core.storage import LocalBlobStorage, generate_blob_name
from gerezim.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gerezim.core.utils import create_audit_log, error_response, field_changes, parse_optional_id, snapshot


class Box:
    def __init__(self, value):
        self.value = value


class OptimisticUpdateTests(SimpleTestCase):
    """Test the apply / persist / rollback helpers"""

    def test_success_keeps_local_change(self):
        box = Box('Novo')
        result = set_attribute_optimistically(box, 'value', 'Interessado', lambda: 'saved')
        self.assertEqual(result, 'saved')
        self.assertEqual(box.value, 'Interessado')

    def test_failure_restores_previous_value(self):
        box = Box('Novo')

        def persist():
            raise PersistenceError('offline')

        with self.assertRaises(PersistenceError):
            set_attribute_optimistically(box, 'value', 'Interessado', persist)
        self.assertEqual(box.value, 'Novo')

    def test_rollback_receives_apply_result(self):
        calls = []

        def persist():
            raise NotFoundError()

        with self.assertRaises(NotFoundError):
            optimistic_update(lambda: 'previous', persist, calls.append)
        self.assertEqual(calls, ['previous'])

    def test_unrelated_exception_is_not_rolled_back(self):
        box = Box(1)

        def persist():
            raise KeyError('bug')

        with self.assertRaises(KeyError):
            set_attribute_optimistically(box, 'value', 2, persist)
        self.assertEqual(box.value, 2)

    def test_toggle_membership_adds_and_removes(self):
        items = {1}
        seen = []
        self.assertTrue(toggle_membership_optimistically(items, 2, lambda added: seen.append(added) or added))
        self.assertEqual(items, {1, 2})
        self.assertFalse(toggle_membership_optimistically(items, 1, lambda added: seen.append(added) or added))
        self.assertEqual(items, {2})
        self.assertEqual(seen, [True, False])

    def test_toggle_membership_rollback(self):
        items = {5}

        def persist(added):
            raise PersistenceError()

        with self.assertRaises(PersistenceError):
            toggle_membership_optimistically(items, 5, persist)
        self.assertEqual(items, {5})


class ErrorTaxonomyTests(SimpleTestCase):

    def test_status_codes(self):
        self.assertEqual(ValidationError().status_code, 400)
        self.assertEqual(NotFoundError().status_code, 404)
        self.assertEqual(PersistenceError().status_code, 503)
        self.assertEqual(WebhookError().status_code, 502)
        self.assertEqual(EnrichmentError().status_code, 500)
        self.assertTrue(issubclass(StorageError, PersistenceError))

    def test_default_and_custom_message(self):
        self.assertEqual(ValidationError().message, 'Dados inválidos')
        self.assertEqual(GerezimError('boom').message, 'boom')
        self.assertEqual(str(GerezimError('boom')), 'boom')

    def test_error_response(self):
        response = error_response(ValidationError('Título vazio'))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data, {'error': 'Título vazio'})

    def test_parse_optional_id(self):
        self.assertIsNone(parse_optional_id(None))
        self.assertIsNone(parse_optional_id(''))
        self.assertIsNone(parse_optional_id('none'))
        self.assertEqual(parse_optional_id('12'), 12)
        self.assertEqual(parse_optional_id(7), 7)
        with self.assertRaises(ValidationError):
            parse_optional_id('abc')


class NotificationCollectorTests(SimpleTestCase):

    def test_collects_in_order(self):
        notifications = NotificationCollector()
        notifications(SUCCESS, 'ok')
        notifications(ERROR, 'falhou')
        self.assertEqual(notifications.as_list(), [
            {'level': SUCCESS, 'message': 'ok'},
            {'level': ERROR, 'message': 'falhou'},
        ])
        self.assertEqual(len(notifications.errors()), 1)


class BlobStorageTests(SimpleTestCase):
    """Test blob naming and the local storage backend"""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.storage = LocalBlobStorage('insumos', storage=FileSystemStorage(location=self.tmpdir, base_url='/media/'))

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_generate_blob_name_keeps_extension(self):
        name = generate_blob_name('Contrato Final.PDF')
        stem, extension = name.rsplit('.', 1)
        self.assertEqual(extension, 'pdf')
        millis, suffix = stem.split('-')
        self.assertTrue(millis.isdigit())
        self.assertEqual(len(suffix), 7)

    def test_generate_blob_name_without_extension(self):
        self.assertNotIn('.', generate_blob_name('README'))

    def test_generate_blob_name_is_unique(self):
        self.assertNotEqual(generate_blob_name('a.txt'), generate_blob_name('a.txt'))

    def test_upload_url_and_remove(self):
        path = self.storage.upload('doc.txt', ContentFile(b'hello'), 'text/plain')
        self.assertEqual(path, 'doc.txt')
        url = self.storage.public_url(path)
        self.assertEqual(url, '/media/insumos/doc.txt')
        self.assertEqual(self.storage.path_from_url(url), 'doc.txt')
        self.assertTrue(self.storage.storage.exists('insumos/doc.txt'))

        self.storage.remove([path])
        self.assertFalse(self.storage.storage.exists('insumos/doc.txt'))

    def test_path_from_url(self):
        self.assertEqual(
            self.storage.path_from_url('https://acct.blob.core.windows.net/gerezim/insumos/12/a%20b.pdf?sig=x'),
            '12/a b.pdf'
        )
        self.assertEqual(self.storage.path_from_url('https://cdn.example.com/files/x.pdf'), 'x.pdf')
        self.assertIsNone(self.storage.path_from_url(''))


class CacheUtilsTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_dashboard_cache_roundtrip_and_invalidation(self):
        data, key = cache_utils.get_cached_dashboard('30d', 1)
        self.assertIsNone(data)
        cache_utils.cache_dashboard(key, {'total': 1})
        self.assertEqual(cache_utils.get_cached_dashboard('30d', 1)[0], {'total': 1})

        cache_utils.invalidate_dashboard_cache()
        self.assertIsNone(cache_utils.get_cached_dashboard('30d', 1)[0])

    def test_keys_differ_by_range_and_user(self):
        keys = {
            cache_utils.get_cached_dashboard('7d', 1)[1],
            cache_utils.get_cached_dashboard('30d', 1)[1],
            cache_utils.get_cached_dashboard('7d', 2)[1],
        }
        self.assertEqual(len(keys), 3)

    def test_saving_a_watched_model_invalidates(self):
        _, key = cache_utils.get_cached_dashboard('all', None)
        cache_utils.cache_dashboard(key, {'total': 1})
        TestDataFactory.create_contact()
        self.assertIsNone(cache_utils.get_cached_dashboard('all', None)[0])


class AuthTests(TestCase):
    """Test registration, login and profile"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_register_creates_regular_user(self):
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'corretor',
            'email': 'corretor@gerezim.com',
            'password': 'S3nha-Forte-123',
            'password_confirm': 'S3nha-Forte-123',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['role'], 'user')
        self.assertIn('access', response.data)

    def test_register_password_mismatch(self):
        response = self.client.post('/api/v1/auth/register/', {
            'username': 'corretor',
            'password': 'S3nha-Forte-123',
            'password_confirm': 'outra-coisa-123',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_returns_tokens(self):
        TestDataFactory.create_user(username='maria', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {'username': 'maria', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_reports_admin_flags(self):
        admin = TestDataFactory.create_admin()
        self.client.authenticate_user(admin)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_admin'])
        self.assertTrue(response.data['can_access_pipeline'])

    def test_me_cannot_change_role(self):
        user = TestDataFactory.create_user()
        self.client.authenticate_user(user)
        response = self.client.patch('/api/v1/auth/me/', {'role': 'adm', 'phone': '11999999999'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.role, 'user')
        self.assertEqual(user.phone, '11999999999')


class SettingAndAuditTests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def test_setting_helpers(self):
        self.assertEqual(Setting.get_value('webhook_url', 'x'), 'x')
        Setting.set_value('webhook_url', 'https://hook.example.com')
        Setting.set_value('webhook_url', 'https://hook2.example.com')
        self.assertEqual(Setting.get_value('webhook_url'), 'https://hook2.example.com')
        self.assertEqual(Setting.objects.filter(key='webhook_url').count(), 1)

    def test_settings_are_admin_only(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/settings/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/settings/', {'key': 'empresa', 'value': 'Gerezim'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_create_audit_log(self):
        log = create_audit_log(action='stage_move', model_name='Opportunity', object_id=3,
                               user=self.user, object_name='Porsche', changes={'a': 1})
        self.assertEqual(log.object_id, '3')
        self.assertEqual(log.user, self.user)

    def test_create_audit_log_skips_missing_fields(self):
        self.assertIsNone(create_audit_log(action='create', model_name='Opportunity'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_non_admin_sees_only_own_logs(self):
        create_audit_log(action='create', model_name='Contact', object_id=1, user=self.user)
        create_audit_log(action='create', model_name='Contact', object_id=2, user=self.admin)
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)


class GlobalSearchTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_search_across_models(self):
        TestDataFactory.create_product(title='Ferrari Roma')
        TestDataFactory.create_contact(name='Ferreira')
        TestDataFactory.create_folder(title='Ferrari docs')
        TestDataFactory.create_opportunity(title='Ferrari para João')

        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.get('/api/v1/search/?q=ferr')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['products']), 1)
        self.assertEqual(len(response.data['contacts']), 1)
        self.assertEqual(len(response.data['insumos']), 1)
        self.assertEqual(len(response.data['opportunities']), 1)

    def test_opportunities_hidden_from_regular_users(self):
        TestDataFactory.create_opportunity(title='Ferrari para João')
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/search/?q=ferrari')
        self.assertEqual(response.data['opportunities'], [])

    def test_empty_query(self):
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/search/')
        self.assertEqual(response.data['products'], [])


class ChangeDiffTests(SimpleTestCase):

    def test_snapshot_stringifies_values(self):
        box = Box(Decimal('10.50'))
        self.assertEqual(snapshot(box, ('value', 'missing')), {'value': '10.50', 'missing': None})

    def test_field_changes_only_reports_differences(self):
        before = {'status': 'novo', 'name': 'Ana'}
        after = {'status': 'quente', 'name': 'Ana'}
        self.assertEqual(field_changes(before, after), {'status': {'old': 'novo', 'new': 'quente'}})
        self.assertEqual(field_changes(after, after), {})


class AccountAdministrationTests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_login_includes_profile(self):
        TestDataFactory.create_user(username='joana', password='testpass123')
        response = AuthenticatedAPIClient().post('/api/v1/auth/login/', {'username': 'joana', 'password': 'testpass123'})
        self.assertEqual(response.data['user']['username'], 'joana')
        self.assertFalse(response.data['user']['can_access_reports'])

    def test_user_list_filters_by_role(self):
        TestDataFactory.create_user(username='corretor1')
        response = self.client.get('/api/v1/users/', {'role': 'user'})
        self.assertEqual([u['username'] for u in response.data], ['corretor1'])

    def test_role_change_is_audited(self):
        broker = TestDataFactory.create_user()
        response = self.client.patch(f'/api/v1/users/{broker.id}/', {'role': 'adm'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_admin'])
        log = AuditLog.objects.get(model_name='User', action='update')
        self.assertEqual(log.changes['role'], {'old': 'user', 'new': 'adm'})

    def test_admin_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_setting_by_key(self):
        response = self.client.put('/api/v1/settings/webhook_url/', {'value': 'https://hook.example.com'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Setting.get_value('webhook_url'), 'https://hook.example.com')

        response = self.client.get('/api/v1/settings/webhook_url/')
        self.assertEqual(response.data['value'], 'https://hook.example.com')

        response = self.client.delete('/api/v1/settings/webhook_url/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.client.get('/api/v1/settings/webhook_url/').status_code, status.HTTP_404_NOT_FOUND)

    def test_setting_key_is_normalised(self):
        response = self.client.post('/api/v1/settings/', {'key': ' Nome Empresa ', 'value': 'Gerezim'})
        self.assertEqual(response.data['key'], 'nome_empresa')

    def test_audit_logs_filter_by_action(self):
        create_audit_log(action='stage_move', model_name='Opportunity', object_id=1, user=self.admin)
        create_audit_log(action='delete', model_name='Contact', object_id=2, user=self.admin)
        response = self.client.get('/api/v1/audit-logs/', {'action': 'stage_move'})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['username'], self.admin.username)
