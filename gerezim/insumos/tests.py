"""
Test suite for Insumos module
Tests: Tree Store operations (in-memory client), ORM client, REST endpoints
"""
import shutil
import tempfile
from django.core.files.storage import FileSystemStorage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, SimpleTestCase
from rest_framework import status
from unittest import mock
from gerezim.core.exceptions import FetchError, NotFoundError, PersistenceError, StorageError, ValidationError
from gerezim.core.models import AuditLog
from gerezim.core.notifications import SUCCESS, NotificationCollector
from gerezim.core.storage import LocalBlobStorage
from gerezim.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from gerezim.insumos.clients import InsumoClient, Node
from gerezim.insumos.models import Insumo
from gerezim.insumos.tree import TreeStore, sort_nodes


class FakeInsumoClient:
    """In-memory backing store; flags inject failures"""

    def __init__(self):
        self.rows = {}
        self.blobs = {}
        self.next_id = 1
        self.calls = []
        self.fail_fetch = False
        self.fail_insert = False
        self.fail_update = False
        self.fail_upload = False
        self.fail_remove_blob = False
        self.closed = False

    def add(self, title, is_folder=False, parent_id=None, **fields):
        node = Node(id=self.next_id, title=title, is_folder=is_folder, parent_id=parent_id, **fields)
        self.rows[node.id] = node
        self.next_id += 1
        return node

    def close(self):
        self.closed = True

    def fetch_children(self, folder_id=None):
        self.calls.append(('fetch_children', folder_id))
        if self.fail_fetch:
            raise FetchError('offline')
        return [Node(**vars(node)) for node in self.rows.values() if node.parent_id == folder_id]

    def fetch_node(self, node_id):
        if node_id not in self.rows:
            raise NotFoundError()
        return Node(**vars(self.rows[node_id]))

    def insert_node(self, **fields):
        self.calls.append(('insert_node', fields.get('title')))
        if self.fail_insert:
            raise PersistenceError('insert rejected')
        title = fields.pop('title')
        is_folder = fields.pop('is_folder')
        parent_id = fields.pop('parent_id')
        return self.add(title, is_folder=is_folder, parent_id=parent_id, **fields)

    def update_node(self, node_id, **fields):
        self.calls.append(('update_node', node_id, fields))
        if self.fail_update:
            raise PersistenceError('update rejected')
        if node_id not in self.rows:
            raise NotFoundError()
        for key, value in fields.items():
            setattr(self.rows[node_id], key, value)

    def delete_node(self, node_id):
        self.calls.append(('delete_node', node_id))
        doomed = {node_id}
        changed = True
        while changed:
            children = {n.id for n in self.rows.values() if n.parent_id in doomed} - doomed
            changed = bool(children)
            doomed |= children
        for doomed_id in doomed:
            del self.rows[doomed_id]

    def upload_blob(self, blob_name, content, content_type=None):
        self.calls.append(('upload_blob', blob_name))
        if self.fail_upload:
            raise StorageError('upload failed')
        url = f'https://blobs.test/insumos/{blob_name}'
        self.blobs[url] = content
        return url

    def remove_blob(self, file_url):
        self.calls.append(('remove_blob', file_url))
        if self.fail_remove_blob:
            raise StorageError('delete failed')
        self.blobs.pop(file_url, None)


class TreeStoreTests(SimpleTestCase):
    """Tree Store behaviour over the in-memory client"""

    def setUp(self):
        self.client = FakeInsumoClient()
        self.notifications = NotificationCollector()
        self.store = TreeStore(self.client, notify=self.notifications)
        self.docs = self.client.add('Documentos', is_folder=True)
        self.photos = self.client.add('Fotos', is_folder=True)
        self.contract = self.client.add('contrato.pdf', parent_id=self.docs.id, file_url='https://blobs.test/insumos/c.pdf')
        self.readme = self.client.add('Apresentação', file_url='https://blobs.test/insumos/a.pdf')

    def test_list_children_folders_first(self):
        nodes = self.store.list_children(None)
        self.assertEqual([n.title for n in nodes], ['Documentos', 'Fotos', 'Apresentação'])

    def test_list_children_empty_folder(self):
        self.assertEqual(self.store.list_children(self.photos.id), [])

    def test_list_children_fetch_error(self):
        self.client.fail_fetch = True
        with self.assertRaises(FetchError):
            self.store.list_children(None)

    def test_refresh_failure_notifies(self):
        self.client.fail_fetch = True
        with self.assertRaises(FetchError):
            self.store.refresh()
        self.assertEqual(len(self.notifications.errors()), 1)

    def test_create_folder(self):
        node = self.store.create_folder(None, '  Plantas  ')
        self.assertTrue(node.is_folder)
        self.assertEqual(node.title, 'Plantas')
        self.assertIsNone(node.file_url)
        self.assertIsNone(node.file_size)
        self.assertIn('Plantas', [n.title for n in self.store.nodes])

    def test_create_folder_empty_title(self):
        with self.assertRaises(ValidationError):
            self.store.create_folder(None, '   ')
        self.assertNotIn('insert_node', [call[0] for call in self.client.calls])

    def test_create_folder_under_file_rejected(self):
        with self.assertRaises(ValidationError):
            self.store.create_folder(self.readme.id, 'Sub')

    def test_create_file_uploads_then_inserts(self):
        upload = SimpleUploadedFile('Planta Baixa.PDF', b'%PDF', content_type='application/pdf')
        node = self.store.create_file(self.docs.id, 'Planta', upload, description='térreo', product_id=4)

        names = [call[0] for call in self.client.calls]
        self.assertLess(names.index('upload_blob'), names.index('insert_node'))
        self.assertFalse(node.is_folder)
        self.assertTrue(node.file_url.endswith('.pdf'))
        self.assertEqual(node.file_type, 'application/pdf')
        self.assertEqual(node.file_size, 4)
        self.assertEqual(node.product_id, 4)
        self.assertEqual(self.notifications.items[-1]['level'], SUCCESS)

    def test_create_file_requires_title_and_file(self):
        with self.assertRaises(ValidationError):
            self.store.create_file(None, '', SimpleUploadedFile('a.txt', b'a'))
        with self.assertRaises(ValidationError):
            self.store.create_file(None, 'Sem arquivo', None)
        self.assertEqual(self.client.blobs, {})

    def test_create_file_insert_failure_leaves_blob(self):
        self.client.fail_insert = True
        with self.assertRaises(PersistenceError):
            self.store.create_file(None, 'Contrato', SimpleUploadedFile('a.pdf', b'1'))
        self.assertEqual(len(self.client.blobs), 1)
        self.assertEqual(len(self.notifications.errors()), 1)

    def test_create_file_upload_failure_skips_insert(self):
        self.client.fail_upload = True
        with self.assertRaises(StorageError):
            self.store.create_file(None, 'Contrato', SimpleUploadedFile('a.pdf', b'1'))
        self.assertNotIn('insert_node', [call[0] for call in self.client.calls])

    def test_rename(self):
        self.store.rename(self.photos.id, 'Imagens')
        self.assertEqual(self.client.rows[self.photos.id].title, 'Imagens')

    def test_rename_empty_title(self):
        with self.assertRaises(ValidationError):
            self.store.rename(self.photos.id, '')
        self.assertEqual(self.client.rows[self.photos.id].title, 'Fotos')

    def test_move_onto_itself_is_noop(self):
        self.store.refresh()
        before = [n.id for n in self.store.nodes]
        calls_before = len(self.client.calls)

        self.assertFalse(self.store.move(self.docs.id, self.docs.id))
        self.assertEqual([n.id for n in self.store.nodes], before)
        self.assertEqual(len(self.client.calls), calls_before)
        self.assertEqual(self.notifications.items, [])

    def test_move_to_current_parent_is_noop(self):
        self.assertFalse(self.store.move(self.contract.id, self.docs.id))
        self.assertNotIn('update_node', [call[0] for call in self.client.calls])

    def test_move_into_folder(self):
        self.assertTrue(self.store.move(self.readme.id, self.photos.id))
        self.assertEqual(self.client.rows[self.readme.id].parent_id, self.photos.id)
        self.assertNotIn(self.readme.id, [n.id for n in self.store.nodes])

    def test_move_to_root(self):
        self.store.navigate_into(self.docs.id)
        self.assertTrue(self.store.move(self.contract.id, None))
        self.assertIsNone(self.client.rows[self.contract.id].parent_id)
        self.assertEqual(self.store.nodes, [])

    def test_move_into_file_rejected(self):
        with self.assertRaises(ValidationError):
            self.store.move(self.photos.id, self.readme.id)

    def test_move_into_own_descendant_rejected(self):
        child = self.client.add('2024', is_folder=True, parent_id=self.docs.id)
        grandchild = self.client.add('Janeiro', is_folder=True, parent_id=child.id)
        with self.assertRaises(ValidationError):
            self.store.move(self.docs.id, grandchild.id)
        self.assertIsNone(self.client.rows[self.docs.id].parent_id)

    def test_move_failure_notifies(self):
        self.client.fail_update = True
        with self.assertRaises(PersistenceError):
            self.store.move(self.readme.id, self.photos.id)
        self.assertEqual(len(self.notifications.errors()), 1)
        self.assertIsNone(self.client.rows[self.readme.id].parent_id)

    def test_delete_file_removes_blob_first(self):
        self.store.delete(self.readme.id)
        names = [call[0] for call in self.client.calls]
        self.assertLess(names.index('remove_blob'), names.index('delete_node'))
        self.assertNotIn(self.readme.id, self.client.rows)

    def test_delete_file_blob_failure_still_deletes_row(self):
        self.client.fail_remove_blob = True
        self.store.delete(self.readme.id)
        self.assertNotIn(self.readme.id, self.client.rows)

    def test_delete_folder_cascades_without_blob_removal(self):
        self.store.delete(self.docs.id)
        self.assertNotIn(self.contract.id, self.client.rows)
        self.assertNotIn('remove_blob', [call[0] for call in self.client.calls])

    def test_navigation_and_breadcrumb(self):
        child = self.client.add('2024', is_folder=True, parent_id=self.docs.id)
        self.store.navigate_into(self.docs.id)
        self.assertEqual([n.title for n in self.store.nodes], ['2024', 'contrato.pdf'])
        self.assertEqual([n.id for n in self.store.breadcrumb], [self.docs.id])

        self.store.navigate_into(child.id)
        self.assertEqual([n.id for n in self.store.breadcrumb], [child.id])

        self.store.navigate_up()
        self.assertEqual(self.store.current_folder_id, self.docs.id)
        self.store.navigate_up()
        self.assertIsNone(self.store.current_folder_id)
        self.assertEqual(self.store.breadcrumb, [])

    def test_navigate_into_file_rejected(self):
        with self.assertRaises(ValidationError):
            self.store.navigate_into(self.readme.id)

    def test_stale_listing_is_discarded(self):
        first = self.store.begin_fetch()
        second = self.store.begin_fetch()
        newer = [self.photos]
        self.assertTrue(self.store.apply_listing(second, newer))
        self.assertFalse(self.store.apply_listing(first, [self.docs]))
        self.assertEqual(self.store.nodes, newer)

    def test_search_by_title_and_product(self):
        self.client.add('Laudo', product_title='Porsche 911')
        self.store.refresh()
        self.assertEqual([n.title for n in self.store.search('porsche')], ['Laudo'])
        self.assertEqual([n.title for n in self.store.search('FOT')], ['Fotos'])
        self.assertEqual(len(self.store.search('')), len(self.store.nodes))

    def test_close(self):
        with TreeStore(self.client) as store:
            store.refresh()
        self.assertTrue(self.client.closed)
        self.assertEqual(store.nodes, [])

    def test_sort_nodes(self):
        nodes = [Node(1, 'b', False), Node(2, 'Z', True), Node(3, 'a', False), Node(4, 'c', True)]
        self.assertEqual([n.id for n in sort_nodes(nodes)], [4, 2, 3, 1])


class InsumoClientTests(TestCase):
    """ORM-backed client"""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        storage = LocalBlobStorage('insumos', storage=FileSystemStorage(location=self.tmpdir, base_url='/media/'))
        self.user = TestDataFactory.create_user()
        self.client = InsumoClient(user=self.user, storage=storage)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_insert_and_fetch(self):
        product = TestDataFactory.create_product(title='Iate')
        folder = self.client.insert_node(title='Barcos', is_folder=True, parent_id=None)
        self.client.insert_node(title='Manual', is_folder=False, parent_id=folder.id,
                                file_url='/media/insumos/x.pdf', product_id=product.id)
        children = self.client.fetch_children(folder.id)
        self.assertEqual(len(children), 1)
        self.assertEqual(children[0].product_title, 'Iate')
        self.assertEqual(Insumo.objects.get(pk=folder.id).created_by, self.user)

    def test_fetch_missing_node(self):
        with self.assertRaises(NotFoundError):
            self.client.fetch_node(12345)

    def test_update_missing_node(self):
        with self.assertRaises(NotFoundError):
            self.client.update_node(12345, title='x')

    def test_delete_cascades(self):
        folder = TestDataFactory.create_folder()
        sub = TestDataFactory.create_folder(parent=folder)
        TestDataFactory.create_file(parent=sub)
        self.client.delete_node(folder.id)
        self.assertFalse(Insumo.objects.exists())

    def test_blob_roundtrip(self):
        url = self.client.upload_blob('123-abc.txt', SimpleUploadedFile('a.txt', b'hello'))
        self.assertEqual(url, '/media/insumos/123-abc.txt')
        self.client.remove_blob(url)
        self.assertFalse(self.client.storage.storage.exists('insumos/123-abc.txt'))


class InsumoAPITests(TestCase):
    """REST endpoints"""

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.folder = TestDataFactory.create_folder(title='Contratos')
        self.file = TestDataFactory.create_file(title='Proposta', parent=self.folder)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_list_root(self):
        TestDataFactory.create_file(title='Solto')
        response = self.client.get('/api/v1/insumos/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['title'] for n in response.data['results']], ['Contratos', 'Solto'])
        self.assertIsNone(response.data['folder'])
        self.assertEqual(response.data['breadcrumb'], [])

    def test_list_folder_with_search(self):
        TestDataFactory.create_file(title='Escritura', parent=self.folder)
        response = self.client.get('/api/v1/insumos/', {'folder': self.folder.id, 'search': 'escr'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['title'] for n in response.data['results']], ['Escritura'])
        self.assertEqual(response.data['breadcrumb'][0]['id'], self.folder.id)

    def test_list_missing_folder(self):
        response = self.client.get('/api/v1/insumos/', {'folder': 9999})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_invalid_folder_param(self):
        response = self.client.get('/api/v1/insumos/', {'folder': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_folder(self):
        response = self.client.post('/api/v1/insumos/', {'mode': 'folder', 'title': 'Aditivos', 'parent': self.folder.id})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['node']['is_folder'])
        self.assertEqual(response.data['node']['parent_id'], self.folder.id)
        self.assertEqual(response.data['notifications'][-1]['message'], 'Pasta criada com sucesso!')

    def test_create_folder_empty_title(self):
        response = self.client.post('/api/v1/insumos/', {'mode': 'folder', 'title': ''})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Digite o nome da pasta')

    def test_upload_file(self):
        storage = LocalBlobStorage('insumos', storage=FileSystemStorage(location=self.tmpdir, base_url='/media/'))
        product = TestDataFactory.create_product()
        with mock.patch('gerezim.insumos.clients.get_blob_storage', return_value=storage):
            response = self.client.post('/api/v1/insumos/', {
                'mode': 'file',
                'title': 'Matrícula',
                'parent': str(self.folder.id),
                'product': str(product.id),
                'file': SimpleUploadedFile('matricula.pdf', b'%PDF-1.4', content_type='application/pdf'),
            }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        node = response.data['node']
        self.assertEqual(node['file_type'], 'application/pdf')
        self.assertEqual(node['file_size'], 8)
        self.assertEqual(node['product_id'], product.id)
        self.assertTrue(node['file_url'].startswith('/media/insumos/'))
        self.assertTrue(AuditLog.objects.filter(action='file_upload').exists())

    def test_upload_without_file(self):
        response = self.client.post('/api/v1/insumos/', {'mode': 'file', 'title': 'X'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_upload_with_unknown_product(self):
        response = self.client.post('/api/v1/insumos/', {'mode': 'folder', 'title': 'X', 'product': '999'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rename(self):
        response = self.client.patch(f'/api/v1/insumos/{self.file.id}/', {'title': 'Proposta final'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.file.refresh_from_db()
        self.assertEqual(self.file.title, 'Proposta final')
        self.assertEqual(response.data['results'][0]['title'], 'Proposta final')

    def test_rename_empty(self):
        response = self.client.patch(f'/api/v1/insumos/{self.file.id}/', {'title': ' '})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_move(self):
        target = TestDataFactory.create_folder(title='Arquivo morto')
        response = self.client.post(f'/api/v1/insumos/{self.file.id}/move/', {'parent': target.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['moved'])
        self.file.refresh_from_db()
        self.assertEqual(self.file.parent_id, target.id)
        self.assertTrue(AuditLog.objects.filter(action='node_move').exists())

    def test_move_onto_itself(self):
        response = self.client.post(f'/api/v1/insumos/{self.folder.id}/move/', {'parent': self.folder.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['moved'])
        self.folder.refresh_from_db()
        self.assertIsNone(self.folder.parent_id)

    def test_move_into_descendant(self):
        sub = TestDataFactory.create_folder(parent=self.folder)
        response = self.client.post(f'/api/v1/insumos/{self.folder.id}/move/', {'parent': sub.id})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @mock.patch('gerezim.insumos.clients.InsumoClient.remove_blob')
    def test_delete_folder(self, mock_remove):
        response = self.client.delete(f'/api/v1/insumos/{self.folder.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Insumo.objects.exists())
        mock_remove.assert_not_called()

    @mock.patch('gerezim.insumos.clients.InsumoClient.remove_blob')
    def test_delete_file(self, mock_remove):
        response = self.client.delete(f'/api/v1/insumos/{self.file.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_remove.assert_called_once_with(self.file.file_url)
        self.assertEqual(response.data['results'], [])
