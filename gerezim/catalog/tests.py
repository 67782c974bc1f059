"""
Test suite for Catalog module
Tests: Product CRUD, storefront filters, image upload, favorites toggle
"""
from decimal import Decimal
from unittest import mock
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from rest_framework import status
from gerezim.catalog.models import Favorite, Product
from gerezim.catalog.services import FavoritesStore, upload_product_images
from gerezim.core.exceptions import FetchError, PersistenceError, StorageError, ValidationError
from gerezim.core.notifications import ERROR, SUCCESS, NotificationCollector
from gerezim.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class FakeFavoriteClient:
    def __init__(self, product_ids=(), fail_writes=False):
        self.product_ids = set(product_ids)
        self.fail_writes = fail_writes
        self.writes = []

    def fetch_product_ids(self):
        return set(self.product_ids)

    def add(self, product_id):
        if self.fail_writes:
            raise PersistenceError('offline')
        self.writes.append(('add', product_id))

    def remove(self, product_id):
        if self.fail_writes:
            raise PersistenceError('offline')
        self.writes.append(('remove', product_id))


class FakeBlobStorage:
    def __init__(self, fail_after=None):
        self.paths = []
        self.fail_after = fail_after

    def upload(self, path, content, content_type=None):
        if self.fail_after is not None and len(self.paths) >= self.fail_after:
            raise StorageError('quota')
        self.paths.append(path)
        return path

    def public_url(self, path):
        return f'https://cdn.test/product-images/{path}'


class FavoritesStoreTests(TestCase):
    """Test the optimistic favorites toggle"""

    def test_toggle_adds_then_removes(self):
        client = FakeFavoriteClient()
        notifications = NotificationCollector()
        store = FavoritesStore(client, notify=notifications)
        store.load()

        self.assertTrue(store.toggle(10))
        self.assertTrue(store.is_favorite(10))
        self.assertFalse(store.toggle(10))
        self.assertFalse(store.is_favorite(10))
        self.assertEqual(client.writes, [('add', 10), ('remove', 10)])
        self.assertEqual([n['level'] for n in notifications.items], [SUCCESS, SUCCESS])

    def test_toggle_failure_rolls_back(self):
        client = FakeFavoriteClient(product_ids={10}, fail_writes=True)
        notifications = NotificationCollector()
        store = FavoritesStore(client, notify=notifications)
        store.load()

        with self.assertRaises(PersistenceError):
            store.toggle(10)
        self.assertTrue(store.is_favorite(10))
        self.assertEqual(len(notifications.errors()), 1)


class ProductImageUploadTests(TestCase):

    def setUp(self):
        self.product = TestDataFactory.create_product(images=['https://cdn.test/existing.jpg'])

    def test_upload_appends_urls(self):
        storage = FakeBlobStorage()
        files = [
            SimpleUploadedFile('front view.jpg', b'img1', content_type='image/jpeg'),
            SimpleUploadedFile('back.png', b'img2', content_type='image/png'),
        ]
        urls = upload_product_images(self.product, files, storage=storage)

        self.assertEqual(len(urls), 2)
        self.assertTrue(storage.paths[0].startswith(f'{self.product.id}/'))
        self.assertTrue(storage.paths[0].endswith('-front_view.jpg'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.images, ['https://cdn.test/existing.jpg'] + urls)
        self.assertEqual(self.product.thumbnail, 'https://cdn.test/existing.jpg')

    def test_partial_failure_keeps_uploaded_images(self):
        storage = FakeBlobStorage(fail_after=1)
        files = [
            SimpleUploadedFile('a.jpg', b'1', content_type='image/jpeg'),
            SimpleUploadedFile('b.jpg', b'2', content_type='image/jpeg'),
        ]
        with self.assertRaises(StorageError):
            upload_product_images(self.product, files, storage=storage)
        self.product.refresh_from_db()
        self.assertEqual(len(self.product.images), 2)

    def test_upload_requires_files(self):
        with self.assertRaises(ValidationError):
            upload_product_images(self.product, [], storage=FakeBlobStorage())


class StorefrontTests(TestCase):
    """Public catalog listing"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.cheap = TestDataFactory.create_product(title='Jet ski', price=Decimal('80000'), category='Embarcações')
        self.expensive = TestDataFactory.create_product(title='Cobertura Jardins', price=Decimal('9000000'), category='Imóveis')
        self.hidden = TestDataFactory.create_product(title='Rascunho', is_active=False)

    def test_storefront_is_public_and_hides_inactive(self):
        response = self.client.get('/api/v1/storefront/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        titles = [item['title'] for item in response.data['results']]
        self.assertNotIn('Rascunho', titles)
        self.assertEqual(response.data['count'], 2)
        self.assertIn('Imóveis', response.data['categories'])

    def test_storefront_filters(self):
        response = self.client.get('/api/v1/storefront/', {'category': 'Imóveis'})
        self.assertEqual([item['title'] for item in response.data['results']], ['Cobertura Jardins'])

        response = self.client.get('/api/v1/storefront/', {'search': 'jet'})
        self.assertEqual([item['title'] for item in response.data['results']], ['Jet ski'])

    def test_storefront_sort_by_price(self):
        response = self.client.get('/api/v1/storefront/', {'sort': 'price_asc'})
        self.assertEqual([item['title'] for item in response.data['results']], ['Jet ski', 'Cobertura Jardins'])
        response = self.client.get('/api/v1/storefront/', {'sort': 'price_desc'})
        self.assertEqual([item['title'] for item in response.data['results']], ['Cobertura Jardins', 'Jet ski'])

    def test_storefront_detail_hides_inactive(self):
        response = self.client.get(f'/api/v1/storefront/{self.hidden.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ProductAPITests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()

    def test_admin_creates_product(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/products/', {
            'title': 'Lamborghini Urus',
            'price': '2500000.00',
            'category': 'Carros de Luxo',
            'tags': ['suv', 'blindado'],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Product.objects.get().tags, ['suv', 'blindado'])

    def test_regular_user_cannot_create(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/products/', {'title': 'X', 'price': '1', 'category': 'Premium'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_negative_price_rejected(self):
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/products/', {'title': 'X', 'price': '-1', 'category': 'Premium'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_and_delete(self):
        product = TestDataFactory.create_product(title='Rolex')
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/products/{product.id}/', {'price': '95000.00'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        product.refresh_from_db()
        self.assertEqual(product.price, Decimal('95000.00'))

        response = self.client.delete(f'/api/v1/products/{product.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.id).exists())

    @mock.patch('gerezim.catalog.views.upload_product_images')
    def test_upload_images_endpoint(self, mock_upload):
        product = TestDataFactory.create_product()
        mock_upload.return_value = ['https://cdn.test/product-images/1/a.jpg']
        self.client.authenticate_user(self.admin)
        response = self.client.post(
            f'/api/v1/products/{product.id}/images/',
            {'files': [SimpleUploadedFile('a.jpg', b'1', content_type='image/jpeg')]},
            format='multipart'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['urls'], ['https://cdn.test/product-images/1/a.jpg'])

    def test_upload_images_requires_files(self):
        product = TestDataFactory.create_product()
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/products/{product.id}/images/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class FavoriteAPITests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_toggle_on_and_off(self):
        url = f'/api/v1/favorites/{self.product.id}/toggle/'
        response = self.client.post(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_favorite'])
        self.assertTrue(Favorite.objects.filter(user=self.user, product=self.product).exists())

        response = self.client.post(url)
        self.assertFalse(response.data['is_favorite'])
        self.assertFalse(Favorite.objects.filter(user=self.user).exists())
        self.assertEqual(response.data['notifications'][0]['level'], SUCCESS)

    def test_toggle_unknown_product(self):
        response = self.client.post('/api/v1/favorites/9999/toggle/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    @mock.patch('gerezim.catalog.services.FavoriteClient.add', side_effect=PersistenceError('offline'))
    def test_toggle_failure_reports_error(self, mock_add):
        response = self.client.post(f'/api/v1/favorites/{self.product.id}/toggle/')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['notifications'][0]['level'], ERROR)
        self.assertFalse(Favorite.objects.exists())

    @mock.patch('gerezim.catalog.services.FavoriteClient.fetch_product_ids', side_effect=FetchError())
    def test_load_failure(self, mock_fetch):
        response = self.client.post(f'/api/v1/favorites/{self.product.id}/toggle/')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)

    def test_list_favorites(self):
        TestDataFactory.create_favorite(self.user, self.product)
        response = self.client.get('/api/v1/favorites/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['product']['id'], self.product.id)
