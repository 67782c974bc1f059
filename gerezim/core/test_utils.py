"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.utils import timezone
from datetime import timedelta
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from gerezim.catalog.models import Product, Favorite
from gerezim.concierge.models import ConciergeFolder, ConciergeConversation, ConciergeMessage
from gerezim.contacts.models import Contact, Interaction
from gerezim.insumos.models import Insumo
from gerezim.pipeline.models import Opportunity, PipelineStage
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role='user', is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_admin(username=None):
        """Create a user with the 'adm' role"""
        return TestDataFactory.create_user(username=username, role='adm')

    @staticmethod
    def create_product(title=None, price=None, category='Carros de Luxo', is_active=True, images=None):
        """Create a test product"""
        if not title:
            title = f'Product_{TestDataFactory.random_string(6)}'
        if price is None:
            price = Decimal('250000.00')
        return Product.objects.create(
            title=title,
            description=f'Test product {title}',
            price=price,
            category=category,
            is_active=is_active,
            images=images or []
        )

    @staticmethod
    def create_favorite(user, product):
        return Favorite.objects.create(user=user, product=product)

    @staticmethod
    def create_contact(name=None, phone=None, email=None, status='novo', user=None):
        """Create a test contact"""
        if not name:
            name = f'Contact_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'119{random.randint(10000000, 99999999)}'
        if email is None:
            email = f'{name.lower()}@test.com'
        return Contact.objects.create(
            name=name,
            phone=phone,
            email=email,
            status=status,
            created_by=user
        )

    @staticmethod
    def create_interaction(contact, content=None, user=None):
        return Interaction.objects.create(
            contact=contact,
            content=content or f'Note {TestDataFactory.random_string(8)}',
            created_by=user
        )

    @staticmethod
    def create_opportunity(title=None, value=None, stage=PipelineStage.NEW, category='carro',
                           status='novo', contact=None, product=None, created_at=None, user=None):
        """Create a test opportunity; created_at overrides the creation timestamp"""
        if not title:
            title = f'Opportunity_{TestDataFactory.random_string(6)}'
        if value is None:
            value = Decimal('100000.00')
        opportunity = Opportunity.objects.create(
            title=title,
            value=value,
            pipeline_stage=stage,
            category=category,
            status=status,
            contact=contact,
            product=product,
            created_by=user
        )
        if created_at is not None:
            Opportunity.objects.filter(pk=opportunity.pk).update(created_at=created_at)
            opportunity.refresh_from_db()
        return opportunity

    @staticmethod
    def create_folder(title=None, parent=None, user=None):
        """Create a test insumo folder"""
        if not title:
            title = f'Folder_{TestDataFactory.random_string(6)}'
        return Insumo.objects.create(title=title, is_folder=True, parent=parent, created_by=user)

    @staticmethod
    def create_file(title=None, parent=None, file_url=None, product=None, user=None):
        """Create a test insumo file row (no blob is stored)"""
        if not title:
            title = f'File_{TestDataFactory.random_string(6)}'
        if not file_url:
            file_url = f'http://testserver/media/insumos/{TestDataFactory.random_string(8)}.pdf'
        return Insumo.objects.create(
            title=title,
            is_folder=False,
            parent=parent,
            file_url=file_url,
            file_type='application/pdf',
            file_size=1024,
            product=product,
            created_by=user
        )

    @staticmethod
    def create_concierge_folder(name=None, position=0):
        if not name:
            name = f'Folder_{TestDataFactory.random_string(6)}'
        return ConciergeFolder.objects.create(name=name, position=position)

    @staticmethod
    def create_conversation(title=None, folder=None, user=None):
        if not title:
            title = f'Conversation_{TestDataFactory.random_string(6)}'
        return ConciergeConversation.objects.create(title=title, folder=folder, created_by=user)

    @staticmethod
    def create_message(conversation, content='Olá', sender='user'):
        return ConciergeMessage.objects.create(conversation=conversation, content=content, sender=sender)

    @staticmethod
    def days_ago(days):
        return timezone.now() - timedelta(days=days)


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
