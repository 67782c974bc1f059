import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework_simplejwt.tokens import RefreshToken
from django.db.models import Q
from django.shortcuts import get_object_or_404
from .filters import AuditLogFilter, UserFilter
from .models import AuditLog, Setting, User
from .permissions import IsAdminRole
from .serializers import (
    AuditLogSerializer, ProfileSerializer, RegisterSerializer,
    SettingSerializer, UserSerializer
)
from .utils import create_audit_log, field_changes, snapshot

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20


def issue_tokens(user):
    """Refresh/access pair carrying the role claims the frontend routes on"""
    refresh = RefreshToken.for_user(user)
    refresh['username'] = user.username
    refresh['role'] = user.role
    return {'refresh': str(refresh), 'access': str(refresh.access_token)}


class LoginSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        super().validate(attrs)
        logger.info(f"User {self.user.username} logged in")
        return {**issue_tokens(self.user), 'user': ProfileSerializer(self.user).data}


class LoginView(TokenObtainPairView):
    serializer_class = LoginSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Create a broker account and log it in"""
    serializer = RegisterSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    user = serializer.save()
    create_audit_log(request=request, action='create', model_name='User',
                     object_id=user.id, object_name=user.username, user=user)
    return Response({'user': ProfileSerializer(user).data, **issue_tokens(user)},
                    status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    if request.method == 'GET':
        return Response(ProfileSerializer(request.user).data)

    serializer = ProfileSerializer(request.user, data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer.save()
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_list(request):
    """Accounts, filterable by role, is_active and a free-text search"""
    user_filter = UserFilter(request.query_params, queryset=User.objects.order_by('username'))
    if not user_filter.is_valid():
        return Response(user_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response(UserSerializer(user_filter.qs, many=True).data)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, pk):
    """Admins change roles and deactivate accounts here; they cannot delete themselves"""
    account = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(account).data)

    if request.method == 'PATCH':
        before = snapshot(account, ('role', 'is_active'))
        serializer = UserSerializer(account, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        changes = field_changes(before, snapshot(account, ('role', 'is_active')))
        if changes:
            create_audit_log(request=request, action='update', model_name='User',
                             object_id=account.id, object_name=account.username, changes=changes)
        return Response(serializer.data)

    if account.pk == request.user.pk:
        return Response({'error': 'Você não pode excluir a própria conta.'}, status=status.HTTP_400_BAD_REQUEST)
    username = account.username
    account.delete()
    create_audit_log(request=request, action='delete', model_name='User', object_id=pk, object_name=username)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_list_create(request):
    if request.method == 'GET':
        return Response(SettingSerializer(Setting.objects.order_by('key'), many=True).data)

    serializer = SettingSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    setting = serializer.save()
    create_audit_log(request=request, action='create', model_name='Setting',
                     object_id=setting.key, object_name=setting.key)
    return Response(serializer.data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_detail(request, key):
    """Read, upsert or remove a single setting by its key"""
    if request.method == 'PUT':
        if 'value' not in request.data:
            return Response({'value': ['Campo obrigatório']}, status=status.HTTP_400_BAD_REQUEST)
        previous = Setting.get_value(key)
        setting = Setting.set_value(key, str(request.data['value']), request.data.get('description', ''))
        create_audit_log(request=request, action='update', model_name='Setting', object_id=key, object_name=key,
                         changes=field_changes({'value': previous}, {'value': setting.value}))
        return Response(SettingSerializer(setting).data)

    setting = get_object_or_404(Setting, key=key)
    if request.method == 'GET':
        return Response(SettingSerializer(setting).data)

    setting.delete()
    create_audit_log(request=request, action='delete', model_name='Setting', object_id=key, object_name=key)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """Audit trail, newest first. Brokers only see what they did themselves."""
    queryset = AuditLog.objects.select_related('user')
    if not request.user.is_admin:
        queryset = queryset.filter(user=request.user)

    log_filter = AuditLogFilter(request.query_params, queryset=queryset)
    if not log_filter.is_valid():
        return Response(log_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response(AuditLogSerializer(log_filter.qs.order_by('-created_at'), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    queryset = AuditLog.objects.select_related('user')
    if not request.user.is_admin:
        queryset = queryset.filter(user=request.user)
    return Response(AuditLogSerializer(get_object_or_404(queryset, pk=pk)).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Search products, contacts, insumos and (for admins) opportunities by name"""
    from gerezim.catalog.models import Product
    from gerezim.catalog.serializers import ProductListSerializer
    from gerezim.contacts.models import Contact
    from gerezim.contacts.serializers import ContactSerializer
    from gerezim.insumos.models import Insumo
    from gerezim.insumos.serializers import InsumoSerializer
    from gerezim.pipeline.models import Opportunity
    from gerezim.pipeline.serializers import OpportunitySerializer

    results = {'products': [], 'contacts': [], 'insumos': [], 'opportunities': []}
    query = request.query_params.get('q', '').strip()
    if not query:
        return Response(results)

    products = Product.objects.filter(
        Q(title__icontains=query) | Q(subtitle__icontains=query) | Q(description__icontains=query)
    )
    contacts = Contact.objects.filter(
        Q(name__icontains=query) | Q(phone__icontains=query) | Q(email__icontains=query)
    )
    insumos = Insumo.objects.filter(title__icontains=query).select_related('product')
    results['products'] = ProductListSerializer(products[:SEARCH_LIMIT], many=True).data
    results['contacts'] = ContactSerializer(contacts[:SEARCH_LIMIT], many=True).data
    results['insumos'] = InsumoSerializer(insumos[:SEARCH_LIMIT], many=True).data

    if request.user.is_admin:
        opportunities = Opportunity.objects.filter(
            Q(title__icontains=query) | Q(notes__icontains=query)
        ).select_related('contact', 'product')
        results['opportunities'] = OpportunitySerializer(opportunities[:SEARCH_LIMIT], many=True).data

    return Response(results)
