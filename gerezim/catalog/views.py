import logging
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.shortcuts import get_object_or_404
from gerezim.core.exceptions import GerezimError
from gerezim.core.notifications import NotificationCollector
from gerezim.core.permissions import IsAdminRole
from gerezim.core.utils import create_audit_log, error_response, field_changes, snapshot
from .filters import ProductFilter
from .models import Product, Favorite
from .serializers import ProductSerializer, ProductListSerializer, FavoriteSerializer
from .services import FavoriteClient, FavoritesStore, upload_product_images

logger = logging.getLogger(__name__)

AUDITED_FIELDS = ('title', 'price', 'status', 'category', 'is_active')


@api_view(['GET'])
@permission_classes([AllowAny])
def storefront(request):
    """Public catalog: active products with search, category, status, type and sort filters"""
    queryset = Product.objects.filter(is_active=True)
    product_filter = ProductFilter(request.query_params, queryset=queryset)
    if not product_filter.is_valid():
        return Response(product_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer = ProductListSerializer(product_filter.qs, many=True)
    return Response({
        'count': len(serializer.data),
        'categories': [choice[0] for choice in Product.CATEGORY_CHOICES],
        'results': serializer.data,
    })


@api_view(['GET'])
@permission_classes([AllowAny])
def storefront_detail(request, pk):
    """Public product detail"""
    product = get_object_or_404(Product, pk=pk, is_active=True)
    return Response(ProductSerializer(product).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def product_list_create(request):
    """List all products or create a new product (admins only)"""
    if request.method == 'GET':
        product_filter = ProductFilter(request.query_params, queryset=Product.objects.all())
        serializer = ProductListSerializer(product_filter.qs, many=True)
        return Response(serializer.data)

    if not request.user.is_admin:
        return Response({'error': 'Acesso restrito a administradores.'}, status=status.HTTP_403_FORBIDDEN)
    serializer = ProductSerializer(data=request.data)
    if serializer.is_valid():
        product = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='Product',
            object_id=product.id,
            object_name=product.title,
            changes={'price': str(product.price), 'category': product.category}
        )
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(Product, pk=pk)

    if request.method == 'GET':
        return Response(ProductSerializer(product).data)

    if not request.user.is_admin:
        return Response({'error': 'Acesso restrito a administradores.'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'PATCH':
        before = snapshot(product, AUDITED_FIELDS)
        serializer = ProductSerializer(product, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            changes = field_changes(before, snapshot(product, AUDITED_FIELDS))
            if changes:
                create_audit_log(
                    request=request,
                    action='update',
                    model_name='Product',
                    object_id=product.id,
                    object_name=product.title,
                    changes=changes
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        product_id = product.id
        product_title = product.title
        product.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Product',
            object_id=product_id,
            object_name=product_title,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
@parser_classes([MultiPartParser, FormParser])
def product_upload_images(request, pk):
    """Upload one or more images (multipart field 'files') and attach them to the product"""
    product = get_object_or_404(Product, pk=pk)
    files = request.FILES.getlist('files')
    if not files:
        return Response({'error': 'Informe o produto e as imagens'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        urls = upload_product_images(product, files)
    except GerezimError as e:
        logger.error(f"Image upload failed for product {pk}: {e.message}")
        return error_response(e)

    create_audit_log(
        request=request,
        action='image_upload',
        model_name='Product',
        object_id=product.id,
        object_name=product.title,
        changes={'urls': urls}
    )
    return Response({'urls': urls, 'images': product.images}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def favorite_list(request):
    """List the current user's favorite products"""
    favorites = Favorite.objects.filter(user=request.user).select_related('product').order_by('-created_at')
    return Response(FavoriteSerializer(favorites, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([JSONParser])
def favorite_toggle(request, product_id):
    """Add the product to the user's favorites, or remove it when already there"""
    get_object_or_404(Product, pk=product_id)
    notifications = NotificationCollector()
    store = FavoritesStore(FavoriteClient(request.user), notify=notifications)
    try:
        store.load()
        is_favorite = store.toggle(product_id)
    except GerezimError as e:
        response = error_response(e)
        response.data['notifications'] = notifications.as_list()
        return response

    return Response({
        'product_id': product_id,
        'is_favorite': is_favorite,
        'notifications': notifications.as_list(),
    })
