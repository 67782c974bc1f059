from django.urls import path
from .views import (
    storefront, storefront_detail,
    product_list_create, product_detail, product_upload_images,
    favorite_list, favorite_toggle
)

urlpatterns = [
    # Public storefront
    path('storefront/', storefront, name='storefront'),
    path('storefront/<int:pk>/', storefront_detail, name='storefront-detail'),

    # Product endpoints
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/images/', product_upload_images, name='product-upload-images'),

    # Favorite endpoints
    path('favorites/', favorite_list, name='favorite-list'),
    path('favorites/<int:product_id>/toggle/', favorite_toggle, name='favorite-toggle'),
]
