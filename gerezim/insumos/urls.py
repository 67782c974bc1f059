from django.urls import path
from . import views

urlpatterns = [
    path('insumos/', views.insumo_list_create, name='insumo-list-create'),
    path('insumos/<int:pk>/', views.insumo_detail, name='insumo-detail'),
    path('insumos/<int:pk>/move/', views.insumo_move, name='insumo-move'),
]
