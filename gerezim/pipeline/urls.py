from django.urls import path
from . import views

urlpatterns = [
    path('pipeline/board/', views.pipeline_board, name='pipeline-board'),
    path('opportunities/', views.opportunity_list_create, name='opportunity-list-create'),
    path('opportunities/<int:pk>/', views.opportunity_detail, name='opportunity-detail'),
    path('opportunities/<int:pk>/move/', views.opportunity_move, name='opportunity-move'),
]
