from django.urls import path
from . import views

urlpatterns = [
    path('concierge/folders/', views.folder_list_create, name='concierge-folder-list-create'),
    path('concierge/folders/reorder/', views.folder_reorder, name='concierge-folder-reorder'),
    path('concierge/folders/<int:pk>/', views.folder_detail, name='concierge-folder-detail'),
    path('concierge/conversations/', views.conversation_list_create, name='concierge-conversation-list-create'),
    path('concierge/conversations/<int:pk>/', views.conversation_detail, name='concierge-conversation-detail'),
    path('concierge/conversations/<int:pk>/messages/', views.conversation_messages, name='concierge-conversation-messages'),
    path('concierge/settings/webhook/', views.webhook_settings, name='concierge-webhook-settings'),
    path('concierge/webhook/', views.webhook_proxy, name='concierge-webhook-proxy'),
]
