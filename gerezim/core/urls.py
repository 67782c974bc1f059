from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView
from . import views

urlpatterns = [
    path('auth/register/', views.register, name='register'),
    path('auth/login/', views.LoginView.as_view(), name='login'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('auth/me/', views.user_me, name='user-me'),

    path('users/', views.user_list, name='user-list'),
    path('users/<int:pk>/', views.user_detail, name='user-detail'),

    path('settings/', views.setting_list_create, name='setting-list'),
    path('settings/<str:key>/', views.setting_detail, name='setting-detail'),

    path('audit-logs/', views.audit_log_list, name='audit-log-list'),
    path('audit-logs/<int:pk>/', views.audit_log_detail, name='audit-log-detail'),

    path('search/', views.global_search, name='global-search'),
]
