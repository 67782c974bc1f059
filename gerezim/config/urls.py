"""
URL configuration for the Gerezim project.

Every app mounts its endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Gerezim - Painel Administrativo"
admin.site.site_title = "Gerezim Admin"
admin.site.index_title = "Bem-vindo ao painel Gerezim"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('gerezim.core.urls')),
    path('api/v1/', include('gerezim.catalog.urls')),
    path('api/v1/', include('gerezim.contacts.urls')),
    path('api/v1/', include('gerezim.insumos.urls')),
    path('api/v1/', include('gerezim.pipeline.urls')),
    path('api/v1/', include('gerezim.reports.urls')),
    path('api/v1/', include('gerezim.concierge.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
