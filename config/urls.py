"""
URL configuration for config project.

Public API paths have no prefix and no trailing slash, matching what the
mobile client already calls.
"""
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from apps.tiers.views import tier_list
from config.views import health_check

urlpatterns = [
    # Health check
    path('health', health_check, name='health-check'),

    # Admin
    path('admin/', admin.site.urls),

    # API Documentation
    path('schema', SpectacularAPIView.as_view(), name='api-schema'),
    path('docs', SpectacularSwaggerView.as_view(url_name='api-schema'), name='api-docs'),

    # API endpoints
    path('tiers', tier_list, name='tier-list'),
    path('payments/', include('apps.payments.urls')),
    path('', include('apps.ledger.urls')),
]


# Custom error handlers
handler404 = 'config.views.error_404'
handler500 = 'config.views.error_500'
