"""
URL configuration for the storefront backend.

- /admin/           Django admin (jazzmin)
- /api/elearning/   authentication and current user
- /api/payments/    checkout, provider callbacks, admin decisions, access checks
"""

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/elearning/", include("elearning.urls")),
    path("api/payments/", include("core.payments.urls")),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
