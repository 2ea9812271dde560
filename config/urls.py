# config/urls.py

from django.conf import settings
from django.contrib import admin
from django.urls import path, include
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

# ADMIN_URL may be configured with or without slashes
admin_url = settings.ADMIN_URL.strip("/") + "/"

urlpatterns = [
    path(admin_url, admin.site.urls),

    # --- APIs ---
    path("api/", include("apps.utils.urls")),
    path("api/", include("apps.catalog.urls")),
    path("api/", include("apps.orders.urls")),

    # --- Docs ---
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
]
