"""
URL configuration for the notification service.

URL Structure:
    /                                  - ReDoc API documentation
    /admin/                            - Django admin interface
    /schema/                           - OpenAPI schema (YAML)
    /api/v1/auth/token/                - Obtain JWT pair
    /api/v1/auth/token/refresh/        - Refresh access token
    /api/v1/notifications/             - Notification inbox (?state=unread|read)
        {id}/                          - Notification detail
        {id}/read/                     - Mark as read (POST)
        {id}/unread/                   - Mark as unread (POST)
        read-all/                      - Mark all as read (POST)
        unread-count/                  - Unread counters per category (GET)

WebSocket routes live in notifications.routing and are mounted in
config/asgi.py.
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Notifications Admin"
admin.site.site_title = "Notifications Admin"
admin.site.index_title = "Notification dispatch"
