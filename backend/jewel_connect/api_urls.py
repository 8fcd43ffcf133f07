"""
Main API URL configuration for Jewel Connect.
Consolidates all app API endpoints.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
    TokenVerifyView
)

from apps.group_purchases.views import GroupPurchaseViewSet

# Routes follow the REST surface without trailing slashes:
# /group-purchases, /group-purchases/{id}/join, ...
router = DefaultRouter(trailing_slash=False)

router.register(r'group-purchases', GroupPurchaseViewSet,
                basename='grouppurchase')

# API URL patterns
urlpatterns = [
    # JWT Authentication endpoints
    path('auth/login/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('auth/verify/', TokenVerifyView.as_view(), name='token_verify'),

    # Router URLs
    path('', include(router.urls)),
]
