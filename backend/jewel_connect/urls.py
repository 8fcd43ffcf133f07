"""
URL Configuration for Jewel Connect
"""
from django.urls import path, include
from django.http import JsonResponse
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView, SpectacularRedocView
from apps.core.admin_site import custom_admin_site


def home_view(request):
    """API root information"""
    return JsonResponse({
        'message': 'Welcome to Jewel Connect API',
        'version': '1.0.0',
        'description': 'Networking and marketplace platform for the jewelry industry',
        'documentation': {
            'swagger_ui': f"{request.scheme}://{request.get_host()}/api/docs/",
            'redoc': f"{request.scheme}://{request.get_host()}/api/redoc/",
            'openapi_schema': f"{request.scheme}://{request.get_host()}/api/schema/"
        },
        'endpoints': {
            'api': '/api/v1/',
            'group_purchases': '/api/v1/group-purchases',
            'admin': '/admin/',
        }
    })


urlpatterns = [
    path('', home_view, name='home'),
    path('admin/', custom_admin_site.urls),

    # API v1 endpoints
    path('api/v1/', include('jewel_connect.api_urls')),

    # API Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'),
         name='swagger-ui'),
    path('api/redoc/', SpectacularRedocView.as_view(url_name='schema'),
         name='redoc'),
]
