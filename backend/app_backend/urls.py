from django.contrib import admin
from django.urls import path, include

from rides.urls import app_name as rides_app_name, build_urlpatterns
from services.registry import build_default_registry

from .views import health_check

# Built once per process and shared by every request
registry = build_default_registry()

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Marketplace operations (at /api/operations/)
    path('api/', include((build_urlpatterns(registry), rides_app_name))),
]
