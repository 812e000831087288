from django.urls import path

from . import views

app_name = 'rides'


def build_urlpatterns(registry):
    """Operation endpoints bound to one registry instance."""
    return [
        # Operation catalogue for the agent layer's tool list
        path('operations/', views.OperationCatalogueView.as_view(registry=registry), name='operation-list'),
        path('operations/<str:name>/', views.OperationDispatchView.as_view(registry=registry), name='operation'),
    ]
