from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    ProductViewSet,
    VariantViewSet,
    SelectionGroupViewSet,
    SelectionOptionViewSet,
)

router = DefaultRouter()
router.register(r'products', ProductViewSet, basename='product')
router.register(r'variants', VariantViewSet, basename='variant')
router.register(r'selection-groups', SelectionGroupViewSet, basename='selection-group')
router.register(r'selection-options', SelectionOptionViewSet, basename='selection-option')

urlpatterns = [
    path('', include(router.urls)),
]
