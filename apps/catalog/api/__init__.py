from .serializers import (
    ProductSerializer,
    VariantSerializer,
    VariantListSerializer,
    SelectionGroupSerializer,
    SelectionOptionSerializer,
    VariantIdsSerializer,
    FindVariantSerializer,
)

__all__ = [
    'ProductSerializer',
    'VariantSerializer',
    'VariantListSerializer',
    'SelectionGroupSerializer',
    'SelectionOptionSerializer',
    'VariantIdsSerializer',
    'FindVariantSerializer',
]
