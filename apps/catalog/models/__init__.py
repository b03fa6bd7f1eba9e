"""
Catalog models for product selection groups and variant links.

Model Hierarchy:
- Product: Base product (e.g., "Capa de celular")
- Variant: Individual SKU with price and stock
- SelectionGroup: Seller-defined group of options for a product (Color, Storage)
- SelectionOption: One selectable value inside a group (Red, 256GB)
- VariantOptionLink: Link between a variant and at most one option per group
"""

from .product import Product
from .variant import Variant
from .selection import SelectionGroup, SelectionOption, VariantOptionLink

__all__ = [
    'Product',
    'Variant',
    'SelectionGroup',
    'SelectionOption',
    'VariantOptionLink',
]
