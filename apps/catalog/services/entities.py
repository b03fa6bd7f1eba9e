"""
Plain data snapshots of selection groups, options and variants.

These are what the link services work on. They carry no behaviour beyond
small derived properties and never touch the database.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet, Hashable, Optional, Tuple

Id = Hashable


@dataclass(frozen=True)
class OptionData:
    id: Id
    group_id: Id
    value: str
    label: str = ''
    color_code: str = ''
    image_url: str = ''
    linked_variant_ids: FrozenSet[Id] = field(default_factory=frozenset)

    @property
    def display_label(self) -> str:
        return self.label or self.value


@dataclass(frozen=True)
class SelectionGroupData:
    id: Id
    product_id: Id
    name: str
    is_required: bool = True
    allow_multiple: bool = False
    affects_variant: bool = True
    options: Tuple[OptionData, ...] = ()

    def get_option(self, option_id: Id) -> Optional[OptionData]:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


@dataclass(frozen=True)
class VariantData:
    id: Id
    product_id: Id
    sku: str
    name: str = ''
    sell_price: Optional[Decimal] = None
    compare_at_price: Optional[Decimal] = None
    stock_quantity: int = 0
    is_active: bool = True

    def matches(self, search: str) -> bool:
        """Case-insensitive substring match on name or SKU."""
        needle = search.strip().lower()
        if not needle:
            return True
        return needle in (self.name or '').lower() or needle in (self.sku or '').lower()
