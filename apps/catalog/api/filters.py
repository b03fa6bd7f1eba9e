from django.db.models import Q
from django_filters import rest_framework as filters
from apps.catalog.models import Variant, SelectionGroup


class VariantFilter(filters.FilterSet):
    """Filter for the variant picker."""

    product = filters.CharFilter(field_name='product__slug')
    product_id = filters.NumberFilter(field_name='product__id')

    # Price filters
    min_price = filters.NumberFilter(field_name='sell_price', lookup_expr='gte')
    max_price = filters.NumberFilter(field_name='sell_price', lookup_expr='lte')

    # Stock filters
    in_stock = filters.BooleanFilter(method='filter_in_stock')

    # Search on name or SKU, same rule as the link session
    q = filters.CharFilter(method='filter_search')

    # Link filters
    option = filters.NumberFilter(field_name='option_links__option_id')
    unlinked_in_group = filters.NumberFilter(method='filter_unlinked_in_group')

    class Meta:
        model = Variant
        fields = ['product', 'product_id', 'is_active', 'sku']

    def filter_in_stock(self, queryset, name, value):
        if value is True:
            return queryset.filter(stock_quantity__gt=0)
        elif value is False:
            return queryset.filter(stock_quantity__lte=0)
        return queryset

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(sku__icontains=value))

    def filter_unlinked_in_group(self, queryset, name, value):
        """Variants not linked to any option of the given group."""
        return queryset.exclude(option_links__group_id=value)


class SelectionGroupFilter(filters.FilterSet):
    """Filter for selection groups."""

    product = filters.CharFilter(field_name='product__slug')
    product_id = filters.NumberFilter(field_name='product__id')

    class Meta:
        model = SelectionGroup
        fields = ['product', 'product_id', 'is_active', 'affects_variant']
