"""
Service for storefront navigation over selection groups.
Which options are reachable is INFERRED from the variant links, not configured manually.
"""

from django.conf import settings
from django.core.cache import cache
from typing import Dict, List, Optional, Any

from apps.catalog.models import (
    Product,
    SelectionGroup,
    SelectionOption,
    Variant,
)
from .link_backend import SELECTION_CONFIG_CACHE_KEY


def _filter_by_selections(queryset, selections):
    for group_id, option_id in selections.items():
        queryset = queryset.filter(
            option_links__group_id=group_id,
            option_links__option_id=option_id,
        )
    return queryset


class SelectionNavigationService:
    """
    Service to build the storefront selector and resolve a variant from
    the options a customer picked.
    """

    @staticmethod
    def get_selection_config(product: Product) -> Dict[str, Any]:
        """
        Everything the storefront needs to render the selectors of a product.
        Cached per product; the link backend evicts it on every change.
        """
        key = SELECTION_CONFIG_CACHE_KEY.format(product_id=product.pk)
        config = cache.get(key)
        if config is not None:
            return config

        groups = SelectionGroup.objects.filter(
            product=product,
            is_active=True
        ).prefetch_related('options__variant_links')

        config = {
            'product_id': product.pk,
            'product_slug': product.slug,
            'groups': [
                {
                    'id': group.id,
                    'name': group.name,
                    'description': group.description,
                    'is_required': group.is_required,
                    'allow_multiple': group.allow_multiple,
                    'affects_variant': group.affects_variant,
                    'options': [
                        {
                            'id': opt.id,
                            'value': opt.value,
                            'label': opt.get_display_label(),
                            'color_code': opt.color_code,
                            'image_url': opt.image_url,
                            'is_selectable': opt.is_selectable,
                            'variant_ids': sorted(
                                link.variant_id for link in opt.variant_links.all()
                            ),
                        }
                        for opt in group.options.all()
                        if opt.is_active
                    ],
                }
                for group in groups
            ],
        }
        cache.set(key, config, settings.CATALOG_SELECTION_CONFIG_CACHE_TIMEOUT)
        return config

    @staticmethod
    def get_available_options_for_group(
        product: Product,
        current_selections: Dict[int, int],
        target_group: SelectionGroup
    ) -> List[SelectionOption]:
        """
        Given current selections, return which options of the target group
        still lead to an active variant.

        Example:
            current_selections = {model_group.id: iphone_15.id}
            -> only the case styles that exist for iPhone 15 are returned
        """
        other_selections = {
            group_id: option_id
            for group_id, option_id in current_selections.items()
            if group_id != target_group.id
        }
        queryset = _filter_by_selections(
            Variant.objects.filter(product=product, is_active=True),
            other_selections
        )
        return SelectionOption.objects.filter(
            group=target_group,
            is_active=True,
            variant_links__variant__in=queryset
        ).distinct().order_by('display_order', 'value')

    @staticmethod
    def get_all_available_options(
        product: Product,
        current_selections: Dict[int, int]
    ) -> List[Dict[str, Any]]:
        """Available options for every variant-defining group of the product."""
        result = []
        for group in product.get_variant_groups():
            available = SelectionNavigationService.get_available_options_for_group(
                product, current_selections, group
            )
            selected_id = current_selections.get(group.id)
            result.append({
                'id': group.id,
                'name': group.name,
                'options': [
                    {
                        'id': opt.id,
                        'value': opt.value,
                        'label': opt.get_display_label(),
                        'color_code': opt.color_code,
                        'is_selected': opt.id == selected_id,
                    }
                    for opt in available
                ],
            })
        return result

    @staticmethod
    def find_best_matching_variant(
        product: Product,
        selections: Dict[int, int]
    ) -> Optional[Variant]:
        """
        Find the variant linked to every selected option.
        Falls back to the variant matching the most selections.
        """
        queryset = Variant.objects.filter(product=product, is_active=True)

        if not selections:
            return queryset.first()

        exact_match = _filter_by_selections(queryset, selections)
        if exact_match.exists():
            return exact_match.first()

        best_variant = None
        best_score = 0

        for variant in queryset.prefetch_related('option_links'):
            variant_selections = {
                link.group_id: link.option_id
                for link in variant.option_links.all()
            }
            score = sum(
                1 for group_id, option_id in selections.items()
                if variant_selections.get(group_id) == option_id
            )
            if score > best_score:
                best_score = score
                best_variant = variant

        return best_variant

    @staticmethod
    def find_variant(
        product: Product,
        selections: Dict[int, int]
    ) -> Dict[str, Any]:
        """
        Resolve the selections to a variant.

        Returns dict with:
        - type: 'variant' or 'none'
        - exact: whether every selection matched
        - available_options: what can still be picked
        """
        variant = SelectionNavigationService.find_best_matching_variant(
            product, selections
        )
        available_options = SelectionNavigationService.get_all_available_options(
            product, selections
        )

        if variant is None:
            return {
                'type': 'none',
                'message': 'No matching variant found',
                'available_options': available_options,
            }

        linked = variant.get_selections_dict()
        exact = all(linked.get(g) == o for g, o in selections.items())
        return {
            'type': 'variant',
            'id': variant.id,
            'sku': variant.sku,
            'name': variant.name,
            'product_slug': product.slug,
            'sell_price': str(variant.sell_price),
            'is_in_stock': variant.is_in_stock,
            'exact': exact,
            'available_options': available_options,
        }
