"""
Link backends: the authoritative store the reconciler reads and writes.

OrmLinkBackend is the system of record for this project. Every mutating call
runs in its own transaction, is idempotent and evicts the cached selection
config of the product.
"""

import logging
from typing import Hashable, Iterable, List, Protocol

from django.core.cache import cache
from django.db import DatabaseError, IntegrityError, transaction

from apps.catalog.models import (
    Product,
    SelectionGroup,
    SelectionOption,
    Variant,
    VariantOptionLink,
)
from .entities import OptionData, SelectionGroupData, VariantData
from .exceptions import LinkBackendError, LinkConflictError, NotFoundError

logger = logging.getLogger(__name__)

SELECTION_CONFIG_CACHE_KEY = 'catalog:selection-config:{product_id}'


def evict_selection_config(product_id):
    cache.delete(SELECTION_CONFIG_CACHE_KEY.format(product_id=product_id))


class LinkBackend(Protocol):
    """Remote operations the link services depend on."""

    def fetch_group_detail(self, product_id, group_id) -> SelectionGroupData:
        ...

    def link_variants(self, product_id, group_id, option_id, variant_ids: List[Hashable]) -> None:
        ...

    def unlink_variants(self, product_id, group_id, option_id, variant_ids: List[Hashable]) -> None:
        ...

    def fetch_all_variants(self, product_id) -> List[VariantData]:
        ...


def option_to_data(option, linked_variant_ids=None):
    if linked_variant_ids is None:
        linked_variant_ids = [link.variant_id for link in option.variant_links.all()]
    return OptionData(
        id=option.pk,
        group_id=option.group_id,
        value=option.value,
        label=option.label,
        color_code=option.color_code,
        image_url=option.image_url,
        linked_variant_ids=frozenset(linked_variant_ids),
    )


def group_to_data(group):
    return SelectionGroupData(
        id=group.pk,
        product_id=group.product_id,
        name=group.name,
        is_required=group.is_required,
        allow_multiple=group.allow_multiple,
        affects_variant=group.affects_variant,
        options=tuple(option_to_data(option) for option in group.options.all()),
    )


def variant_to_data(variant):
    return VariantData(
        id=variant.pk,
        product_id=variant.product_id,
        sku=variant.sku,
        name=variant.name,
        sell_price=variant.sell_price,
        compare_at_price=variant.compare_at_price,
        stock_quantity=variant.stock_quantity,
        is_active=variant.is_active,
    )


class OrmLinkBackend:
    """LinkBackend backed by the catalog models."""

    def _get_group(self, product_id, group_id):
        try:
            return SelectionGroup.objects.get(pk=group_id, product_id=product_id)
        except (SelectionGroup.DoesNotExist, ValueError):
            raise NotFoundError(
                f"Selection group {group_id} not found for product {product_id}"
            )

    def _get_option(self, group, option_id):
        try:
            return SelectionOption.objects.select_for_update().get(pk=option_id, group=group)
        except (SelectionOption.DoesNotExist, ValueError):
            raise NotFoundError(
                f"Option {option_id} not found in selection group {group.pk}"
            )

    def fetch_group_detail(self, product_id, group_id) -> SelectionGroupData:
        try:
            group = self._get_group(product_id, group_id)
            group = (
                SelectionGroup.objects
                .prefetch_related('options__variant_links')
                .get(pk=group.pk)
            )
            return group_to_data(group)
        except DatabaseError as e:
            raise LinkBackendError(f"Could not load selection group {group_id}: {e}") from e

    def fetch_all_variants(self, product_id) -> List[VariantData]:
        try:
            if not Product.objects.filter(pk=product_id).exists():
                raise NotFoundError(f"Product {product_id} not found")
            variants = Variant.objects.filter(product_id=product_id).order_by('sku')
            return [variant_to_data(variant) for variant in variants]
        except DatabaseError as e:
            raise LinkBackendError(f"Could not load variants of product {product_id}: {e}") from e

    def link_variants(self, product_id, group_id, option_id, variant_ids: Iterable) -> None:
        variant_ids = list(dict.fromkeys(variant_ids))
        logger.info(
            "Linking option %s to variants %s for product %s",
            option_id, variant_ids, product_id
        )
        try:
            with transaction.atomic():
                group = self._get_group(product_id, group_id)
                option = self._get_option(group, option_id)

                variants = list(
                    Variant.objects.filter(product_id=product_id, pk__in=variant_ids)
                )
                if len(variants) != len(variant_ids):
                    found = {variant.pk for variant in variants}
                    missing = [vid for vid in variant_ids if vid not in found]
                    logger.warning(
                        "Variant ids %s not found or not owned by product %s",
                        missing, product_id
                    )
                    raise NotFoundError(f"Variants {missing} not found for product {product_id}")

                held_elsewhere = list(
                    VariantOptionLink.objects.filter(
                        group=group, variant_id__in=variant_ids
                    ).exclude(option=option).values_list('variant_id', flat=True)
                )
                if held_elsewhere:
                    raise LinkConflictError(
                        f"Variants {held_elsewhere} are linked to another option "
                        f"of group '{group.name}'",
                        variant_ids=held_elsewhere,
                    )

                created = 0
                for variant in variants:
                    _, was_created = VariantOptionLink.objects.get_or_create(
                        option=option,
                        variant=variant,
                        defaults={'group': group},
                    )
                    if was_created:
                        created += 1
        except IntegrityError as e:
            raise LinkConflictError(f"Link rejected for option {option_id}: {e}") from e
        except DatabaseError as e:
            raise LinkBackendError(f"Could not link variants to option {option_id}: {e}") from e

        evict_selection_config(product_id)
        logger.info("Option %s linked to %d new variants", option_id, created)

    def unlink_variants(self, product_id, group_id, option_id, variant_ids: Iterable) -> None:
        variant_ids = list(dict.fromkeys(variant_ids))
        logger.info(
            "Unlinking option %s from variants %s for product %s",
            option_id, variant_ids, product_id
        )
        try:
            with transaction.atomic():
                group = self._get_group(product_id, group_id)
                option = self._get_option(group, option_id)
                deleted, _ = VariantOptionLink.objects.filter(
                    option=option, variant_id__in=variant_ids
                ).delete()
        except DatabaseError as e:
            raise LinkBackendError(f"Could not unlink variants from option {option_id}: {e}") from e

        evict_selection_config(product_id)
        logger.info("Option %s unlinked from %d variants", option_id, deleted)
