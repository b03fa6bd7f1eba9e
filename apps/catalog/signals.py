"""
Django signals for the catalog app.
Keeps the cached storefront selection config in step with admin edits.
"""

import logging

from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .models import SelectionGroup, SelectionOption, VariantOptionLink
from .services.link_backend import evict_selection_config

logger = logging.getLogger(__name__)


@receiver(post_save, sender=SelectionGroup)
@receiver(post_delete, sender=SelectionGroup)
def evict_config_for_group(sender, instance, **kwargs):
    evict_selection_config(instance.product_id)


@receiver(post_save, sender=SelectionOption)
@receiver(post_delete, sender=SelectionOption)
def evict_config_for_option(sender, instance, **kwargs):
    try:
        product_id = instance.group.product_id
    except SelectionGroup.DoesNotExist:
        # group already gone in a cascade delete; its own signal evicts
        return
    evict_selection_config(product_id)


@receiver(post_save, sender=VariantOptionLink)
@receiver(post_delete, sender=VariantOptionLink)
def evict_config_for_link(sender, instance, **kwargs):
    try:
        product_id = instance.group.product_id
    except SelectionGroup.DoesNotExist:
        return
    logger.debug(
        "Link changed: variant %s -> option %s (product %s)",
        instance.variant_id, instance.option_id, product_id
    )
    evict_selection_config(product_id)
