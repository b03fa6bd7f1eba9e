from decimal import Decimal

import pytest
from django.core.cache import cache
from django.core.exceptions import ValidationError

from apps.catalog.models import Product, Variant, VariantOptionLink
from apps.catalog.services import (
    LinkConflictError,
    NotFoundError,
    OrmLinkBackend,
    SelectionNavigationService,
)
from apps.catalog.services.link_backend import SELECTION_CONFIG_CACHE_KEY

pytestmark = pytest.mark.django_db


@pytest.fixture
def orm_backend():
    return OrmLinkBackend()


def linked_ids(option):
    return set(option.variant_links.values_list('variant_id', flat=True))


class TestFetch:

    def test_group_detail(self, orm_backend, product, model_group, model_options, linked_catalog):
        detail = orm_backend.fetch_group_detail(product.pk, model_group.pk)

        assert detail.id == model_group.pk
        assert detail.product_id == product.pk
        assert [opt.value for opt in detail.options] == ['iPhone 15', 'iPhone 14', 'Galaxy S24']
        ip15 = detail.get_option(model_options['iPhone 15'].pk)
        assert ip15.linked_variant_ids == {linked_catalog[0].pk, linked_catalog[1].pk}
        assert detail.get_option(model_options['Galaxy S24'].pk).linked_variant_ids == frozenset()

    def test_group_of_other_product(self, orm_backend, model_group):
        other = Product.objects.create(name='Charger')
        with pytest.raises(NotFoundError):
            orm_backend.fetch_group_detail(other.pk, model_group.pk)

    def test_all_variants_ordered_by_sku(self, orm_backend, product, variants):
        data = orm_backend.fetch_all_variants(product.pk)
        assert [v.sku for v in data] == sorted(v.sku for v in variants)
        assert data[0].sell_price == Decimal('99.90')

    def test_all_variants_unknown_product(self, orm_backend, db):
        with pytest.raises(NotFoundError):
            orm_backend.fetch_all_variants(999999)


class TestLinkVariants:

    def test_links_and_is_idempotent(self, orm_backend, product, model_group, model_options, variants):
        option = model_options['Galaxy S24']
        ids = [variants[0].pk, variants[1].pk]

        orm_backend.link_variants(product.pk, model_group.pk, option.pk, ids)
        orm_backend.link_variants(product.pk, model_group.pk, option.pk, ids)

        assert linked_ids(option) == set(ids)
        assert VariantOptionLink.objects.filter(option=option).count() == 2
        link = VariantOptionLink.objects.filter(option=option).first()
        assert link.group_id == model_group.pk

    def test_conflict_with_other_option(self, orm_backend, product, model_group, model_options, linked_catalog):
        target = model_options['Galaxy S24']
        held = linked_catalog[0].pk

        with pytest.raises(LinkConflictError) as excinfo:
            orm_backend.link_variants(product.pk, model_group.pk, target.pk, [held])

        assert excinfo.value.variant_ids == [held]
        assert linked_ids(target) == set()

    def test_unknown_variant(self, orm_backend, product, model_group, model_options, variants):
        option = model_options['iPhone 15']
        with pytest.raises(NotFoundError):
            orm_backend.link_variants(
                product.pk, model_group.pk, option.pk, [variants[0].pk, 999999]
            )
        # all or nothing inside one call
        assert linked_ids(option) == set()

    def test_variant_of_other_product(self, orm_backend, product, model_group, model_options):
        other = Product.objects.create(name='Charger')
        foreign = Variant.objects.create(product=other, sku='CHG-1', sell_price=Decimal('10'))
        with pytest.raises(NotFoundError):
            orm_backend.link_variants(
                product.pk, model_group.pk, model_options['iPhone 15'].pk, [foreign.pk]
            )

    def test_unknown_option(self, orm_backend, product, model_group, style_options, variants):
        # option exists but belongs to another group
        with pytest.raises(NotFoundError):
            orm_backend.link_variants(
                product.pk, model_group.pk, style_options['Clear'].pk, [variants[0].pk]
            )

    def test_records_history(self, orm_backend, product, model_group, model_options, variants):
        option = model_options['iPhone 15']
        orm_backend.link_variants(product.pk, model_group.pk, option.pk, [variants[0].pk])
        orm_backend.unlink_variants(product.pk, model_group.pk, option.pk, [variants[0].pk])

        history = VariantOptionLink.history.filter(option_id=option.pk).order_by('history_id')
        assert [h.history_type for h in history] == ['+', '-']


class TestUnlinkVariants:

    def test_unlinks_and_is_idempotent(self, orm_backend, product, model_group, model_options, linked_catalog):
        option = model_options['iPhone 15']
        target = linked_catalog[0].pk

        orm_backend.unlink_variants(product.pk, model_group.pk, option.pk, [target])
        orm_backend.unlink_variants(product.pk, model_group.pk, option.pk, [target])

        assert linked_ids(option) == {linked_catalog[1].pk}

    def test_only_touches_given_option(self, orm_backend, product, model_group, model_options, linked_catalog):
        # 3rd variant is on iPhone 14, not iPhone 15
        orm_backend.unlink_variants(
            product.pk, model_group.pk, model_options['iPhone 15'].pk, [linked_catalog[2].pk]
        )
        assert linked_catalog[2].pk in linked_ids(model_options['iPhone 14'])

    def test_unknown_group(self, orm_backend, product, model_options, variants):
        with pytest.raises(NotFoundError):
            orm_backend.unlink_variants(
                product.pk, 999999, model_options['iPhone 15'].pk, [variants[0].pk]
            )


def test_mutations_evict_selection_config(orm_backend, product, model_group, model_options, variants):
    key = SELECTION_CONFIG_CACHE_KEY.format(product_id=product.pk)
    SelectionNavigationService.get_selection_config(product)
    assert cache.get(key) is not None

    orm_backend.link_variants(
        product.pk, model_group.pk, model_options['iPhone 15'].pk, [variants[0].pk]
    )
    assert cache.get(key) is None

    config = SelectionNavigationService.get_selection_config(product)
    model = next(g for g in config['groups'] if g['name'] == 'Model')
    ip15 = next(o for o in model['options'] if o['value'] == 'iPhone 15')
    assert ip15['variant_ids'] == [variants[0].pk]


class TestVariantOptionLinkModel:

    def test_clean_rejects_second_option_in_group(self, model_options, variants):
        VariantOptionLink.objects.create(option=model_options['iPhone 15'], variant=variants[0])
        link = VariantOptionLink(option=model_options['iPhone 14'], variant=variants[0])
        with pytest.raises(ValidationError):
            link.clean()

    def test_clean_rejects_variant_of_other_product(self, model_options):
        other = Product.objects.create(name='Charger')
        foreign = Variant.objects.create(product=other, sku='CHG-1', sell_price=Decimal('10'))
        link = VariantOptionLink(option=model_options['iPhone 15'], variant=foreign)
        with pytest.raises(ValidationError):
            link.clean()

    def test_save_copies_group_from_option(self, model_group, model_options, variants):
        link = VariantOptionLink.objects.create(option=model_options['iPhone 15'], variant=variants[0])
        assert link.group_id == model_group.pk
