from decimal import Decimal

import pytest
from django.core.cache import cache

from apps.catalog.models import (
    Product,
    SelectionGroup,
    SelectionOption,
    Variant,
    VariantOptionLink,
)
from apps.catalog.services import (
    LinkBackendError,
    NotFoundError,
    OptionData,
    SelectionGroupData,
    VariantData,
)


class RecordingBackend:
    """
    In-memory link backend that records every call.

    ``links`` maps option id -> set of variant ids. ``failures`` maps
    (method, option_id) -> exception raised on the next matching call.
    """

    def __init__(self, product_id=1, group_id=10):
        self.product_id = product_id
        self.group_id = group_id
        self.option_values = {}
        self.links = {}
        self.variants = []
        self.calls = []
        self.failures = {}
        self.fetch_error = None

    def add_option(self, option_id, value, variant_ids=()):
        self.option_values[option_id] = value
        self.links[option_id] = set(variant_ids)

    def add_variant(self, variant_id, sku, name=''):
        self.variants.append(VariantData(
            id=variant_id, product_id=self.product_id, sku=sku, name=name
        ))

    def fail_once(self, method, option_id, error=None):
        self.failures[(method, option_id)] = error or LinkBackendError('boom')

    def _check(self, product_id, group_id):
        if product_id != self.product_id or group_id != self.group_id:
            raise NotFoundError(f'group {group_id} not found')

    def fetch_group_detail(self, product_id, group_id):
        self.calls.append(('fetch_group_detail', group_id, None))
        if self.fetch_error is not None:
            raise self.fetch_error
        self._check(product_id, group_id)
        return SelectionGroupData(
            id=group_id,
            product_id=product_id,
            name='Color',
            options=tuple(
                OptionData(
                    id=option_id,
                    group_id=group_id,
                    value=value,
                    linked_variant_ids=frozenset(self.links[option_id]),
                )
                for option_id, value in self.option_values.items()
            ),
        )

    def fetch_all_variants(self, product_id):
        self.calls.append(('fetch_all_variants', None, None))
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.variants)

    def _mutate(self, method, product_id, group_id, option_id, variant_ids):
        self.calls.append((method, option_id, list(variant_ids)))
        error = self.failures.pop((method, option_id), None)
        if error is not None:
            raise error
        self._check(product_id, group_id)

    def link_variants(self, product_id, group_id, option_id, variant_ids):
        self._mutate('link_variants', product_id, group_id, option_id, variant_ids)
        self.links[option_id].update(variant_ids)

    def unlink_variants(self, product_id, group_id, option_id, variant_ids):
        self._mutate('unlink_variants', product_id, group_id, option_id, variant_ids)
        self.links[option_id].difference_update(variant_ids)

    @property
    def mutations(self):
        return [call for call in self.calls if call[0] in ('link_variants', 'unlink_variants')]


@pytest.fixture
def backend():
    """
    Group 10 of product 1 with options Red (1), Blue (2) and Green (3).

        Red   -> variants 101, 102
        Blue  -> variant 103
        Green -> nothing
        104, 105 are unlinked
    """
    backend = RecordingBackend()
    backend.add_option(1, 'Red', [101, 102])
    backend.add_option(2, 'Blue', [103])
    backend.add_option(3, 'Green')
    backend.add_variant(101, 'CASE-IP15-RED', 'iPhone 15 Red')
    backend.add_variant(102, 'CASE-IP14-RED', 'iPhone 14 Red')
    backend.add_variant(103, 'CASE-IP15-BLU', 'iPhone 15 Blue')
    backend.add_variant(104, 'CASE-S24-CLR', 'Galaxy S24 Clear')
    backend.add_variant(105, 'CASE-S23-CLR', 'Galaxy S23 Clear')
    return backend


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def product(db):
    return Product.objects.create(name='Phone Case', slug='phone-case')


@pytest.fixture
def variants(product):
    return [
        Variant.objects.create(
            product=product,
            sku=sku,
            sell_price=Decimal('99.90'),
            stock_quantity=stock,
        )
        for sku, stock in [
            ('CASE-IP15-CLR', 5),
            ('CASE-IP15-BLK', 0),
            ('CASE-IP14-CLR', 3),
            ('CASE-IP14-BLK', 2),
        ]
    ]


@pytest.fixture
def model_group(product):
    return SelectionGroup.objects.create(product=product, name='Model', display_order=0)


@pytest.fixture
def style_group(product):
    return SelectionGroup.objects.create(product=product, name='Style', display_order=1)


@pytest.fixture
def model_options(model_group):
    return {
        value: SelectionOption.objects.create(group=model_group, value=value, display_order=i)
        for i, value in enumerate(['iPhone 15', 'iPhone 14', 'Galaxy S24'])
    }


@pytest.fixture
def style_options(style_group):
    return {
        value: SelectionOption.objects.create(group=style_group, value=value, display_order=i)
        for i, value in enumerate(['Clear', 'Black'])
    }


@pytest.fixture
def linked_catalog(variants, model_options, style_options):
    """
    ip15-clr -> iPhone 15 / Clear
    ip15-blk -> iPhone 15 / Black
    ip14-clr -> iPhone 14 / Clear
    ip14-blk -> iPhone 14 / Black
    """
    ip15_clr, ip15_blk, ip14_clr, ip14_blk = variants
    for variant, model, style in [
        (ip15_clr, 'iPhone 15', 'Clear'),
        (ip15_blk, 'iPhone 15', 'Black'),
        (ip14_clr, 'iPhone 14', 'Clear'),
        (ip14_blk, 'iPhone 14', 'Black'),
    ]:
        VariantOptionLink.objects.create(option=model_options[model], variant=variant)
        VariantOptionLink.objects.create(option=style_options[style], variant=variant)
    return variants


@pytest.fixture
def api_client(admin_user):
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(admin_user)
    return client
