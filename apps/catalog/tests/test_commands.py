from io import StringIO
from unittest import mock

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.catalog.services import OptionData, SelectionGroupData

pytestmark = pytest.mark.django_db


def test_consistent_catalog(model_group, style_group, linked_catalog):
    out = StringIO()
    call_command('check_selection_links', stdout=out)
    assert '2 selection group(s) checked' in out.getvalue()


def test_product_filter(product, model_group, linked_catalog):
    out = StringIO()
    call_command('check_selection_links', product='another-product', stdout=out)
    assert '0 selection group(s) checked' in out.getvalue()


def test_reports_duplicated_links(product, model_group):
    # the unique constraint keeps the database clean, so feed a broken snapshot
    broken = SelectionGroupData(
        id=model_group.pk,
        product_id=product.pk,
        name=model_group.name,
        options=(
            OptionData(id=1, group_id=model_group.pk, value='iPhone 15', linked_variant_ids=frozenset({7})),
            OptionData(id=2, group_id=model_group.pk, value='iPhone 14', linked_variant_ids=frozenset({7})),
        ),
    )
    out = StringIO()
    target = 'apps.catalog.management.commands.check_selection_links.OrmLinkBackend'
    with mock.patch(target) as backend_class:
        backend_class.return_value.fetch_group_detail.return_value = broken
        with pytest.raises(CommandError):
            call_command('check_selection_links', stdout=out)

    output = out.getvalue()
    assert 'Phone Case / Model' in output
    assert 'variant 7: iPhone 15, iPhone 14' in output
