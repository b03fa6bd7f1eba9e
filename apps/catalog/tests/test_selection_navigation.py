import pytest

from apps.catalog.services import SelectionNavigationService

pytestmark = pytest.mark.django_db


def values(options):
    return [opt.value for opt in options]


def test_available_options_follow_links(product, model_group, style_group, model_options, linked_catalog):
    selections = {model_group.id: model_options['iPhone 15'].id}
    available = SelectionNavigationService.get_available_options_for_group(
        product, selections, style_group
    )
    assert values(available) == ['Clear', 'Black']


def test_inactive_variant_hides_option(product, model_group, style_group, model_options, linked_catalog):
    ip15_blk = linked_catalog[1]
    ip15_blk.is_active = False
    ip15_blk.save()

    selections = {model_group.id: model_options['iPhone 15'].id}
    available = SelectionNavigationService.get_available_options_for_group(
        product, selections, style_group
    )
    assert values(available) == ['Clear']


def test_selection_in_target_group_is_ignored(product, model_group, model_options, linked_catalog):
    # the target group's own selection does not narrow its choices
    selections = {model_group.id: model_options['iPhone 15'].id}
    available = SelectionNavigationService.get_available_options_for_group(
        product, selections, model_group
    )
    assert values(available) == ['iPhone 15', 'iPhone 14']


def test_all_available_options_skip_informative_groups(product, model_group, style_group, linked_catalog):
    style_group.affects_variant = False
    style_group.save()

    result = SelectionNavigationService.get_all_available_options(product, {})
    assert [group['name'] for group in result] == ['Model']


def test_all_available_options_mark_selected(product, model_group, model_options, linked_catalog):
    selected = model_options['iPhone 14']
    result = SelectionNavigationService.get_all_available_options(
        product, {model_group.id: selected.id}
    )
    model = next(group for group in result if group['id'] == model_group.id)
    flags = {opt['id']: opt['is_selected'] for opt in model['options']}
    assert flags[selected.id] is True
    assert flags[model_options['iPhone 15'].id] is False


def test_exact_match(product, model_group, style_group, model_options, style_options, linked_catalog):
    variant = SelectionNavigationService.find_best_matching_variant(product, {
        model_group.id: model_options['iPhone 15'].id,
        style_group.id: style_options['Black'].id,
    })
    assert variant == linked_catalog[1]


def test_partial_match_falls_back_to_best_score(
    product, model_group, style_group, model_options, style_options, linked_catalog
):
    result = SelectionNavigationService.find_variant(product, {
        model_group.id: model_options['Galaxy S24'].id,
        style_group.id: style_options['Clear'].id,
    })
    assert result['type'] == 'variant'
    assert result['exact'] is False
    assert result['sku'] == 'CASE-IP14-CLR'


def test_no_selection_returns_first_variant(product, linked_catalog):
    result = SelectionNavigationService.find_variant(product, {})
    assert result['type'] == 'variant'
    assert result['exact'] is True


def test_no_variant(product, model_group):
    result = SelectionNavigationService.find_variant(product, {})
    assert result['type'] == 'none'
    assert result['available_options'] == [{'id': model_group.id, 'name': 'Model', 'options': []}]


def test_selection_config_is_cached(product, model_group, model_options, linked_catalog, django_assert_num_queries):
    first = SelectionNavigationService.get_selection_config(product)
    with django_assert_num_queries(0):
        second = SelectionNavigationService.get_selection_config(product)
    assert first == second
    assert [group['name'] for group in first['groups']] == ['Model', 'Style']


def test_selection_config_evicted_on_option_change(product, model_group, model_options):
    SelectionNavigationService.get_selection_config(product)
    option = model_options['Galaxy S24']
    option.is_active = False
    option.save()

    config = SelectionNavigationService.get_selection_config(product)
    model = config['groups'][0]
    assert 'Galaxy S24' not in [opt['value'] for opt in model['options']]
