from rest_framework import serializers
from apps.catalog.models import (
    Product,
    Variant,
    SelectionGroup,
    SelectionOption,
)


# =============================================================================
# Variant Serializers
# =============================================================================

class VariantSerializer(serializers.ModelSerializer):
    """Base variant serializer."""
    class Meta:
        model = Variant
        fields = [
            'id', 'product', 'sku', 'name', 'sell_price',
            'compare_at_price', 'stock_quantity',
            'is_active', 'created_at', 'updated_at'
        ]


class VariantListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for the variant picker."""
    product_name = serializers.CharField(source='product.name', read_only=True)
    is_in_stock = serializers.BooleanField(read_only=True)
    is_on_sale = serializers.BooleanField(read_only=True)
    selections = serializers.SerializerMethodField()

    class Meta:
        model = Variant
        fields = [
            'id', 'sku', 'name', 'product', 'product_name',
            'sell_price', 'compare_at_price', 'stock_quantity',
            'is_active', 'is_in_stock', 'is_on_sale', 'selections'
        ]

    def get_selections(self, obj):
        return {str(k): v for k, v in obj.get_selections_dict().items()}


# =============================================================================
# Selection Serializers
# =============================================================================

class SelectionOptionSerializer(serializers.ModelSerializer):
    display_label = serializers.CharField(source='get_display_label', read_only=True)
    linked_variant_ids = serializers.SerializerMethodField()

    class Meta:
        model = SelectionOption
        fields = [
            'id', 'group', 'value', 'label', 'display_label', 'description',
            'color_code', 'image_url', 'display_order',
            'is_available', 'is_active', 'linked_variant_ids'
        ]
        read_only_fields = ['group']

    def get_linked_variant_ids(self, obj):
        return sorted(link.variant_id for link in obj.variant_links.all())


class SelectionGroupSerializer(serializers.ModelSerializer):
    """Group detail with every option and its linked variants."""
    options = SelectionOptionSerializer(many=True, read_only=True)

    class Meta:
        model = SelectionGroup
        fields = [
            'id', 'product', 'name', 'description', 'display_order',
            'is_required', 'allow_multiple', 'affects_variant', 'is_active',
            'options', 'created_at', 'updated_at'
        ]


class VariantIdsSerializer(serializers.Serializer):
    """Payload of link/unlink/reconcile calls."""
    variant_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=True
    )

    def validate_variant_ids(self, value):
        return list(dict.fromkeys(value))


class FindVariantSerializer(serializers.Serializer):
    selections = serializers.DictField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=True
    )

    def validate_selections(self, value):
        try:
            return {int(group_id): option_id for group_id, option_id in value.items()}
        except ValueError:
            raise serializers.ValidationError('Group ids must be integers.')


# =============================================================================
# Product Serializers
# =============================================================================

class ProductSerializer(serializers.ModelSerializer):
    """Base product serializer."""
    variant_count = serializers.IntegerField(read_only=True)
    selection_group_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'slug', 'description', 'is_active',
            'variant_count', 'selection_group_count',
            'created_at', 'updated_at'
        ]


# =============================================================================
# Reconciliation Serializers
# =============================================================================

def serialize_diff(diff, option_labels=None):
    option_labels = option_labels or {}
    return {
        'to_link': list(diff.to_link),
        'to_unlink': list(diff.to_unlink),
        'moves': [
            {
                'option_id': source_id,
                'option_label': option_labels.get(source_id),
                'variant_ids': list(variant_ids),
            }
            for source_id, variant_ids in diff.moves.items()
        ],
        'summary': diff.summary(),
    }
