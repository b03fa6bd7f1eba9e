from django.contrib import admin, messages
from django.utils.html import format_html
from import_export import resources, fields
from import_export.admin import ImportExportModelAdmin
from import_export.widgets import ForeignKeyWidget
from adminsortable2.admin import SortableAdminMixin, SortableInlineAdminMixin
from simple_history.admin import SimpleHistoryAdmin

from .models import (
    Product,
    Variant,
    SelectionGroup,
    SelectionOption,
    VariantOptionLink,
)
from .services import OrmLinkBackend, find_link_violations


# =============================================================================
# Import/Export Resources
# =============================================================================

class VariantResource(resources.ModelResource):
    """Resource for importing/exporting variants."""

    product_name = fields.Field(
        column_name='product_name',
        attribute='product',
        widget=ForeignKeyWidget(Product, 'name')
    )

    class Meta:
        model = Variant
        import_id_fields = ['sku']
        fields = (
            'sku', 'product_name', 'name', 'sell_price',
            'compare_at_price', 'stock_quantity', 'is_active'
        )
        export_order = fields


class SelectionOptionResource(resources.ModelResource):
    """Resource for importing/exporting selection options."""

    group_name = fields.Field(
        column_name='group',
        attribute='group',
        widget=ForeignKeyWidget(SelectionGroup, 'pk')
    )

    class Meta:
        model = SelectionOption
        import_id_fields = ['group_name', 'value']
        fields = (
            'group_name', 'value', 'label',
            'color_code', 'image_url', 'display_order'
        )


# =============================================================================
# Inlines
# =============================================================================

class SelectionOptionInline(SortableInlineAdminMixin, admin.TabularInline):
    model = SelectionOption
    extra = 1
    fields = ['value', 'label', 'color_code', 'image_url', 'is_available', 'is_active', 'display_order']


class VariantOptionLinkInline(admin.TabularInline):
    model = VariantOptionLink
    extra = 1
    fields = ['option']
    autocomplete_fields = ['option']


class VariantInline(admin.TabularInline):
    model = Variant
    extra = 0
    fields = ['sku', 'name', 'sell_price', 'stock_quantity', 'is_active']
    readonly_fields = ['sku', 'name']
    show_change_link = True
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


# =============================================================================
# Model Admins
# =============================================================================

@admin.register(Product)
class ProductAdmin(SimpleHistoryAdmin):
    list_display = ['name', 'slug', 'variant_count', 'selection_group_count', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'slug', 'description']
    prepopulated_fields = {'slug': ('name',)}
    readonly_fields = ['variant_count', 'active_variant_count', 'created_at', 'updated_at']
    inlines = [VariantInline]

    fieldsets = (
        (None, {
            'fields': ('name', 'slug', 'description', 'is_active')
        }),
        ('Informações', {
            'fields': ('variant_count', 'active_variant_count', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(SelectionGroup)
class SelectionGroupAdmin(SortableAdminMixin, admin.ModelAdmin):
    list_display = [
        'name', 'product', 'option_count', 'is_required',
        'allow_multiple', 'affects_variant', 'is_active', 'display_order'
    ]
    list_filter = ['product', 'is_required', 'affects_variant', 'is_active']
    search_fields = ['name', 'product__name']
    autocomplete_fields = ['product']
    inlines = [SelectionOptionInline]

    actions = ['check_link_consistency']

    def option_count(self, obj):
        return obj.options.count()
    option_count.short_description = 'Opções'

    @admin.action(description='Verificar vínculos duplicados')
    def check_link_consistency(self, request, queryset):
        backend = OrmLinkBackend()
        broken = 0
        for group in queryset:
            detail = backend.fetch_group_detail(group.product_id, group.pk)
            violations = find_link_violations(detail.options)
            if violations:
                broken += 1
                self.message_user(
                    request,
                    f'{group}: variantes em mais de uma opção: {violations}',
                    level=messages.ERROR
                )
        if not broken:
            self.message_user(request, 'Nenhum vínculo duplicado encontrado.')


@admin.register(SelectionOption)
class SelectionOptionAdmin(ImportExportModelAdmin):
    resource_class = SelectionOptionResource
    list_display = ['value', 'label', 'group', 'color_swatch', 'linked_count', 'is_selectable', 'display_order']
    list_filter = ['group__product', 'is_active', 'is_available']
    list_editable = ['display_order']
    search_fields = ['value', 'label', 'group__name', 'group__product__name']
    autocomplete_fields = ['group']

    def color_swatch(self, obj):
        if obj.color_code:
            return format_html(
                '<div style="width: 20px; height: 20px; background-color: {}; '
                'border: 1px solid #ccc; border-radius: 3px;"></div>',
                obj.color_code
            )
        return '-'
    color_swatch.short_description = 'Cor'

    def linked_count(self, obj):
        return obj.variant_links.count()
    linked_count.short_description = 'Variantes'


@admin.register(Variant)
class VariantAdmin(ImportExportModelAdmin, SimpleHistoryAdmin):
    resource_class = VariantResource
    list_display = [
        'sku', 'name', 'product', 'sell_price',
        'stock_quantity', 'stock_status', 'is_active'
    ]
    list_filter = ['product', 'is_active']
    list_editable = ['sell_price', 'stock_quantity', 'is_active']
    search_fields = ['sku', 'name', 'product__name']
    autocomplete_fields = ['product']
    readonly_fields = ['created_at', 'updated_at', 'is_on_sale', 'is_in_stock']
    inlines = [VariantOptionLinkInline]
    list_per_page = 50

    fieldsets = (
        (None, {
            'fields': ('product', 'sku', 'name', 'is_active')
        }),
        ('Preços', {
            'fields': ('sell_price', 'compare_at_price', 'is_on_sale')
        }),
        ('Estoque', {
            'fields': ('stock_quantity', 'is_in_stock')
        }),
        ('Informações', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    actions = ['activate_variants', 'deactivate_variants']

    def stock_status(self, obj):
        if obj.stock_quantity <= 0:
            return format_html('<span style="color: red;">Sem estoque</span>')
        return format_html('<span style="color: green;">Em estoque</span>')
    stock_status.short_description = 'Status Estoque'

    @admin.action(description='Ativar variantes selecionadas')
    def activate_variants(self, request, queryset):
        count = queryset.update(is_active=True)
        self.message_user(request, f'{count} variantes ativadas.')

    @admin.action(description='Desativar variantes selecionadas')
    def deactivate_variants(self, request, queryset):
        count = queryset.update(is_active=False)
        self.message_user(request, f'{count} variantes desativadas.')


@admin.register(VariantOptionLink)
class VariantOptionLinkAdmin(SimpleHistoryAdmin):
    list_display = ['variant', 'option', 'group', 'created_at']
    list_filter = ['group__product', 'group']
    search_fields = ['variant__sku', 'option__value', 'group__name']
    readonly_fields = ['group', 'option', 'variant', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


# =============================================================================
# Admin Site Configuration
# =============================================================================

admin.site.site_header = 'Ecommerce Admin'
admin.site.site_title = 'Ecommerce'
admin.site.index_title = 'Painel de Administração'
