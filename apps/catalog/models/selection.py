from django.db import models
from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator
from simple_history.models import HistoricalRecords


class SelectionGroup(models.Model):
    """
    Seller-defined group of options for a single product.

    Examples for product "Capa de celular":
        - "Modelo" -> iPhone 15 Pro, iPhone 14, Galaxy S24
        - "Estilo" -> Transparente, Preto brilhante, Carbono

    A group scopes the link invariant: a variant may be linked to at most
    one option of the group.
    """
    product = models.ForeignKey(
        'catalog.Product',
        on_delete=models.CASCADE,
        related_name='selection_groups',
        verbose_name='Produto'
    )
    name = models.CharField(
        max_length=100,
        verbose_name='Nome'
    )
    description = models.CharField(
        max_length=255,
        blank=True,
        verbose_name='Descrição'
    )
    display_order = models.PositiveIntegerField(
        default=0,
        verbose_name='Ordem de exibição'
    )
    is_required = models.BooleanField(
        default=True,
        verbose_name='Obrigatório',
        help_text='O cliente precisa escolher uma opção para comprar'
    )
    allow_multiple = models.BooleanField(
        default=False,
        verbose_name='Permitir múltiplas'
    )
    affects_variant = models.BooleanField(
        default=True,
        verbose_name='Define a variante',
        help_text='Se desmarcado, a opção é apenas informativa'
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name='Ativo'
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name='Criado em'
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name='Atualizado em'
    )

    class Meta:
        ordering = ['display_order', 'name']
        unique_together = ['product', 'name']
        verbose_name = 'Grupo de Seleção'
        verbose_name_plural = 'Grupos de Seleção'

    def __str__(self):
        return f"{self.name} [{self.product.name}]"

    @property
    def option_count(self):
        return self.options.count()


class SelectionOption(models.Model):
    """
    One selectable value inside a SelectionGroup.

    Each option may be linked to any number of variants, but a variant is
    never linked to two options of the same group.
    """
    hex_color_validator = RegexValidator(
        regex=r'^#[0-9A-Fa-f]{6}$',
        message='Cor deve estar no formato hexadecimal (#RRGGBB)'
    )

    group = models.ForeignKey(
        SelectionGroup,
        on_delete=models.CASCADE,
        related_name='options',
        verbose_name='Grupo'
    )
    value = models.CharField(
        max_length=100,
        verbose_name='Valor'
    )
    label = models.CharField(
        max_length=100,
        blank=True,
        verbose_name='Rótulo',
        help_text='Nome alternativo para exibição (opcional)'
    )
    description = models.CharField(
        max_length=500,
        blank=True,
        verbose_name='Descrição'
    )
    color_code = models.CharField(
        max_length=7,
        blank=True,
        validators=[hex_color_validator],
        verbose_name='Cor Hex',
        help_text='Para swatches de cor (#RRGGBB)'
    )
    image_url = models.URLField(
        max_length=500,
        blank=True,
        verbose_name='URL da imagem'
    )
    display_order = models.PositiveIntegerField(
        default=0,
        verbose_name='Ordem de exibição'
    )
    is_available = models.BooleanField(
        default=True,
        verbose_name='Disponível'
    )
    is_active = models.BooleanField(
        default=True,
        verbose_name='Ativo'
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name='Criado em'
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        verbose_name='Atualizado em'
    )

    linked_variants = models.ManyToManyField(
        'catalog.Variant',
        through='VariantOptionLink',
        related_name='selection_options',
        verbose_name='Variantes vinculadas'
    )

    class Meta:
        ordering = ['display_order', 'value']
        unique_together = ['group', 'value']
        verbose_name = 'Opção de Seleção'
        verbose_name_plural = 'Opções de Seleção'

    def __str__(self):
        return f"{self.group.name}: {self.get_display_label()}"

    def get_display_label(self):
        return self.label or self.value

    @property
    def is_selectable(self):
        return self.is_active and self.is_available


class VariantOptionLink(models.Model):
    """
    Through model linking a Variant to a SelectionOption.

    The group is denormalized from the option so the database itself
    rejects a second link of the same variant inside one group.
    """
    group = models.ForeignKey(
        SelectionGroup,
        on_delete=models.CASCADE,
        related_name='variant_links',
        verbose_name='Grupo'
    )
    option = models.ForeignKey(
        SelectionOption,
        on_delete=models.CASCADE,
        related_name='variant_links',
        verbose_name='Opção'
    )
    variant = models.ForeignKey(
        'catalog.Variant',
        on_delete=models.CASCADE,
        related_name='option_links',
        verbose_name='Variante'
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name='Criado em'
    )

    history = HistoricalRecords()

    class Meta:
        unique_together = [
            ['option', 'variant'],
            ['group', 'variant'],
        ]
        verbose_name = 'Vínculo Variante-Opção'
        verbose_name_plural = 'Vínculos Variante-Opção'

    def __str__(self):
        return f"{self.variant.sku} -> {self.option}"

    def clean(self):
        if self.option_id and self.variant_id:
            if self.option.group.product_id != self.variant.product_id:
                raise ValidationError('A variante pertence a outro produto.')

            # at most one option per group for each variant
            clash = VariantOptionLink.objects.filter(
                group_id=self.option.group_id,
                variant_id=self.variant_id
            ).exclude(option_id=self.option_id).exclude(pk=self.pk)
            if clash.exists():
                raise ValidationError(
                    f'A variante já está vinculada a outra opção de "{self.option.group.name}".'
                )

    def save(self, *args, **kwargs):
        self.group_id = self.option.group_id
        super().save(*args, **kwargs)
