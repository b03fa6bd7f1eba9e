import logging

from rest_framework import viewsets, filters, status
from rest_framework.decorators import action
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from apps.catalog.models import (
    Product,
    Variant,
    SelectionGroup,
    SelectionOption,
)
from apps.catalog.services import (
    FetchFailure,
    InvariantViolationDetected,
    LinkBackendError,
    LinkConflictError,
    NotFoundError,
    OrmLinkBackend,
    SelectionNavigationService,
    VariantLinkSession,
)
from .serializers import (
    ProductSerializer,
    VariantSerializer,
    VariantListSerializer,
    SelectionGroupSerializer,
    SelectionOptionSerializer,
    VariantIdsSerializer,
    FindVariantSerializer,
    serialize_diff,
)
from .filters import VariantFilter, SelectionGroupFilter

logger = logging.getLogger(__name__)


def _backend_error_response(error):
    if isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, LinkConflictError):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    body = {'error': str(error)}
    if isinstance(error, LinkConflictError) and error.variant_ids:
        body['variant_ids'] = error.variant_ids
    return Response(body, status=code)


class ProductViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API endpoint for products (read-only) and storefront selection lookups.
    """
    queryset = Product.objects.all()
    serializer_class = ProductSerializer
    lookup_field = 'slug'
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['name', 'description']
    ordering_fields = ['name', 'created_at']
    ordering = ['name']

    @action(detail=True, methods=['get'])
    def selection_config(self, request, slug=None):
        """Selector configuration for the storefront."""
        product = self.get_object()
        return Response(SelectionNavigationService.get_selection_config(product))

    @action(detail=True, methods=['get'])
    def available_options(self, request, slug=None):
        """
        Options still reachable given the current selections.

        Query params: any group_id=option_id pairs (e.g., ?3=12&4=20)
        """
        product = self.get_object()
        selections = {}
        for key, value in request.query_params.items():
            if key == 'format':
                continue
            try:
                selections[int(key)] = int(value)
            except ValueError:
                return Response(
                    {'error': f'Invalid selection {key}={value}'},
                    status=status.HTTP_400_BAD_REQUEST
                )
        return Response(
            SelectionNavigationService.get_all_available_options(product, selections)
        )

    @action(detail=True, methods=['post'])
    def find_variant(self, request, slug=None):
        """
        Find the variant matching the chosen options.

        Expected payload:
        {
            "selections": {"3": 12, "4": 20}
        }
        """
        product = self.get_object()
        serializer = FindVariantSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = SelectionNavigationService.find_variant(
            product, serializer.validated_data['selections']
        )
        return Response(result)


class VariantViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API endpoint for variants, used to populate the link picker.

    Supports filtering by product, search text, price range, stock status
    and link state.
    """
    queryset = Variant.objects.select_related('product').prefetch_related('option_links')
    filterset_class = VariantFilter
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    ordering_fields = ['sku', 'sell_price', 'stock_quantity', 'created_at']
    ordering = ['sku']

    def get_serializer_class(self):
        if self.action == 'list':
            return VariantListSerializer
        return VariantSerializer


class SelectionGroupViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API endpoint for selection groups with their options and linked variants.
    """
    queryset = SelectionGroup.objects.select_related('product').prefetch_related(
        'options__variant_links'
    )
    serializer_class = SelectionGroupSerializer
    filterset_class = SelectionGroupFilter
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    ordering = ['display_order', 'name']


class SelectionOptionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    API endpoint for selection options and their variant links.
    """
    queryset = SelectionOption.objects.select_related('group').prefetch_related(
        'variant_links'
    )
    serializer_class = SelectionOptionSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['group', 'group__product']
    search_fields = ['value', 'label']

    def _variant_ids(self, request):
        serializer = VariantIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data['variant_ids']

    def _refreshed(self, option):
        option = self.get_queryset().get(pk=option.pk)
        return Response(SelectionOptionSerializer(option).data)

    def _session(self, option):
        group = option.group
        return VariantLinkSession(OrmLinkBackend(), group.product_id, group.id, option.id)

    @action(detail=True, methods=['post'])
    def link_variants(self, request, pk=None):
        """
        Link variants to this option.

        Expected payload:
        {
            "variant_ids": [1, 2, 3]
        }
        """
        option = self.get_object()
        variant_ids = self._variant_ids(request)
        try:
            OrmLinkBackend().link_variants(
                option.group.product_id, option.group_id, option.id, variant_ids
            )
        except LinkBackendError as e:
            return _backend_error_response(e)
        return self._refreshed(option)

    @action(detail=True, methods=['post'])
    def unlink_variants(self, request, pk=None):
        """
        Unlink variants from this option.

        Expected payload:
        {
            "variant_ids": [1, 2]
        }
        """
        option = self.get_object()
        variant_ids = self._variant_ids(request)
        try:
            OrmLinkBackend().unlink_variants(
                option.group.product_id, option.group_id, option.id, variant_ids
            )
        except LinkBackendError as e:
            return _backend_error_response(e)
        return self._refreshed(option)

    @action(detail=True, methods=['post'])
    def preview_links(self, request, pk=None):
        """
        Show what submitting the given selection would change, without writing.

        Expected payload:
        {
            "variant_ids": [1, 2, 3]
        }
        """
        option = self.get_object()
        variant_ids = self._variant_ids(request)
        session = self._session(option)
        try:
            session.load()
        except FetchFailure as e:
            return Response({'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        session.replace_selection(variant_ids)
        labels = {opt.id: opt.display_label for opt in session.snapshot.options}
        body = {
            'diff': serialize_diff(session.diff, labels),
            'has_changes': session.has_changes,
            'violations': (
                {str(k): v for k, v in session.violation.violations.items()}
                if session.violation else {}
            ),
        }
        return Response(body)

    @action(detail=True, methods=['post'])
    def reconcile(self, request, pk=None):
        """
        Make the given variants the exact set linked to this option.

        Variants held by another option of the group are moved. Responds
        409 with the per-phase result when a phase fails.

        Expected payload:
        {
            "variant_ids": [1, 2, 3]
        }
        """
        option = self.get_object()
        variant_ids = self._variant_ids(request)
        session = self._session(option)
        try:
            session.load()
        except FetchFailure as e:
            return Response({'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        session.replace_selection(variant_ids)
        labels = {opt.id: opt.display_label for opt in session.snapshot.options}
        diff = session.diff

        try:
            result = session.submit()
        except InvariantViolationDetected as e:
            return Response(
                {
                    'error': str(e),
                    'violations': {str(k): v for k, v in e.violations.items()},
                },
                status=status.HTTP_409_CONFLICT
            )
        except FetchFailure as e:
            logger.warning("Option %s reconciled but reload failed: %s", option.pk, e)
            return Response(
                {'diff': serialize_diff(diff, labels), 'error': str(e)},
                status=status.HTTP_503_SERVICE_UNAVAILABLE
            )

        body = {
            'diff': serialize_diff(diff, labels),
            'result': result.as_dict(),
        }
        if result.ok:
            body['linked_variant_ids'] = sorted(session.option.linked_variant_ids)
            return Response(body)

        if isinstance(result.error.cause, NotFoundError):
            return Response(body, status=status.HTTP_404_NOT_FOUND)
        return Response(body, status=status.HTTP_409_CONFLICT)
