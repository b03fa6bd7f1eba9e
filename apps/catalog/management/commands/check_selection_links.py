import logging

from django.core.management.base import BaseCommand, CommandError

from apps.catalog.models import SelectionGroup
from apps.catalog.services import OrmLinkBackend, find_link_violations

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Report variants linked to more than one option of the same selection group.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--product',
            help='Only check the product with this slug.'
        )

    def handle(self, *args, **options):
        groups = SelectionGroup.objects.select_related('product').order_by(
            'product__name', 'display_order', 'name'
        )
        if options['product']:
            groups = groups.filter(product__slug=options['product'])

        backend = OrmLinkBackend()
        broken = 0
        checked = 0
        for group in groups:
            checked += 1
            detail = backend.fetch_group_detail(group.product_id, group.pk)
            violations = find_link_violations(detail.options)
            if not violations:
                continue
            broken += 1
            labels = {opt.id: opt.display_label for opt in detail.options}
            self.stdout.write(self.style.ERROR(f'{group.product.name} / {group.name}'))
            for variant_id, option_ids in violations.items():
                names = ', '.join(labels[option_id] for option_id in option_ids)
                self.stdout.write(f'  variant {variant_id}: {names}')

        logger.info("Checked %d selection groups, %d inconsistent", checked, broken)
        if broken:
            raise CommandError(f'{broken} selection group(s) with duplicated variant links')
        self.stdout.write(self.style.SUCCESS(f'{checked} selection group(s) checked, no duplicated links'))
