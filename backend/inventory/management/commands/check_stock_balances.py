"""
Django management command to check that every inventory balance matches
the sum of its stock movements
"""
from decimal import Decimal
from django.core.management.base import BaseCommand, CommandError
from django.db.models import Sum
from backend.inventory.models import InventoryBalance, StockMovement

KEY_FIELDS = ('tenant_id', 'product_id', 'location_id', 'lot_number', 'expiry_date')


def find_discrepancies(tenant_id=None, product_id=None):
    """Return (key, balance_qty, ledger_qty) for every key where the two disagree"""
    balances = InventoryBalance.objects.all()
    movements = StockMovement.objects.all()
    if tenant_id:
        balances = balances.filter(tenant_id=tenant_id)
        movements = movements.filter(tenant_id=tenant_id)
    if product_id:
        balances = balances.filter(product_id=product_id)
        movements = movements.filter(product_id=product_id)

    on_hand = {}
    for row in balances.values(*KEY_FIELDS).annotate(total=Sum('qty_on_hand')).order_by():
        on_hand[tuple(row[f] for f in KEY_FIELDS)] = row['total']

    ledger = {}
    for row in movements.values(*KEY_FIELDS).annotate(total=Sum('qty')).order_by():
        ledger[tuple(row[f] for f in KEY_FIELDS)] = row['total']

    discrepancies = []
    for key in sorted(set(on_hand) | set(ledger), key=str):
        balance_qty = on_hand.get(key) or Decimal('0')
        ledger_qty = ledger.get(key) or Decimal('0')
        if balance_qty != ledger_qty:
            discrepancies.append((key, balance_qty, ledger_qty))
    return discrepancies


class Command(BaseCommand):
    help = 'Compare inventory balances with the stock movement ledger'

    def add_arguments(self, parser):
        parser.add_argument('--tenant-id', type=int, help='Check one tenant only')
        parser.add_argument('--product-id', type=int, help='Check one product only')
        parser.add_argument(
            '--fail-on-mismatch',
            action='store_true',
            help='Exit with an error when any discrepancy is found',
        )

    def handle(self, *args, **options):
        discrepancies = find_discrepancies(options.get('tenant_id'), options.get('product_id'))

        if not discrepancies:
            self.stdout.write(self.style.SUCCESS('All balances match the movement ledger'))
            return

        for (tenant_id, product_id, location_id, lot_number, expiry_date), balance_qty, ledger_qty in discrepancies:
            self.stdout.write(self.style.WARNING(
                f"tenant={tenant_id} product={product_id} location={location_id} "
                f"lot={lot_number or '-'} expiry={expiry_date or '-'}: "
                f"balance {balance_qty} vs ledger {ledger_qty} (diff {balance_qty - ledger_qty})"
            ))
        self.stdout.write(f"{len(discrepancies)} discrepancies found")

        if options['fail_on_mismatch']:
            raise CommandError(f"{len(discrepancies)} balances do not match the movement ledger")
