"""
Stock engine.

Every balance mutation goes through add_stock, remove_stock or set_stock so
that the balance and its movement row are written together. Callers wrap
a whole workflow in transaction.atomic(); the engine locks the product row
first, which serializes writers on the same product and makes the
get-or-create of a balance row safe.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db import transaction

from backend.catalog.models import Product
from backend.core.cache_utils import invalidate_stock_cache
from backend.core.exceptions import InventoryError, InsufficientStockError
from .models import InventoryBalance, StockMovement

logger = logging.getLogger('backend.inventory')

ZERO = Decimal('0')
QTY_QUANT = Decimal('0.001')
COST_QUANT = Decimal('0.0001')


def quantize_qty(value):
    return Decimal(value).quantize(QTY_QUANT, rounding=ROUND_HALF_UP)


def quantize_cost(value):
    return Decimal(value).quantize(COST_QUANT, rounding=ROUND_HALF_UP)


def normalize_lot(lot_number):
    """Blank lot numbers are stored as NULL"""
    if lot_number is None:
        return None
    return str(lot_number).strip() or None


def weighted_average_cost(current_qty, current_cost, qty, unit_cost):
    if current_qty > 0:
        return (current_qty * current_cost + qty * unit_cost) / (current_qty + qty)
    return unit_cost


def _lock_product(product):
    return Product.objects.select_for_update().get(pk=product.pk)


def _balance_queryset(tenant, product, location, lot_number, expiry_date):
    return InventoryBalance.objects.filter(
        tenant=tenant,
        product=product,
        location=location,
        lot_number=normalize_lot(lot_number),
        expiry_date=expiry_date,
    )


def get_balance(tenant, product, location, lot_number=None, expiry_date=None, for_update=False):
    queryset = _balance_queryset(tenant, product, location, lot_number, expiry_date)
    if for_update:
        queryset = queryset.select_for_update()
    return queryset.order_by('id').first()


def available_qty(tenant, product, location, lot_number=None, expiry_date=None):
    """Current on-hand quantity for a balance key; zero when the key has no balance"""
    balance = get_balance(tenant, product, location, lot_number, expiry_date)
    return balance.qty_on_hand if balance else ZERO


def _record_movement(tenant, product, location, qty, movement_type, unit_cost, reference_type, reference_id,
                     lot_number, expiry_date, reason, notes, user):
    return StockMovement.objects.create(
        tenant=tenant,
        product=product,
        location=location,
        qty=quantize_qty(qty),
        movement_type=movement_type,
        reference_type=reference_type,
        reference_id=reference_id,
        lot_number=normalize_lot(lot_number),
        expiry_date=expiry_date,
        unit_cost=quantize_cost(unit_cost) if unit_cost is not None else None,
        reason=reason,
        notes=notes,
        created_by=user,
    )


@transaction.atomic
def add_stock(tenant, product, location, qty, unit_cost, movement_type, reference_type=None, reference_id=None,
              lot_number=None, expiry_date=None, reason=None, notes=None, user=None):
    """
    Increase on-hand stock and re-average the balance cost.

    Returns the updated InventoryBalance.
    """
    qty = Decimal(qty)
    unit_cost = Decimal(unit_cost or 0)
    if qty <= 0:
        raise InventoryError('Quantity must be greater than 0')

    _lock_product(product)
    balance = get_balance(tenant, product, location, lot_number, expiry_date, for_update=True)
    if balance is None:
        balance = InventoryBalance(
            tenant=tenant,
            product=product,
            location=location,
            lot_number=normalize_lot(lot_number),
            expiry_date=expiry_date,
            qty_on_hand=ZERO,
            avg_cost=ZERO,
        )

    balance.avg_cost = quantize_cost(weighted_average_cost(balance.qty_on_hand, balance.avg_cost, qty, unit_cost))
    balance.qty_on_hand = quantize_qty(balance.qty_on_hand + qty)
    balance.save()

    _record_movement(tenant, product, location, qty, movement_type, unit_cost, reference_type, reference_id,
                     lot_number, expiry_date, reason, notes, user)
    transaction.on_commit(lambda: invalidate_stock_cache(tenant.id))
    logger.debug(f"+{qty} {product.sku} at location {location.id} ({movement_type})")
    return balance


@transaction.atomic
def remove_stock(tenant, product, location, qty, movement_type, reference_type=None, reference_id=None,
                 lot_number=None, expiry_date=None, reason=None, notes=None, user=None):
    """
    Decrease on-hand stock.

    Raises InsufficientStockError when the balance holds less than qty.
    Returns the balance avg_cost the stock left at.
    """
    qty = Decimal(qty)
    if qty <= 0:
        raise InventoryError('Quantity must be greater than 0')

    _lock_product(product)
    balance = get_balance(tenant, product, location, lot_number, expiry_date, for_update=True)
    if balance is None or balance.qty_on_hand < qty:
        logger.warning(f"Insufficient stock for {product.sku} at location {location.id}: "
                       f"have {balance.qty_on_hand if balance else 0}, need {qty}")
        raise InsufficientStockError(f'Insufficient stock for {product.sku}')

    cost = balance.avg_cost
    balance.qty_on_hand = quantize_qty(balance.qty_on_hand - qty)
    balance.save(update_fields=['qty_on_hand', 'updated_at'])

    _record_movement(tenant, product, location, -qty, movement_type, cost, reference_type, reference_id,
                     lot_number, expiry_date, reason, notes, user)
    transaction.on_commit(lambda: invalidate_stock_cache(tenant.id))
    logger.debug(f"-{qty} {product.sku} at location {location.id} ({movement_type})")
    return cost


@transaction.atomic
def set_stock(tenant, product, location, counted_qty, reference_type=None, reference_id=None,
              lot_number=None, expiry_date=None, reason='count_variance', notes=None, user=None):
    """
    Set a balance to a counted quantity and record the variance.

    A missing balance is created only when something was counted. Returns
    the variance (counted - on hand before).
    """
    counted_qty = Decimal(counted_qty)
    if counted_qty < 0:
        raise InventoryError('Counted quantity cannot be negative')

    product = _lock_product(product)
    balance = get_balance(tenant, product, location, lot_number, expiry_date, for_update=True)
    current = balance.qty_on_hand if balance else ZERO
    variance = counted_qty - current
    if variance == 0:
        return variance

    if balance is None:
        balance = InventoryBalance(
            tenant=tenant,
            product=product,
            location=location,
            lot_number=normalize_lot(lot_number),
            expiry_date=expiry_date,
            qty_on_hand=ZERO,
            avg_cost=quantize_cost(product.current_cost or 0),
        )
    balance.qty_on_hand = quantize_qty(counted_qty)
    balance.save()

    _record_movement(tenant, product, location, variance, 'count_variance', balance.avg_cost, reference_type,
                     reference_id, lot_number, expiry_date, reason, notes, user)
    transaction.on_commit(lambda: invalidate_stock_cache(tenant.id))
    return variance
