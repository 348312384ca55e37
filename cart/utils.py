import re
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from core.storage import CART_KEY
from .items import CartItem

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

# Leading decimal number, the way a browser's parseFloat reads it.
LEADING_NUMBER = re.compile(r'^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')


def parse_price(value):
    """
    Coerces a cart price to a Decimal.
    Numbers pass through; strings lose `$` and `,` first. Anything that
    cannot be read as a number is treated as 0.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        number = Decimal(str(value))
    else:
        match = LEADING_NUMBER.match(str(value).replace('$', '').replace(',', ''))
        if not match:
            return ZERO
        try:
            number = Decimal(match.group(0).strip())
        except InvalidOperation:
            return ZERO
    return number if number.is_finite() else ZERO


def to_number(value):
    """Decimal -> int or float for JSON payloads."""
    value = Decimal(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# =======================================================
# PRICING
# =======================================================

def unit_effective_price(item, use_member_price=False):
    if use_member_price and item.member_price:
        return parse_price(item.member_price)
    if item.original_price and not use_member_price:
        return min(parse_price(item.price), parse_price(item.original_price))
    return parse_price(item.price)


def get_subtotal(items, use_member_price=False):
    return sum((unit_effective_price(item, use_member_price) * item.quantity for item in items), ZERO)


def get_total_price(items, use_member_price=False, discount=None):
    """
    A discount total returned by the server is authoritative once set;
    it is used verbatim instead of recomputing subtotal minus amount.
    """
    if discount is not None and parse_price(discount.total) > 0:
        return parse_price(discount.total)
    return get_subtotal(items, use_member_price)


def get_original_price_total(items):
    return sum(
        (parse_price(item.original_price if item.original_price else item.price) * item.quantity for item in items),
        ZERO,
    )


def has_item_discount(items):
    return any(
        item.original_price and parse_price(item.original_price) > parse_price(item.price)
        for item in items
    )


def get_total_savings(items, use_member_price=False):
    return get_original_price_total(items) - get_subtotal(items, use_member_price)


def get_discount_percentage(items, use_member_price=False):
    original = get_original_price_total(items)
    if original == 0:
        return 0
    savings = original - get_subtotal(items, use_member_price)
    return int((savings / original * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def get_total_items(items):
    return sum(item.quantity for item in items)


def get_chargeable_amount(items, use_member_price=False, discount=None):
    """
    Amount handed to the payment provider. Never zero or negative: a
    discount larger than the subtotal falls back to the undiscounted
    subtotal (at least one cent).
    """
    subtotal = get_subtotal(items, use_member_price)
    total = get_total_price(items, use_member_price, discount)
    discount_total = parse_price(discount.total) if discount is not None else ZERO
    discount_amount = parse_price(discount.amount) if discount is not None else ZERO

    if discount_amount > subtotal:
        return max(subtotal, CENT)

    if discount_total > 0 and discount_amount > 0:
        amount = discount_total
    elif discount_amount > 0:
        amount = total - discount_amount
    else:
        amount = total

    if amount <= 0:
        logger.warning(f"Chargeable amount {amount} is not positive, charging {total} instead.")
        amount = max(total, CENT)
    return amount.quantize(CENT)


def get_cart_summary_data(items, use_member_price=False, discount=None):
    """
    Calculates summary data for the checkout.
    - Subtotal: effective unit prices times quantities.
    - Total: discount total when one is applied, else the subtotal.
    - Chargeable: what the payment step asks the provider for.
    """
    discount_amount = parse_price(discount.amount) if discount is not None else ZERO

    return {
        'subtotal': get_subtotal(items, use_member_price),
        'total': get_total_price(items, use_member_price, discount),
        'original_total': get_original_price_total(items),
        'has_item_discount': has_item_discount(items),
        'savings': get_total_savings(items, use_member_price),
        'savings_percentage': get_discount_percentage(items, use_member_price),
        'item_count': get_total_items(items),
        'discount_code': discount.code if discount is not None else '',
        'discount_amount': discount_amount,
        'chargeable_amount': get_chargeable_amount(items, use_member_price, discount),
    }


def serialize_summary(summary):
    return {key: to_number(value) if isinstance(value, Decimal) else value for key, value in summary.items()}


# =======================================================
# PERSISTENCE
# =======================================================

def load_cart(store):
    data = store.get_json(CART_KEY, [])
    if not isinstance(data, list):
        logger.warning("Ignoring cart record that is not a list.")
        return []
    return [CartItem.from_dict(entry) for entry in data if isinstance(entry, dict)]


def save_cart(store, items):
    store.set_json(CART_KEY, [item.to_dict() for item in items])


def clear_cart(store):
    store.remove(CART_KEY)
