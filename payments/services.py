import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP

import stripe
from django.conf import settings

from core.api_client import ApiError
from cart.utils import parse_price, to_number, unit_effective_price

logger = logging.getLogger(__name__)

DISCOUNT_PERCENTAGE = 'percentage'
DISCOUNT_FIXED_AMOUNT = 'fixed_amount'

PROVIDER_STRIPE = 'stripe'
PROVIDER_PAYPAL = 'paypal'

DEFAULT_PRODUCT_NAME = "Mentorship Package"


class DiscountError(Exception):
    """A discount code could not be verified or applied."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


@dataclass
class DiscountInfo:
    id: str
    code: str
    name: str = ""
    description: str = ""
    type: str = DISCOUNT_PERCENTAGE
    value: Decimal = Decimal('0')
    currency: str = 'USD'
    constraints: dict = field(default_factory=dict)


@dataclass
class DiscountCalculation:
    original_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    savings: Decimal
    savings_percentage: int


@dataclass
class DiscountVerification:
    valid: bool
    discount: DiscountInfo
    calculation: DiscountCalculation
    total_uses: int = 0
    max_total_uses: int = None
    remaining_uses: int = None


def calculate_discount_preview(original_amount, discount_type, discount_value, max_discount=None):
    """
    Local discount calculation used when the API leaves the amounts out.
    The discount is capped by `max_discount` and by the original amount.
    """
    original = parse_price(original_amount)
    value = parse_price(discount_value)
    discount = Decimal('0')

    if discount_type == DISCOUNT_PERCENTAGE:
        discount = original * value / Decimal('100')
    elif discount_type == DISCOUNT_FIXED_AMOUNT:
        discount = value

    if max_discount and discount > parse_price(max_discount):
        discount = parse_price(max_discount)

    discount = min(discount, original)
    final = max(Decimal('0'), original - discount)

    return DiscountCalculation(
        original_amount=original,
        discount_amount=discount,
        final_amount=final,
        savings=discount,
        savings_percentage=_percentage(discount, original),
    )


def _percentage(part, whole):
    if whole <= 0:
        return 0
    return int((part / whole * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def format_currency(amount, currency='USD'):
    symbols = {'USD': '$', 'CAD': 'CA$', 'EUR': '€', 'GBP': '£'}
    value = parse_price(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    sign = '-' if value < 0 else ''
    return f"{sign}{symbols.get(currency, currency + ' ')}{abs(value):,.2f}"


class DiscountService:
    """
    Discount endpoints. Guests verify through the public endpoint,
    authenticated users through the validating one.
    """
    BASE_PATH = '/payments/discounts'

    def __init__(self, client):
        self.client = client

    @property
    def is_authenticated(self):
        return self.client.is_authenticated

    def _post(self, path, data, failure_message):
        try:
            response = self.client.post(f"{self.BASE_PATH}{path}", data)
        except ApiError as e:
            raise DiscountError(e.message) from e

        if not isinstance(response, dict) or not response.get('success'):
            message = response.get('message') if isinstance(response, dict) else None
            raise DiscountError(message or failure_message)
        return response.get('data')

    def _transform(self, data, order_amount):
        if not isinstance(data, dict) or not data.get('valid') or not data.get('discount'):
            raise DiscountError('Invalid discount response format')

        discount = data['discount']
        original = parse_price(order_amount)
        discount_amount = discount.get('discountAmount')
        final_amount = discount.get('finalPrice')

        if discount_amount is None or final_amount is None:
            preview = calculate_discount_preview(
                original, discount.get('type'), discount.get('value'), discount.get('maxDiscount')
            )
            discount_amount = preview.discount_amount
            final_amount = preview.final_amount
        else:
            discount_amount = parse_price(discount_amount)
            final_amount = parse_price(final_amount) or original

        analytics = discount.get('analytics') or {}
        return DiscountVerification(
            valid=True,
            discount=DiscountInfo(
                id=discount.get('id', ''),
                code=discount.get('code', ''),
                name=discount.get('name', ''),
                description=discount.get('description', ''),
                type=discount.get('type', DISCOUNT_PERCENTAGE),
                value=parse_price(discount.get('value')),
                currency=discount.get('currency') or 'USD',
                constraints=discount.get('constraints') or {},
            ),
            calculation=DiscountCalculation(
                original_amount=original,
                discount_amount=discount_amount,
                final_amount=final_amount,
                savings=discount_amount,
                savings_percentage=_percentage(discount_amount, original),
            ),
            total_uses=analytics.get('totalUses') or 0,
            max_total_uses=discount.get('maxTotalUses') or None,
            remaining_uses=discount.get('remainingUses') or None,
        )

    @staticmethod
    def _request(code, order_amount, quantity):
        data = {'code': code, 'orderAmount': to_number(parse_price(order_amount))}
        if quantity:
            data['quantity'] = quantity
        return data

    def verify_discount_code(self, code, order_amount, quantity=None):
        """Public verification, no authentication required."""
        data = self._post('/public/verify', self._request(code, order_amount, quantity), 'Failed to verify discount code')
        return self._transform(data, order_amount)

    def validate_discount_code(self, code, order_amount, quantity=None):
        if not self.is_authenticated:
            raise DiscountError('Authentication required. Please log in to validate discount codes.')
        data = self._post('/validate', self._request(code, order_amount, quantity), 'Failed to validate discount code')
        return self._transform(data, order_amount)

    def smart_verify(self, code, order_amount, quantity=None):
        if self.is_authenticated:
            return self.validate_discount_code(code, order_amount, quantity)
        return self.verify_discount_code(code, order_amount, quantity)

    def apply_discount(self, code, original_amount, order_id=None, quantity=None):
        """Records the discount usage against an order."""
        if not self.is_authenticated:
            raise DiscountError('Authentication required. Please log in to apply discount codes.')
        data = {'discountCode': code, 'originalAmount': to_number(parse_price(original_amount))}
        if order_id:
            data['orderId'] = order_id
        if quantity:
            data['quantity'] = quantity
        return self._post('/apply', data, 'Failed to apply discount')

    def get_public_discounts(self, page=None, limit=None, discount_type=None, min_order_amount=None):
        params = {
            key: value for key, value in {
                'page': page,
                'limit': limit,
                'type': discount_type,
                'minOrderAmount': min_order_amount,
            }.items()
            if value
        }
        try:
            response = self.client.get(f"{self.BASE_PATH}/public", params=params)
        except ApiError as e:
            raise DiscountError(e.message) from e
        if not isinstance(response, dict) or not response.get('success'):
            raise DiscountError('Failed to fetch discount codes')
        return response.get('data') or {}


# =======================================================
# TRANSACTIONS
# =======================================================

def build_transaction_payload(items, contract_id, product_type, payment, contact_info,
                              amount, discount_amount, original_amount,
                              use_member_price=False, currency=None):
    """
    Transaction record for a completed payment. Amounts are in dollars;
    the backend converts them to cents.
    """
    first = items[0] if items else None
    product_name = first.name if first and first.name else DEFAULT_PRODUCT_NAME
    provider = payment.get('paymentProvider')

    if provider == PROVIDER_PAYPAL:
        reference = {'transactionId': payment.get('paymentId'), 'orderId': payment.get('orderId')}
    else:
        reference = {'chargeId': payment.get('paymentId'), 'paymentIntentId': payment.get('paymentIntentId')}

    line_items = []
    for item in items:
        line = {
            'id': item.id,
            'name': item.name,
            'type': item.type,
            'quantity': item.quantity,
            'price': to_number(parse_price(item.price) if use_member_price else unit_effective_price(item)),
        }
        if item.original_price:
            line['originalPrice'] = to_number(parse_price(item.original_price))
        if item.member_price:
            line['memberPrice'] = to_number(parse_price(item.member_price))
        line_items.append(line)

    discount_amount = parse_price(discount_amount)

    return {
        'amount': to_number(parse_price(amount)),
        'currency': currency or settings.CHECKOUT_CURRENCY,
        'type': 'charge',
        'status': 'completed',
        'description': f"Payment for {product_name}",
        'metadata': {
            'contractId': contract_id,
            'productType': product_type,
            'productName': product_name,
            'plan': first.name if first and first.name else "None",
            'subscriptionType': (first.type if first else None) or "one-time",
            'paymentMethod': provider,
            'items': line_items,
            'discountApplied': discount_amount > 0,
            'discountAmount': to_number(discount_amount),
            'originalAmount': to_number(parse_price(original_amount)),
        },
        'psp': {
            'provider': PROVIDER_PAYPAL if provider == PROVIDER_PAYPAL else PROVIDER_STRIPE,
            'reference': reference,
        },
        'billingDetails': {
            'name': contact_info.get('name'),
            'email': contact_info.get('email'),
            'phone': contact_info.get('phone'),
            'address': {
                'line1': contact_info.get('street_address'),
                'line2': contact_info.get('flat_suite_unit'),
                'city': contact_info.get('town_city'),
                'state': contact_info.get('state_county'),
                'postalCode': contact_info.get('postcode_zip'),
                'country': contact_info.get('country'),
            },
        },
    }


class TransactionService:
    def __init__(self, client):
        self.client = client

    def create_transaction(self, data):
        return self.client.post('/transactions', data)


def confirm_stripe_payment(payment_intent_id):
    """
    Checks a Stripe PaymentIntent reported by the payment step.
    Without a configured secret key the callback is trusted.
    """
    if not settings.STRIPE_SECRET_KEY:
        logger.warning(f"STRIPE_SECRET_KEY not set, trusting payment callback for {payment_intent_id}.")
        return True
    if not payment_intent_id:
        return False

    stripe.api_key = settings.STRIPE_SECRET_KEY
    try:
        intent = stripe.PaymentIntent.retrieve(payment_intent_id)
    except stripe.StripeError as e:
        logger.error(f"Stripe lookup failed for {payment_intent_id}: {e}")
        return False

    if intent.status != 'succeeded':
        logger.warning(f"PaymentIntent {payment_intent_id} is {intent.status}, not succeeded.")
        return False
    return True
