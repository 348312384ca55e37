import logging
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from core.api_client import ApiClient
from core.responses import checkout_response, toast, request_data
from core.storage import SessionStore
from cart.utils import load_cart, get_subtotal, get_total_items, get_cart_summary_data, serialize_summary
from .discounts import DiscountLedger
from .services import DiscountService, DiscountError, format_currency

logger = logging.getLogger(__name__)


def _discount_payload(request, store, ledger):
    items = load_cart(store)
    summary = get_cart_summary_data(items, request.auth_context.use_member_price, ledger.state)
    return {
        'discount': ledger.state.to_record() if ledger.state.is_active else None,
        'summary': serialize_summary(summary),
    }


@require_POST
def apply_discount(request):
    """
    Verifies a discount code against the cart subtotal and stores the
    result as the checkout's single discount.
    """
    auth = request.auth_context
    store = SessionStore(request.session)
    ledger = DiscountLedger(store)
    code = str(request_data(request).get('code') or '').strip().upper()

    if not code:
        notice = toast("Invalid Discount Code", "Please enter a discount code", 'destructive')
        return checkout_response(request, _discount_payload(request, store, ledger), notice, status=400)

    items = load_cart(store)
    if not items:
        notice = toast("Invalid Discount Code", "Your cart is empty", 'destructive')
        return checkout_response(request, _discount_payload(request, store, ledger), notice, status=400)

    subtotal = get_subtotal(items, auth.use_member_price)
    service = DiscountService(ApiClient(token=auth.token, on_unauthorized=auth.invalidate))

    try:
        verification = service.smart_verify(code, subtotal, get_total_items(items))
    except DiscountError as e:
        logger.info(f"Discount code {code} rejected: {e.message}")
        description = e.message
        if not auth.is_authenticated:
            description += ". Log in for additional discount options."
        notice = toast("Invalid Discount Code", description, 'destructive')
        return checkout_response(request, _discount_payload(request, store, ledger), notice, status=400)

    calculation = verification.calculation
    ledger.apply(code, calculation.discount_amount, calculation.final_amount)

    name = verification.discount.name or code
    notice = toast("Discount Applied!", f"{name} - Save {format_currency(calculation.savings, verification.discount.currency)}")
    return checkout_response(request, _discount_payload(request, store, ledger), notice, events=['cartUpdated'])


@require_POST
def remove_discount(request):
    store = SessionStore(request.session)
    ledger = DiscountLedger(store)
    ledger.remove()
    notice = toast("Discount Removed", "The discount has been removed from your order")
    return checkout_response(request, _discount_payload(request, store, ledger), notice, events=['cartUpdated'])


@require_GET
def public_discounts(request):
    """Lists the discount codes the backend advertises publicly."""
    auth = request.auth_context
    service = DiscountService(ApiClient(token=auth.token, on_unauthorized=auth.invalidate))
    try:
        listing = service.get_public_discounts(
            page=request.GET.get('page'),
            limit=request.GET.get('limit'),
            discount_type=request.GET.get('type'),
            min_order_amount=request.GET.get('minOrderAmount'),
        )
    except DiscountError as e:
        logger.warning(f"Public discount listing failed: {e.message}")
        return JsonResponse({'ok': False, 'error': e.message}, status=502)
    return JsonResponse({'ok': True, 'discounts': listing})
