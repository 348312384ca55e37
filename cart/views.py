import logging
from django.http import JsonResponse
from django.views.decorators.http import require_POST, require_GET

from core.responses import checkout_response, toast, request_data
from core.storage import SessionStore, CHECKOUT_SESSION_KEY
from payments.discounts import DiscountLedger
from .items import CartItem
from .utils import load_cart, save_cart, clear_cart as clear_stored_cart, get_cart_summary_data, serialize_summary

logger = logging.getLogger(__name__)


def _cart_payload(request, items):
    store = SessionStore(request.session)
    ledger = DiscountLedger(store)
    summary = get_cart_summary_data(items, request.auth_context.use_member_price, ledger.state)
    return {
        'items': [item.to_dict() for item in items],
        'summary': serialize_summary(summary),
    }


@require_GET
def cart_detail(request):
    """Returns the stored cart with its pricing summary."""
    items = load_cart(SessionStore(request.session))
    return JsonResponse(_cart_payload(request, items))


@require_POST
def add_to_cart(request):
    """
    Starts a new checkout with the selected package.
    The cart holds one package at a time, so the previous cart, discount
    and wizard progress are dropped.
    """
    data = request_data(request)
    if not data or not data.get('id'):
        return JsonResponse({'error': 'A product id is required.'}, status=400)

    store = SessionStore(request.session)
    item = CartItem.from_dict(data)

    DiscountLedger(store).remove()
    store.remove(CHECKOUT_SESSION_KEY)
    save_cart(store, [item])
    logger.info(f"Cart replaced with {item.id}")

    notice = toast("Added to Cart", f"{item.name or item.id} has been added to your cart")
    return checkout_response(request, _cart_payload(request, [item]), notice, events=['cartUpdated'])


@require_POST
def remove_from_cart(request, item_id):
    store = SessionStore(request.session)
    items = [item for item in load_cart(store) if item.id != item_id]
    save_cart(store, items)
    if not items:
        DiscountLedger(store).remove()
    return checkout_response(request, _cart_payload(request, items), events=['cartUpdated'])


@require_POST
def clear_cart(request):
    store = SessionStore(request.session)
    clear_stored_cart(store)
    DiscountLedger(store).remove()
    store.remove(CHECKOUT_SESSION_KEY)
    return checkout_response(request, _cart_payload(request, []), events=['cartUpdated'])
