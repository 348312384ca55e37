import logging
from django.conf import settings
from django.http import HttpResponse, JsonResponse
from django.shortcuts import redirect
from django.views.decorators.http import require_GET, require_POST

from core.api_client import ApiClient
from core.responses import checkout_response, request_data
from core.storage import SessionStore
from cart.utils import get_cart_summary_data, get_total_price, serialize_summary
from contracts.presenter import present_contract
from contracts.services import ContractService
from payments.discounts import DiscountLedger
from .forms import ContactInfoForm, SignatureForm, PaymentResultForm
from .steps import CheckoutFlow

logger = logging.getLogger(__name__)


def _contract_service(request):
    auth = request.auth_context
    return ContractService(ApiClient(token=auth.token, on_unauthorized=auth.invalidate))


def _flow(request):
    store = SessionStore(request.session)
    return CheckoutFlow(store, request.auth_context, _contract_service(request), DiscountLedger(store))


def _payload(request, flow, ok=True):
    discount = flow.ledger.state
    summary = get_cart_summary_data(flow.items, request.auth_context.use_member_price, discount)
    return {
        'ok': ok,
        'checkout': flow.to_dict(),
        'items': [item.to_dict() for item in flow.items],
        'summary': serialize_summary(summary),
        'discount': discount.to_record() if discount.is_active else None,
    }


def _respond(request, flow, result, events=None):
    return checkout_response(
        request,
        _payload(request, flow, result.ok),
        notice=result.toast,
        redirect_url=result.redirect_url,
        events=['checkoutUpdated'] + list(events or []),
    )


def _form_errors(form):
    return JsonResponse({'ok': False, 'errors': form.errors.get_json_data()}, status=400)


@require_GET
def checkout_page(request):
    """
    Loads the checkout for the stored cart. Redirects away when the cart is
    empty or the visitor already holds an active subscription for it.
    """
    flow = _flow(request)
    result = flow.start()
    return _respond(request, flow, result)


@require_GET
def contract_preview(request):
    """Renders the agreement the visitor is asked to sign."""
    flow = _flow(request)
    if not flow.items:
        return redirect(settings.CHECKOUT_BROWSE_URL)

    signature = flow.state.signature_data
    html = present_contract(
        _contract_service(request),
        flow.items,
        customer_name=signature.customer_name or flow.state.contact_info.get('name'),
        price=get_total_price(flow.items, request.auth_context.use_member_price, flow.ledger.state),
        signature=signature.signature,
        email=signature.customer_email,
        preview=request.GET.get('preview') != '0',
    )
    return HttpResponse(html)


@require_POST
def next_step(request):
    flow = _flow(request)
    return _respond(request, flow, flow.next())


@require_POST
def previous_step(request):
    flow = _flow(request)
    return _respond(request, flow, flow.previous())


@require_POST
def return_to_contract(request):
    flow = _flow(request)
    return _respond(request, flow, flow.return_to_contract())


@require_POST
def update_contact(request):
    form = ContactInfoForm(request_data(request))
    if not form.is_valid():
        return _form_errors(form)

    flow = _flow(request)
    return _respond(request, flow, flow.update_contact_info(**form.submitted_fields()))


@require_POST
def update_signature(request):
    form = SignatureForm(request_data(request))
    if not form.is_valid():
        return _form_errors(form)

    flow = _flow(request)
    return _respond(request, flow, flow.update_signature(**form.submitted_fields()))


@require_POST
def payment_success(request):
    """Callback of the payment widget once the provider has taken the payment."""
    form = PaymentResultForm(request_data(request))
    if not form.is_valid():
        logger.warning(f"Rejected payment callback: {form.errors.as_json()}")
        return _form_errors(form)

    flow = _flow(request)
    result = flow.payment_succeeded(form.cleaned_data)
    return _respond(request, flow, result, events=['cartUpdated'] if result.ok else None)


@require_POST
def payment_error(request):
    flow = _flow(request)
    message = str(request_data(request).get('message') or '')
    return _respond(request, flow, flow.payment_failed(message))
