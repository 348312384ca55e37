import logging
from dataclasses import dataclass, field, asdict
from datetime import timezone as dt_timezone

from dateutil.parser import isoparse
from django.conf import settings
from django.utils import timezone
from kombu.exceptions import OperationalError

from core.api_client import ApiError
from core.responses import toast
from core.storage import CHECKOUT_SESSION_KEY
from cart.utils import (
    load_cart, clear_cart, get_subtotal, get_total_price, get_chargeable_amount, to_number,
)
from contracts.classifier import classify, is_diamond_package
from contracts.presenter import format_contract_date, format_price, DEFAULT_PRODUCT_NAME
from contracts.services import (
    Signed, AlreadyExists, ActiveSubscriptionBlocked, ValidationFailed,
    STATUS_SIGNED, STATUS_PAYMENT_PENDING, STATUS_COMPLETED,
)
from payments.services import build_transaction_payload, confirm_stripe_payment, PROVIDER_STRIPE
from payments.tasks import record_transaction_task

logger = logging.getLogger(__name__)

STEP_REVIEW = 1
STEP_SIGN = 2
STEP_CONTACT = 3
STEP_PAYMENT = 4
STEP_COMPLETE = 5

STEPS = [
    (STEP_REVIEW, "Review"),
    (STEP_SIGN, "Sign Contract"),
    (STEP_CONTACT, "Contact Info"),
    (STEP_PAYMENT, "Payment"),
    (STEP_COMPLETE, "Complete"),
]

CONTACT_FIELDS = (
    'name', 'email', 'phone', 'company', 'country', 'street_address', 'flat_suite_unit',
    'town_city', 'state_county', 'postcode_zip', 'discord_username',
)
REQUIRED_CONTACT_FIELDS = (
    'name', 'email', 'country', 'street_address', 'town_city', 'state_county', 'postcode_zip',
)

USER_CREATION_MESSAGES = {
    'created_pending': ". We've created an account for you and sent an activation email.",
    'updated_pending': ". We've resent your account activation email.",
}


def empty_contact_info():
    return dict.fromkeys(CONTACT_FIELDS, '')


@dataclass
class SignatureData:
    customer_name: str = ''
    customer_email: str = ''
    signature: str = ''


@dataclass
class CheckoutState:
    """Wizard progress persisted under the `checkout_session` key."""
    current_step: int = STEP_REVIEW
    contract_id: str = ''
    contact_info: dict = field(default_factory=empty_contact_info)
    signature_data: SignatureData = field(default_factory=SignatureData)
    contract_accepted: bool = False
    payment_method: str = ''
    is_loading: bool = False

    @classmethod
    def load(cls, store):
        record = store.get_json(CHECKOUT_SESSION_KEY)
        if not isinstance(record, dict):
            return cls()

        contact_info = empty_contact_info()
        contact_info.update({
            key: str(value or '') for key, value in (record.get('contact_info') or {}).items()
            if key in CONTACT_FIELDS
        })
        signature = record.get('signature_data') or {}
        step = record.get('current_step')

        return cls(
            current_step=step if step in dict(STEPS) else STEP_REVIEW,
            contract_id=record.get('contract_id') or '',
            contact_info=contact_info,
            signature_data=SignatureData(
                customer_name=signature.get('customer_name') or '',
                customer_email=signature.get('customer_email') or '',
                signature=signature.get('signature') or '',
            ),
            contract_accepted=bool(record.get('contract_accepted')),
            payment_method=record.get('payment_method') or '',
            is_loading=bool(record.get('is_loading')),
        )

    def save(self, store):
        store.set_json(CHECKOUT_SESSION_KEY, asdict(self))

    def missing_contact_fields(self):
        return [name for name in REQUIRED_CONTACT_FIELDS if not str(self.contact_info.get(name) or '').strip()]

    @property
    def has_signature(self):
        return bool(self.signature_data.signature.strip())


@dataclass
class StepResult:
    ok: bool
    toast: dict = None
    redirect_url: str = None


def _is_active_subscription(contract):
    end = contract.get('subscriptionEndDate')
    if not end:
        return False
    try:
        end_date = isoparse(end)
    except (TypeError, ValueError):
        logger.warning(f"Unreadable subscriptionEndDate on contract {contract.get('_id')}: {end!r}")
        return False
    if timezone.is_naive(end_date):
        end_date = timezone.make_aware(end_date, dt_timezone.utc)
    return end_date > timezone.now()


class CheckoutFlow:
    """
    The five step checkout wizard: Review, Sign, Contact Info, Payment, Complete.

    Each operation mutates the persisted CheckoutState and returns a
    StepResult carrying the toast to show and, when the visitor has to
    leave the checkout, the URL to send them to.
    """

    def __init__(self, store, auth, contract_service, ledger):
        self.store = store
        self.auth = auth
        self.contracts = contract_service
        self.ledger = ledger
        self.items = load_cart(store)
        self.state = CheckoutState.load(store)

        # Blank name and email fields start from the signed-in profile.
        contact = self.state.contact_info
        signature = self.state.signature_data
        contact['name'] = contact['name'] or auth.name
        contact['email'] = contact['email'] or auth.email
        signature.customer_name = signature.customer_name or auth.name
        signature.customer_email = signature.customer_email or auth.email

    # --- helpers ---

    def _result(self, ok, notice=None, redirect_url=None):
        self.state.save(self.store)
        return StepResult(ok=ok, toast=notice, redirect_url=redirect_url)

    def _fail(self, title, description):
        return self._result(False, toast(title, description, 'destructive'))

    def _go(self, step, notice=None):
        logger.info(f"Checkout step {self.state.current_step} -> {step}")
        self.state.current_step = step
        return self._result(True, notice)

    @property
    def product_type(self):
        return classify(self.items)

    @property
    def product_name(self):
        return self.items[0].name if self.items and self.items[0].name else DEFAULT_PRODUCT_NAME

    @property
    def total_price(self):
        return get_total_price(self.items, self.auth.use_member_price, self.ledger.state)

    def can_proceed(self):
        step = self.state.current_step
        if step == STEP_SIGN:
            return self.state.contract_accepted and self.state.has_signature
        if step == STEP_CONTACT:
            if self.state.missing_contact_fields():
                return False
            if not self.auth.is_authenticated and not self.state.contract_id:
                return self.state.contract_accepted and self.state.has_signature
            return True
        if step == STEP_PAYMENT:
            return False
        return step == STEP_REVIEW

    # --- navigation ---

    def start(self):
        """
        Entry point of the checkout page. Sends the visitor back to browsing
        when the cart is empty, and skips ahead or away when a contract for
        the cart's product already exists.
        """
        if not self.items:
            return self._result(False, redirect_url=settings.CHECKOUT_BROWSE_URL)

        if not self.auth.is_authenticated or self.state.contract_id:
            return self._result(True)

        product_type = self.product_type
        try:
            contracts = self.contracts.get_user_contracts()
        except ApiError as e:
            logger.error(f"Existing contract lookup failed: {e.message}")
            return self._result(True)

        existing = next((c for c in contracts if isinstance(c, dict) and c.get('productType') == product_type), None)
        if existing is None:
            return self._result(True)

        status = existing.get('status')
        if status == STATUS_COMPLETED and _is_active_subscription(existing):
            logger.info(f"Active {product_type} subscription found, leaving checkout.")
            notice = toast(
                "Active Subscription Found",
                "You already have an active subscription for this product. Redirecting to your subscription dashboard...",
                'destructive',
            )
            return self._result(False, notice, settings.CHECKOUT_DASHBOARD_URL)

        if status in (STATUS_SIGNED, STATUS_PAYMENT_PENDING):
            self.state.contract_id = existing.get('_id') or ''
            return self._go(STEP_PAYMENT, toast(
                "Existing Contract Found",
                "Using your existing signed contract. Proceeding to payment.",
            ))

        return self._result(True)

    def next(self):
        step = self.state.current_step
        has_contract = bool(self.state.contract_id)

        if step == STEP_SIGN and not has_contract:
            return self.sign_contract()
        if step == STEP_CONTACT and not self.auth.is_authenticated and not has_contract:
            return self.sign_guest_contract()
        if step == STEP_PAYMENT:
            return self._fail("Complete Payment Required", "Please complete the payment process to continue")
        if step >= STEP_COMPLETE:
            return self._result(True, redirect_url=settings.CHECKOUT_DASHBOARD_URL)

        if not self.can_proceed():
            if step == STEP_SIGN:
                return self._fail("Agreement Required", "Please accept the service agreement and sign to continue")
            return self._fail("Contact Information Required", "Please fill in all required fields marked with *")

        return self._go(step + 1)

    def previous(self):
        step = self.state.current_step
        if STEP_SIGN <= step <= STEP_PAYMENT:
            return self._go(step - 1)
        return self._result(False)

    def return_to_contract(self):
        if self.state.current_step != STEP_PAYMENT or self.state.contract_id:
            return self._result(False)
        return self._go(STEP_CONTACT if self.auth.is_authenticated else STEP_SIGN)

    # --- form input ---

    def update_contact_info(self, **fields):
        for name, value in fields.items():
            if name in CONTACT_FIELDS:
                self.state.contact_info[name] = value or ''
        if 'name' in fields:
            self.state.signature_data.customer_name = fields['name'] or ''
        if 'email' in fields:
            self.state.signature_data.customer_email = fields['email'] or ''
        return self._result(True)

    def update_signature(self, signature=None, contract_accepted=None):
        if signature is not None:
            self.state.signature_data.signature = signature
        if contract_accepted is not None:
            self.state.contract_accepted = bool(contract_accepted)
        return self._result(True)

    # --- contract signing ---

    def sign_contract(self):
        if not self.state.has_signature:
            return self._fail("Signature Required", "Please draw your digital signature")
        if not self.state.contract_accepted:
            return self._fail("Agreement Required", "Please accept the service agreement to continue")

        if not self.auth.is_authenticated:
            # Guests sign once the contact details are known.
            return self._go(STEP_CONTACT, toast(
                "Contact Information Required",
                "Please provide your contact information to continue",
            ))

        payload = {
            'name': self.state.signature_data.customer_name,
            'email': self.state.signature_data.customer_email,
            'signature': self.state.signature_data.signature,
            'productType': self.product_type,
            'subscriptionType': 'monthly',
            'amount': to_number(self.total_price),
            'contractDate': format_contract_date(),
            'productName': self.product_name,
        }
        if self.items and is_diamond_package(self.items[0]):
            payload['isDiamondContract'] = True

        self.state.is_loading = True
        try:
            outcome = self.contracts.sign_contract(payload)
        finally:
            self.state.is_loading = False

        if isinstance(outcome, Signed):
            self.state.contract_id = outcome.contract_id or ''
            if outcome.existing:
                if outcome.status == STATUS_PAYMENT_PENDING:
                    description = "Your contract is signed and ready for payment."
                else:
                    description = "Using your existing contract for this package. Proceeding to payment."
                return self._go(STEP_PAYMENT, toast("Contract Ready", description))
            return self._go(STEP_CONTACT, toast(
                "Contract Signed Successfully",
                "Please fill in your contact information to continue",
            ))

        if isinstance(outcome, ActiveSubscriptionBlocked):
            notice = toast(
                "Active Subscription Found",
                "You already have an active subscription for this product. Redirecting to your subscription dashboard...",
                'destructive',
            )
            return self._result(False, notice, settings.CHECKOUT_DASHBOARD_URL)

        if isinstance(outcome, AlreadyExists):
            if outcome.contract_id:
                self.state.contract_id = outcome.contract_id
            return self._go(STEP_PAYMENT, toast(
                "Contract Ready",
                "Your contract is ready for payment. Proceeding to checkout.",
            ))

        if isinstance(outcome, ValidationFailed):
            return self._fail("Contract Signing Failed", ", ".join(outcome.errors) or outcome.message)

        return self._fail("Contract Signing Failed", outcome.message or "Failed to sign contract")

    def _guest_contract_payload(self):
        contact = self.state.contact_info
        signature = self.state.signature_data.signature

        payload = {
            'fullName': contact['name'],
            'email': contact['email'],
            'country': contact['country'],
            'streetAddress': contact['street_address'],
            'townCity': contact['town_city'],
            'stateCounty': contact['state_county'],
            'postcodeZip': contact['postcode_zip'],
            'signature': signature,
            'productType': self.product_type,
            'subscriptionType': 'monthly',
            'contractData': {
                'name': contact['name'],
                'email': contact['email'],
                'date': timezone.now().isoformat(),
                'signature': signature,
                'price': format_price(self.total_price),
                'productName': self.product_name,
            },
        }
        for name, key in (('phone', 'phone'), ('flat_suite_unit', 'flatSuiteUnit'), ('discord_username', 'discordUsername')):
            value = (contact.get(name) or '').strip()
            if value:
                payload[key] = value
        return payload

    def sign_guest_contract(self):
        """Creates the contract, and an account if needed, once a guest has entered contact details."""
        if not self.state.has_signature:
            return self._fail("Signature Required", "Please go back and draw your digital signature")
        if not self.state.contract_accepted:
            return self._fail("Agreement Required", "Please accept the service agreement")
        if self.state.missing_contact_fields():
            return self._fail("Contact Information Required", "Please fill in all required fields marked with *")

        self.state.is_loading = True
        try:
            outcome = self.contracts.create_contract_with_contact(self._guest_contract_payload())
        finally:
            self.state.is_loading = False

        if isinstance(outcome, Signed):
            self.state.contract_id = outcome.contract_id or ''
            message = "Contract signed successfully" + USER_CREATION_MESSAGES.get(outcome.user_creation_status, '')
            return self._go(STEP_PAYMENT, toast("Success", message))

        if isinstance(outcome, ValidationFailed):
            return self._fail("Validation Error", ", ".join(outcome.errors))

        if isinstance(outcome, ActiveSubscriptionBlocked):
            return self._fail(
                "Active Subscription Found",
                "You already have an active subscription for this product. Please check your account or contact support.",
            )

        return self._fail("Contract Creation Failed", outcome.message or "Failed to create contract")

    # --- payment ---

    def payment_succeeded(self, payment):
        """
        Completes the checkout after the payment provider reports success.

        The discount is cleared only after the contract is marked paid. A
        failed status update keeps the visitor on the payment step with the
        discount still applied; a failed transaction record does not.
        """
        contract_id = self.state.contract_id
        if not contract_id:
            return self._fail("Payment Update Failed", "No signed contract is attached to this checkout")

        provider = payment.get('paymentProvider')
        if provider == PROVIDER_STRIPE:
            if not confirm_stripe_payment(payment.get('paymentIntentId') or payment.get('paymentId')):
                return self._fail("Payment Failed", "We could not confirm the payment with Stripe")

        use_member_price = self.auth.use_member_price
        discount = self.ledger.state
        amount = get_chargeable_amount(self.items, use_member_price, discount)
        discount_amount = discount.amount if discount.is_active else 0
        discount_code = discount.code if discount.is_active else ''
        original_amount = get_subtotal(self.items, use_member_price)

        try:
            self.contracts.update_payment_status(contract_id, payment.get('paymentId'), provider, STATUS_COMPLETED)
        except ApiError as e:
            logger.error(f"Payment status update failed for contract {contract_id}: {e.message}")
            return self._fail("Payment Update Failed", "Payment was successful but failed to update status")

        self.ledger.remove()

        contact_info = dict(self.state.contact_info)
        contact_info['name'] = contact_info.get('name') or self.auth.name
        contact_info['email'] = contact_info.get('email') or self.auth.email

        payload = build_transaction_payload(
            self.items, contract_id, self.product_type, payment, contact_info,
            amount, discount_amount, original_amount, use_member_price=use_member_price,
        )
        try:
            record_transaction_task.delay(payload, self.auth.token, discount_code=discount_code)
        except OperationalError as e:
            logger.error(f"Could not queue transaction record for contract {contract_id}: {e}")

        logger.info(f"Checkout completed for contract {contract_id}: {amount} (discount {discount_code or 'none'})")

        self.state.payment_method = provider or ''
        self.state.current_step = STEP_COMPLETE
        clear_cart(self.store)
        self.items = []
        return self._result(True, toast("Payment Successful!", "Your order has been completed successfully"))

    def payment_failed(self, message=None):
        return self._fail("Payment Failed", message or "Payment could not be completed")

    # --- presentation ---

    def next_button(self):
        step = self.state.current_step
        has_contract = bool(self.state.contract_id)
        guest_signing = step == STEP_CONTACT and not self.auth.is_authenticated and not has_contract

        if self.state.is_loading:
            label = "Processing..."
        elif step == STEP_SIGN and not has_contract:
            label = "Sign Contract"
        elif guest_signing:
            label = "Complete Contract & Continue"
        elif step == STEP_PAYMENT and not has_contract:
            label = "Complete Contract First"
        elif step == STEP_PAYMENT:
            label = "Processing Payment..."
        elif step == STEP_COMPLETE:
            label = "Go to Dashboard"
        else:
            label = "Next"

        if step == STEP_SIGN:
            disabled = not self.can_proceed() or (not has_contract and self.state.is_loading)
        elif step == STEP_CONTACT:
            disabled = not self.can_proceed() or (guest_signing and self.state.is_loading)
        else:
            disabled = step == STEP_PAYMENT

        return {'label': label, 'disabled': disabled}

    def to_dict(self):
        data = asdict(self.state)
        data['steps'] = [{'number': number, 'title': title} for number, title in STEPS]
        data['product_type'] = self.product_type
        data['next_button'] = self.next_button()
        data['show_previous'] = STEP_SIGN <= self.state.current_step <= STEP_PAYMENT
        return data
