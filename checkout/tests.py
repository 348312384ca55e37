import json
from datetime import timedelta
from decimal import Decimal
from unittest import mock
from urllib.parse import quote

from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from kombu.exceptions import OperationalError

from cart.items import CartItem
from cart.utils import save_cart, load_cart
from core.api_client import ApiError
from core.auth import AuthContext
from core.storage import InMemoryStore, DISCOUNT_KEY
from contracts.services import Signed, AlreadyExists, ActiveSubscriptionBlocked, ValidationFailed, UnknownError
from payments.discounts import DiscountLedger
from .steps import CheckoutFlow, CheckoutState

SIGNATURE = 'data:image/png;base64,iVBORw0KGgo='

DIAMOND = {'id': 'diamond-subscription-monthly', 'name': 'Diamond', 'price': '$76.00', 'quantity': 1}

CONTACT = {
    'name': 'Ada Client',
    'email': 'ada@example.com',
    'country': 'US',
    'street_address': '1 Main St',
    'town_city': 'Austin',
    'state_county': 'TX',
    'postcode_zip': '73301',
}


def member():
    return AuthContext(token='abc', name='Ada Client', email='ada@example.com', subscription='None')


def guest():
    return AuthContext()


@override_settings(CHECKOUT_BROWSE_URL='/advising', CHECKOUT_DASHBOARD_URL='/hub')
class CheckoutFlowTestCase(SimpleTestCase):
    def setUp(self):
        self.store = InMemoryStore()
        self.contracts = mock.Mock()

    def make_flow(self, auth=None, items=(DIAMOND,), **state):
        save_cart(self.store, [CartItem.from_dict(data) for data in items])
        if state:
            record = CheckoutState(**state)
            record.save(self.store)
        return CheckoutFlow(self.store, auth or guest(), self.contracts, DiscountLedger(self.store))

    def reload(self):
        return CheckoutState.load(self.store)


class StartTests(CheckoutFlowTestCase):
    def test_empty_cart_goes_back_to_browsing(self):
        result = self.make_flow(items=()).start()

        self.assertFalse(result.ok)
        self.assertEqual(result.redirect_url, '/advising')

    def test_guests_skip_contract_lookup(self):
        result = self.make_flow().start()

        self.assertTrue(result.ok)
        self.contracts.get_user_contracts.assert_not_called()
        self.assertEqual(self.reload().current_step, 1)

    def test_pending_contract_jumps_to_payment(self):
        self.contracts.get_user_contracts.return_value = [
            {'_id': 'other', 'productType': 'mentorship-package', 'status': 'signed'},
            {'_id': 'c1', 'productType': 'diamond-subscription', 'status': 'payment_pending'},
        ]

        result = self.make_flow(auth=member()).start()

        self.assertEqual(result.toast['title'], "Existing Contract Found")
        state = self.reload()
        self.assertEqual(state.current_step, 4)
        self.assertEqual(state.contract_id, 'c1')

    def test_active_subscription_leaves_checkout(self):
        ends = (timezone.now() + timedelta(days=20)).isoformat()
        self.contracts.get_user_contracts.return_value = [
            {'_id': 'c1', 'productType': 'diamond-subscription', 'status': 'completed', 'subscriptionEndDate': ends},
        ]

        result = self.make_flow(auth=member()).start()

        self.assertFalse(result.ok)
        self.assertEqual(result.redirect_url, '/hub')
        self.assertEqual(result.toast['title'], "Active Subscription Found")
        self.assertEqual(result.toast['variant'], 'destructive')

    def test_expired_subscription_allows_checkout(self):
        ended = (timezone.now() - timedelta(days=1)).strftime('%Y-%m-%dT%H:%M:%S')
        self.contracts.get_user_contracts.return_value = [
            {'_id': 'c1', 'productType': 'diamond-subscription', 'status': 'completed', 'subscriptionEndDate': ended},
        ]

        result = self.make_flow(auth=member()).start()

        self.assertTrue(result.ok)
        self.assertIsNone(result.redirect_url)
        self.assertEqual(self.reload().current_step, 1)

    def test_lookup_failure_is_only_logged(self):
        self.contracts.get_user_contracts.side_effect = ApiError("Server error - please try again later")

        with self.assertLogs('checkout.steps', level='ERROR'):
            result = self.make_flow(auth=member()).start()

        self.assertTrue(result.ok)
        self.assertIsNone(result.toast)

    def test_profile_prefills_contact_details(self):
        flow = self.make_flow(auth=member())
        self.assertEqual(flow.state.contact_info['email'], 'ada@example.com')
        self.assertEqual(flow.state.signature_data.customer_name, 'Ada Client')


class NavigationTests(CheckoutFlowTestCase):
    def test_review_advances_unconditionally(self):
        self.assertTrue(self.make_flow().next().ok)
        self.assertEqual(self.reload().current_step, 2)

    def test_sign_step_requires_acceptance(self):
        flow = self.make_flow(auth=member(), current_step=2)
        flow.update_signature(signature=SIGNATURE, contract_accepted=False)

        result = flow.next()

        self.assertFalse(result.ok)
        self.assertEqual(result.toast['title'], "Agreement Required")
        self.assertEqual(self.reload().current_step, 2)
        self.contracts.sign_contract.assert_not_called()

    def test_sign_step_requires_signature(self):
        flow = self.make_flow(auth=member(), current_step=2, contract_accepted=True)

        result = flow.next()

        self.assertEqual(result.toast['title'], "Signature Required")
        self.contracts.sign_contract.assert_not_called()

    def test_existing_contract_skips_signing(self):
        flow = self.make_flow(auth=member(), current_step=2, contract_id='c1', contract_accepted=True)
        flow.update_signature(signature=SIGNATURE)

        self.assertTrue(flow.next().ok)

        self.assertEqual(self.reload().current_step, 3)
        self.assertEqual(self.contracts.method_calls, [])

    def test_contact_step_requires_address(self):
        flow = self.make_flow(auth=member(), current_step=3, contract_id='c1')
        flow.update_contact_info(name='Ada Client', email='ada@example.com')

        result = flow.next()

        self.assertEqual(result.toast['title'], "Contact Information Required")
        self.assertEqual(self.reload().current_step, 3)

        flow.update_contact_info(**CONTACT)
        self.assertTrue(flow.next().ok)
        self.assertEqual(self.reload().current_step, 4)

    def test_payment_step_never_advances(self):
        result = self.make_flow(auth=member(), current_step=4, contract_id='c1').next()

        self.assertFalse(result.ok)
        self.assertEqual(result.toast['title'], "Complete Payment Required")
        self.assertEqual(self.reload().current_step, 4)

    def test_complete_step_offers_dashboard(self):
        result = self.make_flow(current_step=5).next()
        self.assertEqual(result.redirect_url, '/hub')

    def test_previous(self):
        self.assertFalse(self.make_flow(current_step=1).previous().ok)
        self.assertEqual(self.reload().current_step, 1)

        self.assertTrue(self.make_flow(current_step=3).previous().ok)
        self.assertEqual(self.reload().current_step, 2)

        self.assertFalse(self.make_flow(current_step=5).previous().ok)
        self.assertEqual(self.reload().current_step, 5)

    def test_return_to_contract(self):
        self.make_flow(current_step=4).return_to_contract()
        self.assertEqual(self.reload().current_step, 2)

        self.make_flow(auth=member(), current_step=4).return_to_contract()
        self.assertEqual(self.reload().current_step, 3)

        self.assertFalse(self.make_flow(current_step=4, contract_id='c1').return_to_contract().ok)
        self.assertEqual(self.reload().current_step, 4)

    def test_contact_details_feed_signature(self):
        flow = self.make_flow()
        flow.update_contact_info(name='Grace Guest', email='grace@example.com', favourite_colour='blue')

        state = self.reload()
        self.assertEqual(state.signature_data.customer_name, 'Grace Guest')
        self.assertEqual(state.signature_data.customer_email, 'grace@example.com')
        self.assertNotIn('favourite_colour', state.contact_info)


class SignContractTests(CheckoutFlowTestCase):
    def signed_flow(self, auth=None, **state):
        flow = self.make_flow(auth=auth or member(), current_step=2, **state)
        flow.update_signature(signature=SIGNATURE, contract_accepted=True)
        return flow

    def test_new_contract_moves_to_contact_info(self):
        self.contracts.sign_contract.return_value = Signed(contract={'_id': 'c1', 'status': 'signed'}, contract_id='c1')

        result = self.signed_flow().next()

        self.assertEqual(result.toast['title'], "Contract Signed Successfully")
        state = self.reload()
        self.assertEqual((state.current_step, state.contract_id), (3, 'c1'))
        self.assertFalse(state.is_loading)

        payload = self.contracts.sign_contract.call_args.args[0]
        self.assertEqual(payload['productType'], 'diamond-subscription')
        self.assertEqual(payload['amount'], 76)
        self.assertEqual(payload['subscriptionType'], 'monthly')
        self.assertEqual(payload['productName'], 'Diamond')
        self.assertEqual(payload['signature'], SIGNATURE)
        self.assertEqual(payload['email'], 'ada@example.com')
        self.assertTrue(payload['isDiamondContract'])

    def test_signing_uses_discounted_total(self):
        self.contracts.sign_contract.return_value = Signed(contract={'_id': 'c1'}, contract_id='c1')
        flow = self.signed_flow()
        flow.ledger.apply('SAVE20', Decimal('15.2'), Decimal('60.8'))

        flow.next()

        self.assertEqual(self.contracts.sign_contract.call_args.args[0]['amount'], 60.8)

    def test_existing_contract_moves_to_payment(self):
        self.contracts.sign_contract.return_value = Signed(
            contract={'_id': 'c1', 'status': 'payment_pending'}, contract_id='c1', existing=True,
        )

        result = self.signed_flow().next()

        self.assertEqual(result.toast['title'], "Contract Ready")
        self.assertEqual(result.toast['description'], "Your contract is signed and ready for payment.")
        self.assertEqual(self.reload().current_step, 4)

    def test_already_exists_is_not_an_error(self):
        self.contracts.sign_contract.return_value = AlreadyExists(contract={'_id': 'c9'})

        result = self.signed_flow().next()

        self.assertTrue(result.ok)
        self.assertEqual(result.toast['description'], "Your contract is ready for payment. Proceeding to checkout.")
        state = self.reload()
        self.assertEqual((state.current_step, state.contract_id), (4, 'c9'))

    def test_active_subscription_redirects(self):
        self.contracts.sign_contract.return_value = ActiveSubscriptionBlocked()

        result = self.signed_flow().next()

        self.assertEqual(result.redirect_url, '/hub')
        self.assertEqual(self.reload().current_step, 2)

    def test_failure_keeps_step(self):
        self.contracts.sign_contract.return_value = UnknownError("Network error - please check your connection")

        result = self.signed_flow().next()

        self.assertFalse(result.ok)
        self.assertEqual(result.toast['title'], "Contract Signing Failed")
        self.assertEqual(result.toast['description'], "Network error - please check your connection")
        state = self.reload()
        self.assertEqual((state.current_step, state.contract_id), (2, ''))

    def test_guests_collect_contact_info_first(self):
        result = self.signed_flow(auth=guest()).next()

        self.assertEqual(result.toast['title'], "Contact Information Required")
        self.assertEqual(self.reload().current_step, 3)
        self.assertEqual(self.contracts.method_calls, [])


class GuestContractTests(CheckoutFlowTestCase):
    def ready_flow(self, **contact):
        flow = self.make_flow(current_step=3)
        flow.update_signature(signature=SIGNATURE, contract_accepted=True)
        flow.update_contact_info(**dict(CONTACT, **contact))
        return flow

    def test_creates_contract_and_account(self):
        self.contracts.create_contract_with_contact.return_value = Signed(
            contract={'_id': 'c2'}, contract_id='c2', user_creation_status='created_pending',
        )

        result = self.ready_flow(discord_username=' ada#1 ').next()

        self.assertEqual(result.toast['title'], "Success")
        self.assertEqual(
            result.toast['description'],
            "Contract signed successfully. We've created an account for you and sent an activation email.",
        )
        state = self.reload()
        self.assertEqual((state.current_step, state.contract_id), (4, 'c2'))

        payload = self.contracts.create_contract_with_contact.call_args.args[0]
        self.assertEqual(payload['fullName'], 'Ada Client')
        self.assertEqual(payload['postcodeZip'], '73301')
        self.assertEqual(payload['discordUsername'], 'ada#1')
        self.assertNotIn('phone', payload)
        self.assertNotIn('flatSuiteUnit', payload)
        self.assertEqual(payload['contractData']['price'], '76')
        self.assertEqual(payload['contractData']['productName'], 'Diamond')
        self.contracts.sign_contract.assert_not_called()

    def test_resent_activation(self):
        self.contracts.create_contract_with_contact.return_value = Signed(
            contract={}, contract_id='c2', user_creation_status='updated_pending',
        )
        result = self.ready_flow().next()
        self.assertTrue(result.toast['description'].endswith("We've resent your account activation email."))

    def test_missing_fields(self):
        result = self.ready_flow(postcode_zip='  ').next()

        self.assertEqual(result.toast['description'], "Please fill in all required fields marked with *")
        self.contracts.create_contract_with_contact.assert_not_called()

    def test_missing_signature(self):
        flow = self.make_flow(current_step=3, contract_accepted=True)
        flow.update_contact_info(**CONTACT)

        result = flow.next()

        self.assertEqual(result.toast['description'], "Please go back and draw your digital signature")
        self.contracts.create_contract_with_contact.assert_not_called()

    def test_validation_errors(self):
        self.contracts.create_contract_with_contact.return_value = ValidationFailed(errors=['Email is invalid', 'Phone is invalid'])

        result = self.ready_flow().next()

        self.assertEqual(result.toast['title'], "Validation Error")
        self.assertEqual(result.toast['description'], "Email is invalid, Phone is invalid")
        self.assertEqual(self.reload().current_step, 3)

    def test_active_subscription(self):
        self.contracts.create_contract_with_contact.return_value = ActiveSubscriptionBlocked()

        result = self.ready_flow().next()

        self.assertIsNone(result.redirect_url)
        self.assertTrue(result.toast['description'].endswith("Please check your account or contact support."))

    def test_failure(self):
        self.contracts.create_contract_with_contact.return_value = UnknownError("Server error - please try again later")
        result = self.ready_flow().next()
        self.assertEqual(result.toast['title'], "Contract Creation Failed")


@mock.patch('checkout.steps.record_transaction_task')
@mock.patch('checkout.steps.confirm_stripe_payment', return_value=True)
class PaymentTests(CheckoutFlowTestCase):
    PAYMENT = {'paymentId': 'ch_1', 'paymentIntentId': 'pi_1', 'paymentProvider': 'stripe'}

    def paying_flow(self):
        flow = self.make_flow(auth=member(), current_step=4, contract_id='c1')
        flow.update_contact_info(**CONTACT)
        flow.ledger.apply('SAVE20', Decimal('15.2'), Decimal('60.8'))
        return flow

    def test_success_completes_checkout(self, confirm, task):
        result = self.paying_flow().payment_succeeded(self.PAYMENT)

        self.assertTrue(result.ok)
        self.assertEqual(result.toast['title'], "Payment Successful!")
        confirm.assert_called_once_with('pi_1')
        self.contracts.update_payment_status.assert_called_once_with('c1', 'ch_1', 'stripe', 'completed')

        payload, token = task.delay.call_args.args
        self.assertEqual(token, 'abc')
        self.assertEqual(payload['amount'], 60.8)
        self.assertEqual(payload['metadata']['discountAmount'], 15.2)
        self.assertEqual(payload['metadata']['originalAmount'], 76)
        self.assertEqual(payload['metadata']['contractId'], 'c1')
        self.assertEqual(task.delay.call_args.kwargs, {'discount_code': 'SAVE20'})

        state = self.reload()
        self.assertEqual(state.current_step, 5)
        self.assertEqual(state.payment_method, 'stripe')
        self.assertEqual(load_cart(self.store), [])
        self.assertIsNone(self.store.get(DISCOUNT_KEY))

    def test_status_update_failure_stays_on_payment(self, confirm, task):
        self.contracts.update_payment_status.side_effect = ApiError("Server error - please try again later")

        with self.assertLogs('checkout.steps', level='ERROR'):
            result = self.paying_flow().payment_succeeded(self.PAYMENT)

        self.assertFalse(result.ok)
        self.assertEqual(result.toast['description'], "Payment was successful but failed to update status")
        self.assertEqual(self.reload().current_step, 4)
        self.assertEqual(len(load_cart(self.store)), 1)
        task.delay.assert_not_called()

    def test_retry_after_status_update_failure_keeps_discount(self, confirm, task):
        self.contracts.update_payment_status.side_effect = ApiError("Server error - please try again later")
        with self.assertLogs('checkout.steps', level='ERROR'):
            self.paying_flow().payment_succeeded(self.PAYMENT)

        self.assertEqual(self.store.get_json(DISCOUNT_KEY)['code'], 'SAVE20')

        self.contracts.update_payment_status.side_effect = None
        flow = CheckoutFlow(self.store, member(), self.contracts, DiscountLedger(self.store))
        result = flow.payment_succeeded(self.PAYMENT)

        self.assertTrue(result.ok)
        payload, token = task.delay.call_args.args
        self.assertEqual(payload['amount'], 60.8)
        self.assertEqual(payload['metadata']['discountAmount'], 15.2)
        self.assertIsNone(self.store.get(DISCOUNT_KEY))

    def test_transaction_queue_failure_is_not_fatal(self, confirm, task):
        task.delay.side_effect = OperationalError("broker unavailable")

        with self.assertLogs('checkout.steps', level='ERROR'):
            result = self.paying_flow().payment_succeeded(self.PAYMENT)

        self.assertTrue(result.ok)
        self.assertEqual(self.reload().current_step, 5)

    def test_unconfirmed_stripe_payment(self, confirm, task):
        confirm.return_value = False

        result = self.paying_flow().payment_succeeded(self.PAYMENT)

        self.assertEqual(result.toast['title'], "Payment Failed")
        self.contracts.update_payment_status.assert_not_called()
        self.assertEqual(self.reload().current_step, 4)

    def test_paypal_skips_stripe_lookup(self, confirm, task):
        self.paying_flow().payment_succeeded({'paymentId': 'PAY-1', 'orderId': 'O-1', 'paymentProvider': 'paypal'})

        confirm.assert_not_called()
        self.assertEqual(task.delay.call_args.args[0]['psp']['provider'], 'paypal')

    def test_requires_contract(self, confirm, task):
        result = self.make_flow(auth=member(), current_step=4).payment_succeeded(self.PAYMENT)

        self.assertFalse(result.ok)
        self.contracts.update_payment_status.assert_not_called()

    def test_payment_error(self, confirm, task):
        result = self.make_flow(current_step=4).payment_failed("Card declined")
        self.assertEqual(result.toast, {'title': "Payment Failed", 'description': "Card declined", 'variant': 'destructive'})


class NextButtonTests(CheckoutFlowTestCase):
    def test_labels(self):
        self.assertEqual(self.make_flow(current_step=1).next_button(), {'label': "Next", 'disabled': False})
        self.assertEqual(self.make_flow(current_step=2).next_button(), {'label': "Sign Contract", 'disabled': True})
        self.assertEqual(self.make_flow(current_step=3).next_button()['label'], "Complete Contract & Continue")
        self.assertEqual(self.make_flow(current_step=4).next_button(), {'label': "Complete Contract First", 'disabled': True})
        self.assertEqual(
            self.make_flow(current_step=4, contract_id='c1').next_button(),
            {'label': "Processing Payment...", 'disabled': True},
        )
        self.assertEqual(self.make_flow(current_step=5).next_button()['label'], "Go to Dashboard")
        self.assertEqual(self.make_flow(current_step=2, is_loading=True).next_button()['label'], "Processing...")

    def test_sign_button_enables_once_signed(self):
        flow = self.make_flow(current_step=2)
        flow.update_signature(signature=SIGNATURE, contract_accepted=True)
        self.assertFalse(flow.next_button()['disabled'])


@override_settings(CHECKOUT_BROWSE_URL='/advising', CHECKOUT_DASHBOARD_URL='/hub', STRIPE_SECRET_KEY=None)
class CheckoutViewTests(TestCase):
    def put_in_session(self, **records):
        session = self.client.session
        for key, value in records.items():
            session[key] = json.dumps(value)
        session.save()

    def post_json(self, name, data=None, **extra):
        return self.client.post(reverse(name), data=json.dumps(data or {}), content_type='application/json', **extra)

    def test_empty_cart_redirects(self):
        response = self.client.get(reverse('checkout:checkout'))
        self.assertRedirects(response, '/advising', fetch_redirect_response=False)

    def test_guest_walkthrough_to_contact_step(self):
        self.put_in_session(cart=[DIAMOND])

        body = self.client.get(reverse('checkout:checkout')).json()
        self.assertEqual(body['checkout']['current_step'], 1)
        self.assertEqual(body['summary']['total'], 76)
        self.assertEqual(len(body['checkout']['steps']), 5)

        self.assertEqual(self.post_json('checkout:next').json()['checkout']['current_step'], 2)

        body = self.post_json('checkout:signature', {'signature': SIGNATURE, 'contract_accepted': True}).json()
        self.assertFalse(body['checkout']['next_button']['disabled'])

        response = self.post_json('checkout:next', HTTP_HX_REQUEST='true')
        self.assertEqual(response.json()['checkout']['current_step'], 3)
        trigger = json.loads(response['HX-Trigger'])
        self.assertEqual(trigger['showToast']['title'], "Contact Information Required")
        self.assertIn('checkoutUpdated', trigger)

    def test_contact_validation(self):
        self.put_in_session(cart=[DIAMOND])

        response = self.post_json('checkout:contact', {'email': 'not-an-email'})

        self.assertEqual(response.status_code, 400)
        self.assertIn('email', response.json()['errors'])

    def test_signature_must_be_an_image(self):
        self.put_in_session(cart=[DIAMOND])

        response = self.post_json('checkout:signature', {'signature': "x'); background: url('https://evil.example/x"})

        self.assertEqual(response.status_code, 400)
        self.assertIn('signature', response.json()['errors'])
        self.assertNotIn('checkout_session', self.client.session)

    def test_contact_update(self):
        self.put_in_session(cart=[DIAMOND])

        body = self.client.post(reverse('checkout:contact'), {'name': 'Ada Client', 'town_city': 'Austin'}).json()

        self.assertEqual(body['checkout']['contact_info']['town_city'], 'Austin')
        self.assertEqual(body['checkout']['signature_data']['customer_name'], 'Ada Client')

    @mock.patch('checkout.steps.record_transaction_task')
    @mock.patch('contracts.services.ContractService.update_payment_status')
    def test_payment_success(self, update_payment_status, task):
        self.client.cookies['token'] = 'abc'
        self.client.cookies['user'] = quote(json.dumps({'name': 'Ada Client', 'email': 'ada@example.com', 'subscription': 'None'}))
        self.put_in_session(
            cart=[DIAMOND],
            checkout_session={'current_step': 4, 'contract_id': 'c1', 'contact_info': CONTACT},
        )

        response = self.post_json(
            'checkout:payment_success',
            {'paymentId': 'ch_1', 'paymentIntentId': 'pi_1', 'paymentProvider': 'stripe'},
            HTTP_HX_REQUEST='true',
        )

        body = response.json()
        self.assertTrue(body['ok'])
        self.assertEqual(body['checkout']['current_step'], 5)
        self.assertEqual(body['items'], [])
        self.assertIn('cartUpdated', json.loads(response['HX-Trigger']))
        update_payment_status.assert_called_once_with('c1', 'ch_1', 'stripe', 'completed')
        task.delay.assert_called_once()
        self.assertNotIn('cart', self.client.session)

    def test_payment_success_needs_provider(self):
        self.put_in_session(cart=[DIAMOND])
        response = self.post_json('checkout:payment_success', {'paymentId': 'ch_1', 'paymentProvider': 'cash'})
        self.assertEqual(response.status_code, 400)

    def test_payment_error(self):
        self.put_in_session(cart=[DIAMOND], checkout_session={'current_step': 4})

        body = self.post_json('checkout:payment_error', {'message': 'Card declined'}).json()

        self.assertFalse(body['ok'])
        self.assertEqual(body['toast']['description'], 'Card declined')

    @mock.patch('contracts.services.ContractService.get_public_contract_templates')
    def test_contract_preview(self, get_templates):
        get_templates.return_value = {'templates': [], 'total': 0, 'page': 1, 'total_pages': 1}
        self.put_in_session(cart=[DIAMOND])

        response = self.client.get(reverse('checkout:contract'))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Advisory Contract')
        self.assertContains(response, '$76 monthly')
