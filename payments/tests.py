import json
from decimal import Decimal
from unittest import mock

import stripe
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse

from cart.items import CartItem
from cart.utils import get_total_price
from core.api_client import ApiError
from core.storage import InMemoryStore, DISCOUNT_KEY
from .discounts import DiscountLedger
from .services import (
    DiscountService, DiscountError, DiscountInfo, DiscountCalculation, DiscountVerification,
    calculate_discount_preview, format_currency, build_transaction_payload, confirm_stripe_payment,
)
from .tasks import record_transaction_task


def verify_response(**discount):
    data = {'id': 'd1', 'code': 'SAVE20', 'name': 'Twenty Off', 'type': 'percentage', 'value': 20}
    data.update(discount)
    return {'success': True, 'data': {'valid': True, 'discount': data}}


class DiscountLedgerTests(SimpleTestCase):
    def test_apply_survives_reload(self):
        store = InMemoryStore()
        DiscountLedger(store).apply("SAVE10", 10, 90)

        reloaded = DiscountLedger(store).state

        self.assertEqual((reloaded.code, reloaded.amount, reloaded.total), ("SAVE10", Decimal('10'), Decimal('90')))
        self.assertTrue(reloaded.is_active)

    def test_apply_normalises_code_and_writes_through(self):
        store = InMemoryStore()
        state = DiscountLedger(store).apply("  save10 ", Decimal('10.5'), Decimal('89.5'))

        record = store.get_json(DISCOUNT_KEY)
        self.assertEqual(state.code, "SAVE10")
        self.assertEqual(record['code'], "SAVE10")
        self.assertEqual(record['amount'], 10.5)
        self.assertEqual(record['total'], 89.5)
        self.assertIsInstance(record['timestamp'], int)

    def test_remove_clears_store(self):
        store = InMemoryStore()
        ledger = DiscountLedger(store)
        ledger.apply("SAVE10", 10, 90)

        ledger.remove()

        self.assertIsNone(store.get(DISCOUNT_KEY))
        self.assertFalse(ledger.state.is_active)
        self.assertFalse(DiscountLedger(store).state.is_active)

    def test_incomplete_records_are_ignored(self):
        store = InMemoryStore()
        store.set_json(DISCOUNT_KEY, {'code': 'SAVE10', 'amount': 0, 'total': 90})

        with self.assertLogs('payments.discounts', level='WARNING'):
            ledger = DiscountLedger(store)

        self.assertFalse(ledger.state.is_active)

    def test_malformed_records_are_ignored(self):
        with self.assertLogs('core.storage', level='WARNING'):
            self.assertFalse(DiscountLedger(InMemoryStore({DISCOUNT_KEY: 'not json'})).state.is_active)
        with self.assertLogs('payments.discounts', level='WARNING'):
            self.assertFalse(DiscountLedger(InMemoryStore({DISCOUNT_KEY: '[1, 2]'})).state.is_active)


class DiscountPreviewTests(SimpleTestCase):
    def test_percentage(self):
        calculation = calculate_discount_preview(76, 'percentage', 20)
        self.assertEqual(calculation.discount_amount, Decimal('15.2'))
        self.assertEqual(calculation.final_amount, Decimal('60.8'))
        self.assertEqual(calculation.savings_percentage, 20)

    def test_caps(self):
        self.assertEqual(calculate_discount_preview(100, 'fixed_amount', 50, max_discount=30).discount_amount, Decimal('30'))
        oversized = calculate_discount_preview(76, 'fixed_amount', 200)
        self.assertEqual(oversized.discount_amount, Decimal('76'))
        self.assertEqual(oversized.final_amount, Decimal('0'))

    def test_unknown_type_discounts_nothing(self):
        self.assertEqual(calculate_discount_preview(50, 'bogus', 10).final_amount, Decimal('50'))

    def test_format_currency(self):
        self.assertEqual(format_currency(Decimal('15.2')), "$15.20")
        self.assertEqual(format_currency(1234.5), "$1,234.50")
        self.assertEqual(format_currency(5, 'GBP'), "£5.00")


class DiscountServiceTests(SimpleTestCase):
    def setUp(self):
        self.client = mock.Mock(is_authenticated=False)
        self.service = DiscountService(self.client)

    def test_guests_use_public_verification(self):
        self.client.post.return_value = verify_response(discountAmount=15.2, finalPrice=60.8)

        verification = self.service.smart_verify('SAVE20', Decimal('76.00'), 1)

        self.client.post.assert_called_once_with(
            '/payments/discounts/public/verify', {'code': 'SAVE20', 'orderAmount': 76, 'quantity': 1}
        )
        self.assertEqual(verification.discount.name, 'Twenty Off')
        self.assertEqual(verification.calculation.discount_amount, Decimal('15.2'))
        self.assertEqual(verification.calculation.final_amount, Decimal('60.8'))
        self.assertEqual(verification.calculation.savings_percentage, 20)

    def test_members_use_validation_endpoint(self):
        self.client.is_authenticated = True
        self.client.post.return_value = verify_response(discountAmount=15.2, finalPrice=60.8)

        self.service.smart_verify('SAVE20', 76)

        self.assertEqual(self.client.post.call_args.args[0], '/payments/discounts/validate')

    def test_missing_amounts_are_computed_locally(self):
        self.client.post.return_value = verify_response(discountAmount=None)

        calculation = self.service.verify_discount_code('SAVE20', 76).calculation

        self.assertEqual(calculation.discount_amount, Decimal('15.2'))
        self.assertEqual(calculation.final_amount, Decimal('60.8'))

    def test_rejected_code(self):
        self.client.post.return_value = {'success': False, 'message': 'Discount code has expired'}

        with self.assertRaisesMessage(DiscountError, 'Discount code has expired'):
            self.service.verify_discount_code('OLD', 76)

    def test_api_errors_become_discount_errors(self):
        self.client.post.side_effect = ApiError('Resource not found', status_code=404)

        with self.assertRaisesMessage(DiscountError, 'Resource not found'):
            self.service.verify_discount_code('NOPE', 76)

    def test_invalid_response_shape(self):
        self.client.post.return_value = {'success': True, 'data': {'valid': False}}

        with self.assertRaisesMessage(DiscountError, 'Invalid discount response format'):
            self.service.verify_discount_code('SAVE20', 76)

    def test_public_discount_listing(self):
        self.client.get.return_value = {'success': True, 'data': {'discounts': [{'code': 'SAVE20'}]}}

        listing = self.service.get_public_discounts(limit=5, discount_type='percentage')

        self.assertEqual(listing, {'discounts': [{'code': 'SAVE20'}]})
        self.client.get.assert_called_once_with(
            '/payments/discounts/public', params={'limit': 5, 'type': 'percentage'}
        )

    def test_public_discount_listing_failure(self):
        self.client.get.return_value = {'success': False}

        with self.assertRaisesMessage(DiscountError, 'Failed to fetch discount codes'):
            self.service.get_public_discounts()

    def test_validation_and_apply_need_login(self):
        with self.assertRaises(DiscountError):
            self.service.validate_discount_code('SAVE20', 76)
        with self.assertRaises(DiscountError):
            self.service.apply_discount('SAVE20', 76)
        self.client.post.assert_not_called()

    def test_apply_records_usage(self):
        self.client.is_authenticated = True
        self.client.post.return_value = {'success': True, 'data': {'usageId': 'u1'}}

        self.assertEqual(self.service.apply_discount('SAVE20', Decimal('76'), order_id='c1'), {'usageId': 'u1'})
        self.client.post.assert_called_once_with(
            '/payments/discounts/apply', {'discountCode': 'SAVE20', 'originalAmount': 76, 'orderId': 'c1'}
        )

    def test_verified_total_drives_checkout_total(self):
        self.client.post.return_value = verify_response(discountAmount=15.2, finalPrice=60.8)
        items = [CartItem.from_dict({'id': 'diamond-subscription-monthly', 'name': 'Diamond', 'price': '$76.00', 'quantity': 1})]
        ledger = DiscountLedger(InMemoryStore())
        self.assertEqual(get_total_price(items, False, ledger.state), Decimal('76'))

        calculation = self.service.smart_verify('SAVE20', 76, 1).calculation
        ledger.apply('SAVE20', calculation.discount_amount, calculation.final_amount)

        self.assertEqual(get_total_price(items, False, ledger.state), Decimal('60.8'))
        self.assertEqual(ledger.state.amount, Decimal('15.2'))


class TransactionPayloadTests(SimpleTestCase):
    def setUp(self):
        self.items = [CartItem.from_dict({
            'id': 'diamond-subscription-monthly',
            'name': 'Diamond',
            'price': '$76.00',
            'originalPrice': '$99.00',
            'type': 'subscription',
        })]
        self.contact = {
            'name': 'Ada Client', 'email': 'ada@example.com', 'phone': '', 'street_address': '1 Main St',
            'flat_suite_unit': '', 'town_city': 'Austin', 'state_county': 'TX', 'postcode_zip': '73301', 'country': 'US',
        }

    def test_stripe_payment(self):
        payload = build_transaction_payload(
            self.items, 'c1', 'diamond-subscription',
            {'paymentId': 'ch_1', 'paymentIntentId': 'pi_1', 'paymentProvider': 'stripe'},
            self.contact, Decimal('60.80'), Decimal('15.2'), Decimal('76.00'),
        )

        self.assertEqual(payload['amount'], 60.8)
        self.assertEqual(payload['currency'], 'USD')
        self.assertEqual(payload['description'], 'Payment for Diamond')
        self.assertEqual(payload['psp'], {'provider': 'stripe', 'reference': {'chargeId': 'ch_1', 'paymentIntentId': 'pi_1'}})
        self.assertTrue(payload['metadata']['discountApplied'])
        self.assertEqual(payload['metadata']['originalAmount'], 76)
        self.assertEqual(payload['metadata']['subscriptionType'], 'subscription')
        self.assertEqual(payload['metadata']['items'][0]['price'], 76)
        self.assertEqual(payload['metadata']['items'][0]['originalPrice'], 99)
        self.assertEqual(payload['billingDetails']['address']['city'], 'Austin')

    def test_paypal_payment_without_discount(self):
        payload = build_transaction_payload(
            [], 'c1', 'mentorship-package',
            {'paymentId': 'PAY-1', 'orderId': 'O-1', 'paymentProvider': 'paypal'},
            self.contact, 100, 0, 100,
        )

        self.assertEqual(payload['psp']['reference'], {'transactionId': 'PAY-1', 'orderId': 'O-1'})
        self.assertFalse(payload['metadata']['discountApplied'])
        self.assertEqual(payload['metadata']['productName'], 'Mentorship Package')
        self.assertEqual(payload['metadata']['plan'], 'None')
        self.assertEqual(payload['metadata']['subscriptionType'], 'one-time')


class RecordTransactionTaskTests(SimpleTestCase):
    @mock.patch('payments.tasks.TransactionService')
    def test_returns_transaction_id(self, service_class):
        service_class.return_value.create_transaction.return_value = {'transaction': {'transactionId': 'tx_1'}}

        self.assertEqual(record_transaction_task({'metadata': {'contractId': 'c1'}}, 'abc'), 'tx_1')

        service_class.return_value.create_transaction.assert_called_once_with({'metadata': {'contractId': 'c1'}})
        self.assertEqual(service_class.call_args.args[0].token, 'abc')

    @mock.patch('payments.tasks.TransactionService')
    def test_failures_are_logged(self, service_class):
        service_class.return_value.create_transaction.side_effect = ApiError("Server error - please try again later")

        with self.assertLogs('payments.tasks', level='ERROR'):
            self.assertIsNone(record_transaction_task({'metadata': {'contractId': 'c1'}}))

    @mock.patch('payments.tasks.DiscountService')
    @mock.patch('payments.tasks.TransactionService')
    def test_discount_usage_is_recorded_for_members(self, service_class, discount_class):
        payload = {'metadata': {'contractId': 'c1', 'originalAmount': 76}}

        record_transaction_task(payload, 'abc', discount_code='SAVE20')

        discount_class.return_value.apply_discount.assert_called_once_with('SAVE20', 76, order_id='c1')
        service_class.return_value.create_transaction.assert_called_once_with(payload)

    @mock.patch('payments.tasks.DiscountService')
    @mock.patch('payments.tasks.TransactionService')
    def test_guest_discount_usage_is_not_recorded(self, service_class, discount_class):
        record_transaction_task({'metadata': {'contractId': 'c1'}}, None, discount_code='SAVE20')

        discount_class.assert_not_called()
        service_class.return_value.create_transaction.assert_called_once()

    @mock.patch('payments.tasks.DiscountService')
    @mock.patch('payments.tasks.TransactionService')
    def test_discount_usage_failure_still_records_transaction(self, service_class, discount_class):
        discount_class.return_value.apply_discount.side_effect = DiscountError('Discount code has expired')
        service_class.return_value.create_transaction.return_value = {'transaction': {'transactionId': 'tx_1'}}

        with self.assertLogs('payments.tasks', level='WARNING'):
            result = record_transaction_task({'metadata': {'contractId': 'c1'}}, 'abc', discount_code='SAVE20')

        self.assertEqual(result, 'tx_1')


class ConfirmStripePaymentTests(SimpleTestCase):
    @override_settings(STRIPE_SECRET_KEY=None)
    def test_without_key_the_callback_is_trusted(self):
        with self.assertLogs('payments.services', level='WARNING'):
            self.assertTrue(confirm_stripe_payment('pi_1'))

    @override_settings(STRIPE_SECRET_KEY='sk_test_123')
    @mock.patch('payments.services.stripe.PaymentIntent.retrieve')
    def test_intent_status(self, retrieve):
        retrieve.return_value = mock.Mock(status='succeeded')
        self.assertTrue(confirm_stripe_payment('pi_1'))
        retrieve.assert_called_once_with('pi_1')

        retrieve.return_value = mock.Mock(status='requires_payment_method')
        self.assertFalse(confirm_stripe_payment('pi_1'))

    @override_settings(STRIPE_SECRET_KEY='sk_test_123')
    @mock.patch('payments.services.stripe.PaymentIntent.retrieve')
    def test_lookup_errors(self, retrieve):
        retrieve.side_effect = stripe.StripeError("No such payment_intent")
        self.assertFalse(confirm_stripe_payment('pi_missing'))
        self.assertFalse(confirm_stripe_payment(''))


class DiscountViewTests(TestCase):
    def setUp(self):
        session = self.client.session
        session['cart'] = json.dumps([{'id': 'diamond-subscription-monthly', 'name': 'Diamond', 'price': '$76.00', 'quantity': 1}])
        session.save()

    def apply(self, code):
        return self.client.post(reverse('payments:apply_discount'), data=json.dumps({'code': code}), content_type='application/json')

    @mock.patch('payments.views.DiscountService.smart_verify')
    def test_apply(self, smart_verify):
        smart_verify.return_value = DiscountVerification(
            valid=True,
            discount=DiscountInfo(id='d1', code='SAVE20', name='Twenty Off'),
            calculation=DiscountCalculation(
                original_amount=Decimal('76'), discount_amount=Decimal('15.2'), final_amount=Decimal('60.8'),
                savings=Decimal('15.2'), savings_percentage=20,
            ),
        )

        response = self.apply(' save20 ')

        smart_verify.assert_called_once_with('SAVE20', Decimal('76.00'), 1)
        body = response.json()
        self.assertEqual(body['toast']['title'], "Discount Applied!")
        self.assertEqual(body['toast']['description'], "Twenty Off - Save $15.20")
        self.assertEqual(body['summary']['total'], 60.8)
        self.assertEqual(body['discount']['code'], 'SAVE20')
        self.assertEqual(json.loads(self.client.session['checkout_discount'])['total'], 60.8)

    @mock.patch('payments.views.DiscountService.smart_verify')
    def test_guest_rejection_suggests_login(self, smart_verify):
        smart_verify.side_effect = DiscountError("Invalid discount code")

        response = self.apply('NOPE')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['toast']['title'], "Invalid Discount Code")
        self.assertEqual(response.json()['toast']['description'], "Invalid discount code. Log in for additional discount options.")
        self.assertNotIn('checkout_discount', self.client.session)

    @mock.patch('payments.views.DiscountService.smart_verify')
    def test_empty_code(self, smart_verify):
        response = self.apply('   ')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['toast']['description'], "Please enter a discount code")
        smart_verify.assert_not_called()

    def test_remove(self):
        session = self.client.session
        session['checkout_discount'] = json.dumps({'code': 'SAVE20', 'amount': 15.2, 'total': 60.8, 'timestamp': 1})
        session.save()

        response = self.client.post(reverse('payments:remove_discount'))

        self.assertEqual(response.json()['toast']['title'], "Discount Removed")
        self.assertIsNone(response.json()['discount'])
        self.assertEqual(response.json()['summary']['total'], 76)
        self.assertNotIn('checkout_discount', self.client.session)

    @mock.patch('payments.views.DiscountService.get_public_discounts')
    def test_public_discounts(self, get_public_discounts):
        get_public_discounts.return_value = {'discounts': [{'code': 'SAVE20'}]}

        response = self.client.get(reverse('payments:public_discounts'), {'type': 'percentage'})

        self.assertEqual(response.json(), {'ok': True, 'discounts': {'discounts': [{'code': 'SAVE20'}]}})
        get_public_discounts.assert_called_once_with(
            page=None, limit=None, discount_type='percentage', min_order_amount=None,
        )

    @mock.patch('payments.views.DiscountService.get_public_discounts')
    def test_public_discounts_unavailable(self, get_public_discounts):
        get_public_discounts.side_effect = DiscountError('Failed to fetch discount codes')

        with self.assertLogs('payments.views', level='WARNING'):
            response = self.client.get(reverse('payments:public_discounts'))

        self.assertEqual(response.status_code, 502)
        self.assertFalse(response.json()['ok'])
