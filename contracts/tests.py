from datetime import date
from decimal import Decimal
from unittest import mock

from django.test import SimpleTestCase

from cart.items import CartItem
from core.api_client import ApiError, ApiResponse
from .classifier import classify, contract_variant, template_category
from .presenter import (
    format_contract_date, format_price, fetch_contract_template, render_contract, present_contract,
    is_signature_image,
)
from .services import (
    ContractService, ContractTemplate, Signed, AlreadyExists, ActiveSubscriptionBlocked,
    ValidationFailed, UnknownError,
)


def cart(**kwargs):
    return [CartItem.from_dict(kwargs)]


class ClassifierTests(SimpleTestCase):
    def test_id_rules_run_before_name_rules(self):
        self.assertEqual(classify(cart(id='diamond-subscription-99', name='Investment Advising')), 'diamond-subscription')
        self.assertEqual(classify(cart(id='subscription-diamond', name='Something Else')), 'diamond-subscription')

    def test_subscription_tiers(self):
        cases = [
            (dict(id='subscription-infinity', name='Plan'), 'infinity-subscription'),
            (dict(id='basic-subscription-monthly', name='Basic'), 'basic-subscription'),
            (dict(id='plan-7', name='Infinity Plan', type='subscription'), 'infinity-subscription'),
            (dict(id='upgrade-diamond', name='Upgrade'), 'diamond-subscription'),
            (dict(id='upgrade-infinity', name='Upgrade'), 'infinity-subscription'),
        ]
        for data, expected in cases:
            with self.subTest(data=data):
                self.assertEqual(classify(cart(**data)), expected)

    def test_special_packages(self):
        self.assertEqual(classify(cart(id='eagle-ultimate')), 'eagle-ultimate')
        self.assertEqual(classify(cart(id='investment-advising')), 'investment-advising')
        self.assertEqual(classify(cart(id='trading-tutor', name='Trading Tutor Upgrade')), 'trading-tutor')
        self.assertEqual(classify(cart(id='pkg-1', name='Trading Tutor')), 'trading-tutor')
        self.assertEqual(classify(cart(id='pkg-2', name='Eagle Ultimate')), 'eagle-ultimate')

    def test_near_miss_names_are_not_special(self):
        self.assertEqual(classify(cart(id='mentorship-tt', name='Trading Tutor Upgrade')), 'mentorship-package')

    def test_product_purchases_keep_their_type(self):
        self.assertEqual(classify(cart(id='product-swing-king', type='script-swing-king')), 'script-swing-king')
        self.assertEqual(classify(cart(id='product-ebook')), 'product-purchase')

    def test_fallback(self):
        self.assertEqual(classify(cart(id='anything')), 'mentorship-package')
        self.assertEqual(classify([]), 'mentorship-package')

    def test_only_first_item_counts(self):
        items = cart(id='mentorship-gold') + cart(id='subscription-diamond')
        self.assertEqual(classify(items), 'mentorship-package')

    def test_contract_variants(self):
        cases = [
            (dict(id='diamond-subscription-monthly', name='Diamond'), 'diamond'),
            (dict(id='subscription-infinity', name='Infinity'), 'infinity'),
            (dict(id='basic-subscription', name='Basic'), 'basic'),
            (dict(id='trading-tutor', name='Trading Tutor'), 'trading-tutor'),
            (dict(id='eagle-ultimate', name='Eagle Ultimate'), 'ultimate'),
            (dict(id='investment-advising', name='Investment Advising'), 'investment-advising'),
            (dict(id='product-swing', name='Swing', type='script-swing'), 'script'),
            (dict(id='mentorship-gold', name='Gold'), 'service-agreement'),
        ]
        for data, expected in cases:
            with self.subTest(data=data):
                self.assertEqual(contract_variant(cart(**data)), expected)
        self.assertEqual(contract_variant([]), 'service-agreement')

    def test_template_categories(self):
        self.assertEqual(template_category('diamond-subscription'), 'subscription')
        self.assertEqual(template_category('script-swing'), 'script')
        self.assertEqual(template_category('investment-advising'), 'advisory')
        self.assertEqual(template_category('trading-tutor'), 'trading')
        self.assertEqual(template_category('eagle-ultimate'), 'premium')
        self.assertEqual(template_category('mentorship-package'), 'mentorship')


class SignContractTests(SimpleTestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.service = ContractService(self.client)

    def sign(self, status_code, payload):
        self.client.send.return_value = ApiResponse(status_code, payload)
        return self.service.sign_contract({'productType': 'diamond-subscription'})

    def test_new_contract(self):
        outcome = self.sign(201, {'success': True, 'data': {'_id': 'c1', 'status': 'signed'}})

        self.assertIsInstance(outcome, Signed)
        self.assertEqual(outcome.contract_id, 'c1')
        self.assertFalse(outcome.existing)
        self.client.send.assert_called_once_with('POST', '/contracts/sign', json={'productType': 'diamond-subscription'})

    def test_existing_contract_reported_as_success(self):
        outcome = self.sign(200, {
            'success': True,
            'existingContract': True,
            'data': {'_id': 'c1', 'status': 'payment_pending'},
        })
        self.assertIsInstance(outcome, Signed)
        self.assertTrue(outcome.existing)
        self.assertEqual(outcome.status, 'payment_pending')

    def test_contract_exists_error(self):
        outcome = self.sign(400, {'message': 'Contract already exists for this product', 'data': {'_id': 'c9'}})
        self.assertIsInstance(outcome, AlreadyExists)
        self.assertEqual(outcome.contract_id, 'c9')

    def test_existing_contract_payload(self):
        outcome = self.sign(409, {'message': 'Conflict', 'existingContract': {'_id': 'c7'}})
        self.assertIsInstance(outcome, AlreadyExists)
        self.assertEqual(outcome.contract_id, 'c7')

    def test_payment_pending_message(self):
        outcome = self.sign(400, {'message': 'Contract signed but payment pending'})
        self.assertIsInstance(outcome, AlreadyExists)
        self.assertIsNone(outcome.contract_id)

    def test_active_subscription(self):
        outcome = self.sign(403, {'message': 'Forbidden', 'hasActiveSubscription': True})
        self.assertIsInstance(outcome, ActiveSubscriptionBlocked)

    def test_genuine_failure(self):
        self.assertEqual(self.sign(500, {'message': 'boom'}), UnknownError('boom'))
        self.assertEqual(self.sign(500, {}), UnknownError('Failed to sign contract'))

    def test_network_failure(self):
        self.client.send.side_effect = ApiError("Network error - please check your connection")
        outcome = self.service.sign_contract({})
        self.assertEqual(outcome, UnknownError("Network error - please check your connection"))


class GuestContractTests(SimpleTestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.service = ContractService(self.client)

    def test_created(self):
        self.client.send.return_value = ApiResponse(201, {
            'success': True,
            'data': {'contractId': 'c2', 'userCreationStatus': 'created_pending', 'contract': {'_id': 'c2'}},
        })
        outcome = self.service.create_contract_with_contact({'email': 'guest@example.com'})

        self.assertIsInstance(outcome, Signed)
        self.assertEqual(outcome.contract_id, 'c2')
        self.assertEqual(outcome.user_creation_status, 'created_pending')
        self.assertEqual(self.client.send.call_args.args, ('POST', '/contracts/create-with-contact'))

    def test_validation_errors(self):
        self.client.send.return_value = ApiResponse(422, {
            'message': 'Validation failed',
            'errors': ['Email is invalid', 'Postcode is required'],
        })
        outcome = self.service.create_contract_with_contact({})
        self.assertEqual(outcome, ValidationFailed(errors=['Email is invalid', 'Postcode is required'], message='Validation failed'))

    def test_active_subscription(self):
        self.client.send.return_value = ApiResponse(400, {'message': 'You already have an active subscription for this product'})
        self.assertIsInstance(self.service.create_contract_with_contact({}), ActiveSubscriptionBlocked)

    def test_failure(self):
        self.client.send.return_value = ApiResponse(500, {})
        self.assertEqual(self.service.create_contract_with_contact({}), UnknownError('Failed to create contract'))


class ContractQueryTests(SimpleTestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.service = ContractService(self.client)

    def test_user_contracts(self):
        self.client.get.return_value = {'success': True, 'data': [{'_id': 'c1'}]}
        self.assertEqual(self.service.get_user_contracts(), [{'_id': 'c1'}])

    def test_guest_mode_has_no_contracts(self):
        self.client.get.return_value = {'guestMode': True, 'isAuthenticated': False, 'data': [{'_id': 'c1'}]}
        self.assertEqual(self.service.get_user_contracts(), [])

    def test_update_payment_status(self):
        self.client.put.return_value = {'data': {'_id': 'c1', 'status': 'completed'}}

        contract = self.service.update_payment_status('c1', 'pi_123', 'stripe')

        self.assertEqual(contract['status'], 'completed')
        self.client.put.assert_called_once_with('/contracts/c1/payment', {
            'paymentId': 'pi_123',
            'paymentProvider': 'stripe',
            'status': 'completed',
        })

    def test_public_templates(self):
        self.client.get.return_value = {
            'data': [{
                '_id': 't1',
                'templateId': 'TPL-1',
                'name': 'Diamond Agreement',
                'category': 'subscription',
                'content': {'body': 'plain', 'htmlBody': '<p>html</p>', 'variables': [{'name': 'clientName', 'required': True}]},
            }],
            'pagination': {'total': 1, 'page': 1, 'totalPages': 1},
        }

        result = self.service.get_public_contract_templates(category='subscription', status='active', limit=1)

        self.client.get.assert_called_once_with('/contracts/public/templates', params={
            'limit': 1, 'category': 'subscription', 'status': 'active',
        })
        template = result['templates'][0]
        self.assertEqual(template.markup, '<p>html</p>')
        self.assertTrue(template.variables[0].required)
        self.assertEqual(result['total'], 1)


class PresenterTests(SimpleTestCase):
    def test_formatting(self):
        self.assertEqual(format_contract_date(date(2026, 10, 19)), "October 19, 2026")
        self.assertEqual(format_price(Decimal('1234.5')), "1,234.5")
        self.assertEqual(format_price(Decimal('76.00')), "76")
        self.assertEqual(format_price(Decimal('0.1234')), "0.123")

    def test_fetch_template_failure_falls_back(self):
        service = mock.Mock()
        service.get_public_contract_templates.side_effect = ApiError("Server error - please try again later")

        with self.assertLogs('contracts.presenter', level='ERROR'):
            self.assertIsNone(fetch_contract_template(service, 'diamond-subscription'))
        service.get_public_contract_templates.assert_called_once_with(category='subscription', status='active', limit=1)

    def test_backend_template_is_rendered_verbatim(self):
        template = ContractTemplate(id='t1', template_id='TPL-1', name='Agreement', category='mentorship',
                                    html_body='<h1>Custom Agreement</h1>')

        html = render_contract(cart(id='mentorship-gold'), template=template)

        self.assertIn('<h1>Custom Agreement</h1>', html)

    def test_static_contract_fills_client_details(self):
        html = render_contract(
            cart(id='diamond-subscription-monthly', name='Diamond'),
            customer_name='<b>Ada</b>',
            price=Decimal('76'),
            contract_date='October 19, 2026',
        )

        self.assertIn('$76 monthly', html)
        self.assertIn('&lt;b&gt;Ada&lt;/b&gt;', html)
        self.assertNotIn('<b>Ada</b>', html)
        self.assertIn('October 19, 2026', html)

    def test_signature_only_outside_preview(self):
        items = cart(id='diamond-subscription-monthly', name='Diamond')
        signature = 'data:image/png;base64,AAAA'

        self.assertNotIn(signature, render_contract(items, signature=signature, preview=True))
        self.assertIn(signature, render_contract(items, signature=signature, customer_name='Ada', preview=False))

    def test_non_image_signatures_are_not_drawn(self):
        items = cart(id='diamond-subscription-monthly', name='Diamond')
        signature = "x'); background: url('https://evil.example/x"

        html = render_contract(items, signature=signature, customer_name='Ada', preview=False)

        self.assertNotIn('evil.example', html)
        self.assertNotIn('contract-signature', html)
        self.assertTrue(is_signature_image('data:image/jpeg;base64,/9j/4AAQ=='))
        self.assertFalse(is_signature_image('data:image/svg+xml;base64,PHN2Zz4='))

    def test_present_contract_without_templates(self):
        service = mock.Mock()
        service.get_public_contract_templates.return_value = {'templates': [], 'total': 0, 'page': 1, 'total_pages': 1}

        html = present_contract(service, cart(id='mentorship-gold', name='Gold Mentorship'), price=Decimal('100'))

        self.assertIn('Gold Mentorship', html)
        self.assertIn('$100', html)
