import json
from decimal import Decimal
from urllib.parse import quote

from django.test import SimpleTestCase, TestCase
from django.urls import reverse

from payments.discounts import DiscountState
from .items import CartItem
from .utils import (
    parse_price, to_number, unit_effective_price, get_subtotal, get_total_price,
    get_original_price_total, get_total_savings, get_discount_percentage,
    get_chargeable_amount, get_cart_summary_data, has_item_discount,
)


def item(**kwargs):
    data = {'id': 'mentorship-gold', 'name': 'Gold Mentorship', 'price': '$100.00', 'quantity': 1}
    data.update(kwargs)
    return CartItem.from_dict(data)


class ParsePriceTests(SimpleTestCase):
    def test_currency_strings(self):
        self.assertEqual(parse_price("$1,234.56"), Decimal('1234.56'))
        self.assertEqual(parse_price(" 76 "), Decimal('76'))
        self.assertEqual(parse_price("12.5 per month"), Decimal('12.5'))

    def test_numbers_pass_through(self):
        self.assertEqual(parse_price(60.8), Decimal('60.8'))
        self.assertEqual(parse_price(15), Decimal('15'))

    def test_unreadable_values_are_zero(self):
        for value in ("free", "", None, "$", float('nan'), float('inf'), True):
            with self.subTest(value=value):
                self.assertEqual(parse_price(value), Decimal('0'))

    def test_to_number(self):
        self.assertEqual(to_number(Decimal('76.00')), 76)
        self.assertIsInstance(to_number(Decimal('76.00')), int)
        self.assertEqual(to_number(Decimal('60.80')), 60.8)


class CartItemTests(SimpleTestCase):
    def test_from_dict_keeps_unknown_keys(self):
        cart_item = CartItem.from_dict({'id': 'x', 'price': 5, 'memberPrice': 4, 'features': ['calls']})
        self.assertEqual(cart_item.member_price, 4)
        self.assertEqual(cart_item.to_dict()['features'], ['calls'])
        self.assertEqual(cart_item.to_dict()['memberPrice'], 4)

    def test_quantity_defaults_to_one(self):
        self.assertEqual(CartItem.from_dict({'id': 'x', 'quantity': None}).quantity, 1)
        self.assertEqual(CartItem.from_dict({'id': 'x', 'quantity': 'two'}).quantity, 1)
        self.assertEqual(CartItem.from_dict({'id': 'x', 'quantity': 3}).quantity, 3)


class PricingTests(SimpleTestCase):
    def test_unit_price_prefers_member_price_for_members(self):
        cart_item = item(memberPrice='$80.00', originalPrice='$150.00')
        self.assertEqual(unit_effective_price(cart_item, use_member_price=True), Decimal('80.00'))
        self.assertEqual(unit_effective_price(cart_item, use_member_price=False), Decimal('100.00'))

    def test_unit_price_uses_lower_of_price_and_original(self):
        self.assertEqual(unit_effective_price(item(price='$120', originalPrice='$90')), Decimal('90'))

    def test_member_without_member_price_pays_list_price(self):
        cart_item = item(originalPrice='$150.00')
        self.assertEqual(unit_effective_price(cart_item, use_member_price=True), Decimal('100.00'))

    def test_subtotal_multiplies_quantities(self):
        items = [item(price='$1,234.56', quantity=2), item(id='b', price=10)]
        self.assertEqual(get_subtotal(items), Decimal('2479.12'))

    def test_results_do_not_depend_on_call_order(self):
        items = [item(price='$1,234.56'), item(id='b', price='$99.99', quantity=3)]
        discount = DiscountState(code='SAVE10', amount=Decimal('10'), total=Decimal('1524.53'))

        first = (get_total_price(items, False, discount), get_subtotal(items))
        second_subtotal = get_subtotal(items)
        second_total = get_total_price(items, False, discount)

        self.assertEqual(first, (second_total, second_subtotal))
        self.assertEqual(items[0].price, '$1,234.56')

    def test_discount_total_is_authoritative(self):
        items = [item(price='$55.00')]
        discount = DiscountState(code='SAVE10', amount=Decimal('10'), total=Decimal('50'))
        self.assertEqual(get_total_price(items, False, discount), Decimal('50'))

    def test_total_without_discount_is_subtotal(self):
        items = [item(id='diamond-subscription-monthly', name='Diamond', price='$76.00')]
        self.assertEqual(get_total_price(items, False, DiscountState()), Decimal('76'))
        self.assertEqual(get_total_price(items), Decimal('76'))

    def test_savings_and_percentage(self):
        items = [item(price='$75.00', originalPrice='$100.00')]
        self.assertTrue(has_item_discount(items))
        self.assertEqual(get_original_price_total(items), Decimal('100.00'))
        self.assertEqual(get_total_savings(items), Decimal('25.00'))
        self.assertEqual(get_discount_percentage(items), 25)

    def test_percentage_with_free_items(self):
        self.assertEqual(get_discount_percentage([item(price=0)]), 0)
        self.assertEqual(get_discount_percentage([]), 0)


class ChargeableAmountTests(SimpleTestCase):
    def test_oversized_discount_falls_back_to_subtotal(self):
        items = [item(price='$100.00')]
        discount = DiscountState(code='BIG', amount=Decimal('150'), total=Decimal('1'))
        self.assertEqual(get_chargeable_amount(items, False, discount), Decimal('100.00'))

    def test_never_below_one_cent(self):
        items = [item(price=0)]
        discount = DiscountState(code='BIG', amount=Decimal('5'), total=Decimal('1'))
        self.assertEqual(get_chargeable_amount(items, False, discount), Decimal('0.01'))
        self.assertEqual(get_chargeable_amount(items), Decimal('0.01'))

    def test_discount_total_is_charged(self):
        items = [item(price='$76.00')]
        discount = DiscountState(code='SAVE20', amount=Decimal('15.2'), total=Decimal('60.8'))
        self.assertEqual(get_chargeable_amount(items, False, discount), Decimal('60.80'))

    def test_summary(self):
        items = [item(price='$76.00')]
        discount = DiscountState(code='SAVE20', amount=Decimal('15.2'), total=Decimal('60.8'))
        summary = get_cart_summary_data(items, False, discount)

        self.assertEqual(summary['subtotal'], Decimal('76.00'))
        self.assertEqual(summary['total'], Decimal('60.8'))
        self.assertEqual(summary['discount_code'], 'SAVE20')
        self.assertEqual(summary['discount_amount'], Decimal('15.2'))
        self.assertEqual(summary['item_count'], 1)


class CartViewTests(TestCase):
    def setUp(self):
        self.diamond = {
            'id': 'diamond-subscription-monthly',
            'name': 'Diamond',
            'price': '$76.00',
            'memberPrice': '$60.00',
            'quantity': 1,
        }

    def post_json(self, url, data, **extra):
        return self.client.post(url, data=json.dumps(data), content_type='application/json', **extra)

    def test_add_replaces_cart_and_resets_checkout(self):
        session = self.client.session
        session['cart'] = json.dumps([{'id': 'mentorship-old', 'price': 10}])
        session['checkout_discount'] = json.dumps({'code': 'OLD', 'amount': 1, 'total': 9, 'timestamp': 1})
        session['checkout_session'] = json.dumps({'current_step': 3})
        session.save()

        response = self.post_json(reverse('cart:add_to_cart'), self.diamond)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([entry['id'] for entry in body['items']], ['diamond-subscription-monthly'])
        self.assertEqual(body['summary']['total'], 76)
        self.assertEqual(body['toast']['title'], "Added to Cart")

        session = self.client.session
        self.assertEqual(json.loads(session['cart'])[0]['id'], 'diamond-subscription-monthly')
        self.assertNotIn('checkout_discount', session)
        self.assertNotIn('checkout_session', session)

    def test_adding_same_package_again_keeps_one(self):
        self.post_json(reverse('cart:add_to_cart'), self.diamond)
        self.post_json(reverse('cart:add_to_cart'), self.diamond)

        cart = json.loads(self.client.session['cart'])
        self.assertEqual([(entry['id'], entry['quantity']) for entry in cart], [('diamond-subscription-monthly', 1)])

    def test_add_requires_an_id(self):
        response = self.post_json(reverse('cart:add_to_cart'), {'name': 'Nameless'})
        self.assertEqual(response.status_code, 400)

    def test_add_accepts_form_posts(self):
        response = self.client.post(reverse('cart:add_to_cart'), {'id': 'mentorship-gold', 'price': '$100'})
        self.assertEqual(response.json()['summary']['subtotal'], 100)

    def test_members_see_member_prices(self):
        self.client.cookies['token'] = 'abc'
        self.client.cookies['user'] = quote(json.dumps({'name': 'Ada', 'email': 'ada@example.com', 'subscription': 'Basic'}))

        response = self.post_json(reverse('cart:add_to_cart'), self.diamond)

        self.assertEqual(response.json()['summary']['subtotal'], 60)

    def test_htmx_requests_get_toast_trigger(self):
        response = self.post_json(reverse('cart:add_to_cart'), self.diamond, HTTP_HX_REQUEST='true')

        trigger = json.loads(response['HX-Trigger'])
        self.assertIn('cartUpdated', trigger)
        self.assertEqual(trigger['showToast']['title'], "Added to Cart")
        self.assertEqual(trigger['showToast']['type'], 'success')

    def test_detail_and_clear(self):
        self.post_json(reverse('cart:add_to_cart'), self.diamond)

        detail = self.client.get(reverse('cart:cart_detail')).json()
        self.assertEqual(detail['summary']['item_count'], 1)

        cleared = self.client.post(reverse('cart:clear_cart')).json()
        self.assertEqual(cleared['items'], [])
        self.assertNotIn('cart', self.client.session)

    def test_removing_last_item_drops_discount(self):
        self.post_json(reverse('cart:add_to_cart'), self.diamond)
        session = self.client.session
        session['checkout_discount'] = json.dumps({'code': 'SAVE20', 'amount': 15.2, 'total': 60.8, 'timestamp': 1})
        session.save()

        response = self.client.post(reverse('cart:remove_from_cart', args=['diamond-subscription-monthly']))

        self.assertEqual(response.json()['items'], [])
        self.assertNotIn('checkout_discount', self.client.session)
