"""
Maps the first cart item to a product type, a static contract variant
and a template category.

Each mapping is an ordered list of (predicate, result) rules; the first
matching rule wins, so the order of the lists is part of their meaning.
"""

DIAMOND_SUBSCRIPTION = 'diamond-subscription'
INFINITY_SUBSCRIPTION = 'infinity-subscription'
BASIC_SUBSCRIPTION = 'basic-subscription'
EAGLE_ULTIMATE = 'eagle-ultimate'
INVESTMENT_ADVISING = 'investment-advising'
TRADING_TUTOR = 'trading-tutor'
MENTORSHIP_PACKAGE = 'mentorship-package'
PRODUCT_PURCHASE = 'product-purchase'

# Static contract variants
VARIANT_DIAMOND = 'diamond'
VARIANT_INFINITY = 'infinity'
VARIANT_BASIC = 'basic'
VARIANT_TRADING_TUTOR = 'trading-tutor'
VARIANT_ULTIMATE = 'ultimate'
VARIANT_INVESTMENT_ADVISING = 'investment-advising'
VARIANT_SCRIPT = 'script'
VARIANT_SERVICE_AGREEMENT = 'service-agreement'


def _id(item):
    return item.id or ''


def _name(item):
    return (item.name or '').lower()


def _type(item):
    return (item.type or '').lower()


def _is_subscription(item):
    return 'subscription-' in _id(item) or 'subscription' in (item.type or '')


def _is_upgrade(item):
    return 'upgrade-' in _id(item)


# =======================================================
# PRODUCT TYPE
# =======================================================

PRODUCT_TYPE_RULES = [
    # Subscription family, matched on id first and then on display name
    (lambda i: _is_subscription(i) and ('diamond' in _id(i) or 'diamond' in _name(i)), DIAMOND_SUBSCRIPTION),
    (lambda i: _is_subscription(i) and ('infinity' in _id(i) or 'infinity' in _name(i)), INFINITY_SUBSCRIPTION),
    (lambda i: _is_subscription(i) and ('basic' in _id(i) or 'basic' in _name(i)), BASIC_SUBSCRIPTION),

    # Upgrade packages
    (lambda i: _is_upgrade(i) and 'diamond' in _id(i), DIAMOND_SUBSCRIPTION),
    (lambda i: _is_upgrade(i) and 'infinity' in _id(i), INFINITY_SUBSCRIPTION),

    # Special packages by exact id, then by exact name
    (lambda i: _id(i) == 'eagle-ultimate', EAGLE_ULTIMATE),
    (lambda i: _id(i) == 'investment-advising', INVESTMENT_ADVISING),
    (lambda i: _id(i) == 'trading-tutor', TRADING_TUTOR),
    (lambda i: i.name == 'Eagle Ultimate', EAGLE_ULTIMATE),
    (lambda i: i.name == 'Investment Advising', INVESTMENT_ADVISING),
    (lambda i: i.name == 'Trading Tutor', TRADING_TUTOR),

    (lambda i: 'mentorship-' in _id(i) or i.type == MENTORSHIP_PACKAGE, MENTORSHIP_PACKAGE),

    # Product purchases carry their own type (e.g. "script-...")
    (lambda i: 'product-' in _id(i), lambda i: i.type or PRODUCT_PURCHASE),
]


def _first_match(rules, item, default):
    for predicate, result in rules:
        if predicate(item):
            return result(item) if callable(result) else result
    return default


def classify(items):
    """Canonical product type of a cart, decided by its first item."""
    if not items:
        return MENTORSHIP_PACKAGE
    return _first_match(PRODUCT_TYPE_RULES, items[0], MENTORSHIP_PACKAGE)


# =======================================================
# PACKAGE PREDICATES
# =======================================================

def is_diamond_package(item):
    return 'diamond' in _id(item) or 'diamond' in _name(item) or 'diamond' in _type(item)


def is_infinity_package(item):
    return 'infinity' in _id(item) or 'infinity' in _name(item) or 'infinity' in _type(item)


def is_basic_package(item):
    return 'basic' in _id(item) or 'basic' in _name(item) or 'basic' in _type(item)


def is_trading_tutor_package(item):
    return (
        _id(item) == 'trading-tutor'
        or item.name == 'Trading Tutor'
        or 'trading tutor' in _name(item)
        or 'trading tutor' in _type(item)
    )


def is_investment_advising_package(item):
    return (
        _id(item) == 'investment-advising'
        or item.name == 'Investment Advising'
        or 'investment advising' in _name(item)
        or 'investment advising' in _type(item)
    )


def is_ultimate_package(item):
    return (
        _id(item) == 'eagle-ultimate'
        or item.name == 'Eagle Ultimate'
        or 'eagle ultimate' in _name(item)
        or 'ultimate' in _type(item)
    )


# =======================================================
# STATIC CONTRACT VARIANT
# =======================================================

CONTRACT_VARIANT_RULES = [
    (lambda i, product_type: is_diamond_package(i), VARIANT_DIAMOND),
    (lambda i, product_type: is_infinity_package(i), VARIANT_INFINITY),
    (lambda i, product_type: is_basic_package(i) or product_type == BASIC_SUBSCRIPTION, VARIANT_BASIC),
    (lambda i, product_type: is_trading_tutor_package(i), VARIANT_TRADING_TUTOR),
    (lambda i, product_type: is_ultimate_package(i), VARIANT_ULTIMATE),
    (lambda i, product_type: is_investment_advising_package(i), VARIANT_INVESTMENT_ADVISING),
    (lambda i, product_type: 'script' in product_type, VARIANT_SCRIPT),
]


def contract_variant(items):
    """Which static agreement to show when the backend has no template."""
    if not items:
        return VARIANT_SERVICE_AGREEMENT
    item = items[0]
    product_type = classify(items)
    for predicate, variant in CONTRACT_VARIANT_RULES:
        if predicate(item, product_type):
            return variant
    return VARIANT_SERVICE_AGREEMENT


# =======================================================
# TEMPLATE CATEGORY
# =======================================================

TEMPLATE_CATEGORY_RULES = [
    (('subscription', 'diamond', 'infinity', 'basic'), 'subscription'),
    (('script',), 'script'),
    (('investment-advising',), 'advisory'),
    (('trading-tutor',), 'trading'),
    (('ultimate',), 'premium'),
]


def template_category(product_type):
    for keywords, category in TEMPLATE_CATEGORY_RULES:
        if any(keyword in product_type for keyword in keywords):
            return category
    return 'mentorship'
