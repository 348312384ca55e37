import logging
import re
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.template.loader import render_to_string
from django.utils.html import escape
from django.utils.safestring import mark_safe

from core.api_client import ApiError
from .classifier import classify, contract_variant, template_category
from .contract_data import CONTRACT_DATA, COMMON_CLAUSES, INTRO, ADVISER_SIGNATORY

logger = logging.getLogger(__name__)

DEFAULT_CUSTOMER_NAME = "[Client Name]"
DEFAULT_PRODUCT_NAME = "Mentorship Package"

SIGNATURE_IMAGE_RE = re.compile(r'data:image/(png|jpeg|webp);base64,[A-Za-z0-9+/]+={0,2}')


def is_signature_image(value):
    """True for a base64 PNG, JPEG or WebP data URL, the only form a drawn signature takes."""
    return isinstance(value, str) and SIGNATURE_IMAGE_RE.fullmatch(value) is not None


def format_contract_date(value=None):
    """`October 19, 2026` style date used in the agreements."""
    value = value or date.today()
    return f"{value:%B} {value.day}, {value.year}"


def format_price(value):
    """Grouped number with up to three decimals and no trailing zeros (1,234.5)."""
    text = f"{Decimal(value).quantize(Decimal('0.001'), rounding=ROUND_HALF_UP):,f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def fetch_contract_template(service, product_type):
    """
    First active backend template for the product's category, or None.
    Lookup failures fall back to the static agreements.
    """
    category = template_category(product_type)
    try:
        response = service.get_public_contract_templates(category=category, status='active', limit=1)
    except ApiError as e:
        logger.error(f"Could not load contract template for '{category}': {e.message}")
        return None

    templates = response.get('templates') or []
    if not templates:
        logger.info(f"No active contract template for '{category}', using the static agreement.")
        return None

    template = templates[0]
    logger.info(f"Using contract template {template.template_id or template.name} for '{category}'.")
    return template


def render_static_contract(variant, customer_name='', contract_date='', price=Decimal('0'),
                           product_name='', signature=None, email=None, preview=True):
    """Fills one of the static agreements with the client's details."""
    data = CONTRACT_DATA.get(variant) or CONTRACT_DATA['service-agreement']
    amount = Decimal(price)

    values = {
        'customer_name': escape(customer_name or DEFAULT_CUSTOMER_NAME),
        'contract_date': escape(contract_date or format_contract_date()),
        'price': format_price(amount),
        'monthly_installment': format_price((amount / 12).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)),
        'hourly_rate': format_price((amount / 3).quantize(Decimal('1'), rounding=ROUND_HALF_UP)),
        'product_name': escape(product_name or DEFAULT_PRODUCT_NAME),
        'site_url': escape(settings.ADVISER_SITE_URL),
        'disclaimer_url': escape(settings.ADVISER_DISCLAIMER_URL),
    }

    def fill(text):
        return mark_safe(text.format_map(values))

    sections = [
        {'heading': section['heading'], 'content': fill(section['content'])}
        for section in data['sections']
    ]
    if data.get('include_common_clauses', True):
        overrides = data.get('clauses', {})
        sections += [
            {'heading': clause['heading'], 'content': fill(overrides.get(clause['key'], clause['content']))}
            for clause in COMMON_CLAUSES
        ]

    context = {
        'variant': variant,
        'title': data['title'],
        'intro': fill(data.get('intro', INTRO)),
        'sections': sections,
        'is_advisory': data.get('include_common_clauses', True),
        'signatory': ADVISER_SIGNATORY,
        'customer_name': customer_name or DEFAULT_CUSTOMER_NAME,
        'contract_date': contract_date or format_contract_date(),
        'email': email,
        'signature': signature,
        'show_signature': not preview and is_signature_image(signature),
    }
    return render_to_string('contracts/static_contract.html', context)


def render_contract(items, template=None, customer_name='', price=Decimal('0'),
                    signature=None, email=None, preview=True, contract_date=None):
    """
    Agreement markup for the cart: the backend template when one exists,
    otherwise the static agreement picked by the product classifier.

    Backend template HTML is inserted as-is. It is not sanitised, so the
    template store must be trusted.
    """
    contract_date = contract_date or format_contract_date()

    if template is not None and template.markup:
        return render_to_string('contracts/dynamic_contract.html', {
            'template': template,
            'markup': mark_safe(template.markup),
        })

    return render_static_contract(
        contract_variant(items),
        customer_name=customer_name,
        contract_date=contract_date,
        price=price,
        product_name=items[0].name if items else '',
        signature=signature,
        email=email,
        preview=preview,
    )


def present_contract(service, items, **kwargs):
    """Fetches the template for the cart's product type and renders the agreement."""
    template = fetch_contract_template(service, classify(items))
    return render_contract(items, template=template, **kwargs)
