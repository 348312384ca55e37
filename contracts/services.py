import logging
from dataclasses import dataclass, field

from core.api_client import ApiError

logger = logging.getLogger(__name__)

CONTRACT_EXISTS_MESSAGE = "Contract already exists for this product"
PAYMENT_PENDING_MESSAGE = "Contract signed but payment pending"
ACTIVE_SUBSCRIPTION_MESSAGE = "You already have an active subscription for this product"

STATUS_SIGNED = 'signed'
STATUS_PAYMENT_PENDING = 'payment_pending'
STATUS_COMPLETED = 'completed'


# =======================================================
# OUTCOMES
# =======================================================
# The backend reports "already done" states through its error channel.
# Sign and create calls return one of these instead of raising.

@dataclass
class Signed:
    contract: dict
    contract_id: str
    existing: bool = False
    user_creation_status: str = None
    message: str = ""

    @property
    def status(self):
        return self.contract.get('status') if self.contract else None


@dataclass
class AlreadyExists:
    contract: dict = None
    message: str = CONTRACT_EXISTS_MESSAGE

    @property
    def contract_id(self):
        return (self.contract or {}).get('_id')


@dataclass
class ActiveSubscriptionBlocked:
    contract: dict = None
    message: str = ACTIVE_SUBSCRIPTION_MESSAGE


@dataclass
class ValidationFailed:
    errors: list = field(default_factory=list)
    message: str = "Validation failed"


@dataclass
class UnknownError:
    message: str


# =======================================================
# TEMPLATES
# =======================================================

@dataclass
class ContractTemplateVariable:
    name: str
    label: str = ""
    type: str = "text"
    required: bool = False
    default_value: object = None
    options: list = field(default_factory=list)
    description: str = None
    group: str = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=data.get('name', ''),
            label=data.get('label', ''),
            type=data.get('type', 'text'),
            required=bool(data.get('required')),
            default_value=data.get('defaultValue'),
            options=data.get('options') or [],
            description=data.get('description'),
            group=data.get('group'),
        )


@dataclass
class ContractTemplate:
    id: str
    template_id: str
    name: str
    category: str
    status: str = 'active'
    body: str = ""
    html_body: str = None
    description: str = None
    variables: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        content = data.get('content') or {}
        metadata = data.get('metadata') or {}
        return cls(
            id=data.get('_id', ''),
            template_id=data.get('templateId', ''),
            name=data.get('name', ''),
            category=data.get('category', ''),
            status=data.get('status', 'active'),
            body=content.get('body') or '',
            html_body=content.get('htmlBody'),
            description=metadata.get('description'),
            variables=[ContractTemplateVariable.from_dict(v) for v in content.get('variables') or []],
        )

    @property
    def markup(self):
        return self.html_body or self.body


class ContractService:
    """Contract endpoints of the backend API."""

    def __init__(self, client):
        self.client = client

    def sign_contract(self, data):
        """Signs a contract for the authenticated user."""
        try:
            result = self.client.send('POST', '/contracts/sign', json=data)
        except ApiError as e:
            return UnknownError(e.message)

        payload = result.payload if isinstance(result.payload, dict) else {}
        message = payload.get('message') or ""

        if result.ok:
            contract = payload.get('data') or {}
            return Signed(
                contract=contract,
                contract_id=contract.get('_id'),
                existing=bool(payload.get('existingContract')),
                message=message,
            )

        logger.error(f"Contract signing failed: {result.status_code} - {payload}")

        if message == CONTRACT_EXISTS_MESSAGE and payload.get('data'):
            return AlreadyExists(contract=payload['data'], message=message)
        if payload.get('hasActiveSubscription') or message == ACTIVE_SUBSCRIPTION_MESSAGE:
            return ActiveSubscriptionBlocked(contract=payload.get('data'), message=ACTIVE_SUBSCRIPTION_MESSAGE)
        if payload.get('existingContract') or message in (CONTRACT_EXISTS_MESSAGE, PAYMENT_PENDING_MESSAGE):
            existing = payload.get('existingContract')
            return AlreadyExists(contract=existing if isinstance(existing, dict) else None, message=message)
        return UnknownError(message or "Failed to sign contract")

    def create_contract_with_contact(self, data):
        """Creates a contract, and an account if needed, for a guest."""
        try:
            result = self.client.send('POST', '/contracts/create-with-contact', json=data)
        except ApiError as e:
            return UnknownError(e.message)

        payload = result.payload if isinstance(result.payload, dict) else {}
        message = payload.get('message') or ""

        if result.ok:
            body = payload.get('data') or {}
            return Signed(
                contract=body.get('contract') or {},
                contract_id=body.get('contractId'),
                user_creation_status=body.get('userCreationStatus'),
                message=message,
            )

        logger.error(f"Guest contract creation failed: {result.status_code} - {payload}")

        if isinstance(payload.get('errors'), list):
            return ValidationFailed(errors=[str(error) for error in payload['errors']], message=message or "Validation failed")
        if payload.get('hasActiveSubscription') or message == ACTIVE_SUBSCRIPTION_MESSAGE:
            return ActiveSubscriptionBlocked(message=ACTIVE_SUBSCRIPTION_MESSAGE)
        return UnknownError(message or "Failed to create contract")

    def get_user_contracts(self):
        payload = self.client.get('/contracts/my-contracts')
        if not isinstance(payload, dict):
            return []
        if payload.get('guestMode') and not payload.get('isAuthenticated'):
            return []
        contracts = payload.get('data')
        return contracts if isinstance(contracts, list) else []

    def update_payment_status(self, contract_id, payment_id, payment_provider, status=STATUS_COMPLETED):
        payload = self.client.put(f'/contracts/{contract_id}/payment', {
            'paymentId': payment_id,
            'paymentProvider': payment_provider,
            'status': status,
        })
        return payload.get('data') if isinstance(payload, dict) else None

    def get_public_contract_templates(self, category=None, status=None, limit=None, page=None, locale=None, search=None):
        params = {
            key: value for key, value in {
                'page': page,
                'limit': limit,
                'category': category,
                'status': status,
                'locale': locale,
                'search': search,
            }.items()
            if value not in (None, '')
        }
        payload = self.client.get('/contracts/public/templates', params=params)
        payload = payload if isinstance(payload, dict) else {}
        pagination = payload.get('pagination') or {}
        return {
            'templates': [ContractTemplate.from_dict(t) for t in payload.get('data') or []],
            'total': pagination.get('total') or 0,
            'page': pagination.get('page') or 1,
            'total_pages': pagination.get('totalPages') or 1,
        }
