import time
import logging
from dataclasses import dataclass
from decimal import Decimal

from core.storage import DISCOUNT_KEY
from cart.utils import parse_price, to_number

logger = logging.getLogger(__name__)


@dataclass
class DiscountState:
    """The single discount applied to a checkout session."""
    code: str = ""
    amount: Decimal = Decimal('0')
    total: Decimal = Decimal('0')
    timestamp: int = None

    @property
    def is_active(self):
        return bool(self.code and self.amount and self.total)

    def to_record(self):
        return {
            'code': self.code,
            'amount': to_number(self.amount),
            'total': to_number(self.total),
            'timestamp': self.timestamp,
        }


class DiscountLedger:
    """
    Applies, removes and persists the checkout discount.
    Every mutation writes through to the store before returning.
    """

    def __init__(self, store):
        self.store = store
        self.state = DiscountState()
        self.load()

    def load(self):
        record = self.store.get_json(DISCOUNT_KEY)
        if record is None:
            return self.state

        if not isinstance(record, dict):
            logger.warning(f"Ignoring malformed discount record: {record!r}")
            return self.state

        code = record.get('code')
        amount = record.get('amount')
        total = record.get('total')
        if not (code and amount and total):
            logger.warning(f"Ignoring incomplete discount record: {record!r}")
            return self.state

        self.state = DiscountState(
            code=str(code),
            amount=parse_price(amount),
            total=parse_price(total),
            timestamp=record.get('timestamp'),
        )
        return self.state

    def apply(self, code, amount, total):
        self.state = DiscountState(
            code=(code or "").strip().upper(),
            amount=parse_price(amount),
            total=parse_price(total),
            timestamp=int(time.time() * 1000),
        )
        self.store.set_json(DISCOUNT_KEY, self.state.to_record())
        logger.info(f"Discount {self.state.code} applied: -{self.state.amount}, total {self.state.total}")
        return self.state

    def remove(self):
        self.state = DiscountState()
        self.store.remove(DISCOUNT_KEY)
        return self.state
