from dataclasses import dataclass, field


def _quantity(value):
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        return 1
    return quantity or 1


@dataclass
class CartItem:
    """
    One purchasable line as stored in the `cart` record.

    Prices keep whatever shape they arrived in (`"$1,234.56"` or a number);
    cart.utils.parse_price turns them into Decimals.
    """
    id: str
    name: str = ""
    price: object = 0
    member_price: object = None
    original_price: object = None
    quantity: int = 1
    type: str = None
    extra: dict = field(default_factory=dict, repr=False)

    KNOWN_KEYS = ('id', 'name', 'price', 'memberPrice', 'originalPrice', 'quantity', 'type')

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data.get('id') or ''),
            name=str(data.get('name') or ''),
            price=data.get('price', 0),
            member_price=data.get('memberPrice'),
            original_price=data.get('originalPrice'),
            quantity=_quantity(data.get('quantity', 1)),
            type=data.get('type'),
            extra={k: v for k, v in data.items() if k not in cls.KNOWN_KEYS},
        )

    def to_dict(self):
        data = dict(self.extra)
        data.update({'id': self.id, 'name': self.name, 'price': self.price, 'quantity': self.quantity})
        if self.member_price is not None:
            data['memberPrice'] = self.member_price
        if self.original_price is not None:
            data['originalPrice'] = self.original_price
        if self.type is not None:
            data['type'] = self.type
        return data
