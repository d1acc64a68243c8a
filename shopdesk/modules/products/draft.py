"""
Product Draft
=============

In-memory product being created or edited, plus the category catalogue the
sub-category dropdown depends on.
"""

import math
import re
from dataclasses import dataclass, fields, asdict

from ...core.errors import ValidationError

PRODUCT_CATEGORIES = [
    'Furniture',
    'Lighting',
    'Decor',
    'Kitchen',
    'Textiles',
]

PRODUCT_SUB_CATEGORIES = {
    'Furniture': ['Sofas', 'Chairs', 'Tables', 'Storage', 'Beds'],
    'Lighting': ['Ceiling Lights', 'Floor Lamps', 'Table Lamps', 'Wall Lights'],
    'Decor': ['Mirrors', 'Vases', 'Wall Art', 'Clocks'],
    'Kitchen': ['Cookware', 'Tableware', 'Glassware', 'Utensils'],
    'Textiles': ['Rugs', 'Cushions', 'Throws', 'Curtains'],
}

# draft attribute -> wire (JSON) key
WIRE_NAMES = {
    'name': 'name',
    'description': 'description',
    'features': 'features',
    'price': 'price',
    'original_price': 'originalPrice',
    'image_url': 'imageUrl',
    'category': 'category',
    'sub_category': 'subCategory',
}

IMAGE_REQUIRED_MESSAGE = 'Please upload an image for the product'

_LINE_BREAK = re.compile(r'\r\n|\n|\r')
_LEADING_DECIMAL = re.compile(r'\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?')


def split_features(text):
    """Split textarea content on line breaks, dropping blank lines"""
    if not text:
        return []
    return [line for line in _LINE_BREAK.split(text) if line.strip() != '']


def parse_price(value):
    """Parse the leading decimal of a price field ('19.99 USD' -> 19.99).

    Anything without a leading number, or non-finite, becomes 0.
    """
    if value is None:
        return 0
    match = _LEADING_DECIMAL.match(str(value))
    if not match:
        return 0
    number = float(match.group(0))
    if not math.isfinite(number) or number == 0:
        return 0
    return number


def sub_category_options(category, catalog=None):
    catalog = PRODUCT_SUB_CATEGORIES if catalog is None else catalog
    if not category:
        return []
    return list(catalog.get(category, []))


def _text(value):
    return '' if value is None else str(value)


def _lookup(product, attr):
    """Read a field from a product dict using its wire or python name"""
    wire = WIRE_NAMES[attr]
    if wire in product:
        return product[wire]
    return product.get(attr)


@dataclass
class ProductDraft:
    """Editable product fields, all held as the text the form shows"""
    name: str = ''
    description: str = ''
    features: str = ''
    price: str = ''
    original_price: str = ''
    image_url: str = ''
    category: str = ''
    sub_category: str = ''

    @classmethod
    def field_names(cls):
        return [f.name for f in fields(cls)]

    @classmethod
    def from_product(cls, product):
        """Populate from an existing product record (edit mode)"""
        product = product or {}
        features = _lookup(product, 'features')
        if isinstance(features, (list, tuple)):
            features = '\n'.join(_text(f) for f in features)

        return cls(
            name=_text(_lookup(product, 'name')),
            description=_text(_lookup(product, 'description')),
            features=_text(features),
            price=_text(_lookup(product, 'price')),
            original_price=_text(_lookup(product, 'original_price')),
            image_url=_text(_lookup(product, 'image_url')),
            category=_text(_lookup(product, 'category')),
            sub_category=_text(_lookup(product, 'sub_category')),
        )

    def update(self, field, value, catalog=None):
        """Set one field as the form would; category changes clear sub_category"""
        attr = field if field in WIRE_NAMES else _attr_for_wire(field)
        if attr is None:
            raise ValidationError(f"Unknown product field: {field}")

        value = _text(value)

        if attr == 'category':
            self.category = value
            self.sub_category = ''
            return

        if attr == 'sub_category' and value:
            if value not in sub_category_options(self.category, catalog):
                raise ValidationError(
                    f"'{value}' is not a sub category of '{self.category or 'no category'}'"
                )

        setattr(self, attr, value)

    def sub_category_valid(self, catalog=None):
        if not self.sub_category:
            return True
        return self.sub_category in sub_category_options(self.category, catalog)

    def validate(self):
        """Reject submission before any network call"""
        if not self.image_url:
            raise ValidationError(IMAGE_REQUIRED_MESSAGE)

    def to_payload(self):
        """Wire body for the product save endpoint"""
        return {
            'name': self.name,
            'description': self.description,
            'features': split_features(self.features),
            'price': parse_price(self.price),
            'originalPrice': parse_price(self.original_price),
            'imageUrl': self.image_url,
            'category': self.category,
            'subCategory': self.sub_category,
        }

    def to_dict(self):
        """Form view keyed by wire names"""
        return {WIRE_NAMES[key]: value for key, value in asdict(self).items()}


def _attr_for_wire(wire):
    for attr, name in WIRE_NAMES.items():
        if name == wire:
            return attr
    return None
