import os
from decimal import Decimal

APP_NAME = 'cafe-ordering'

ORDER_EMAIL_FROM = os.environ.get('ORDER_EMAIL_FROM', 'orders@cafe.example.com')

JWT_ALGORITHM = 'HS256'

CENTS = Decimal('0.01')

ORDER_TYPES = ('pickup', 'delivery')
PAYMENT_METHODS = ('cash', 'card', 'receipt_upload')

DIETARY_TAGS = ('Vegetarian', 'Vegan', 'Gluten-Free', 'Dairy-Free', 'Nut-Free')
ALT_MILK_OPTIONS = ('Oat Milk', 'Almond Milk', 'Soy Milk', 'Coconut Milk')

RECEIPT_CONTENT_TYPES = ('image/jpeg', 'image/png', 'image/gif', 'image/webp', 'application/pdf')
MAX_RECEIPT_SIZE = 10 * 1024 * 1024


def gen_table_name() -> str:
    return os.environ.get('GEN_TABLE_NAME', 'cafe-ordering-gen')


def endpoint_url():
    return os.environ.get('ENDPOINT_URL') or None


def jwt_secret() -> str:
    return os.environ['JWT_SECRET']


def jwt_expires_days() -> int:
    return int(os.environ.get('JWT_EXPIRES_DAYS', '30'))


def tax_rate() -> Decimal:
    return Decimal(os.environ.get('TAX_RATE', '0.08'))


def delivery_fee() -> Decimal:
    return Decimal(os.environ.get('DELIVERY_FEE', '5.99'))


def alt_milk_price() -> Decimal:
    return Decimal(os.environ.get('ALT_MILK_PRICE', '0.75'))


def cold_foam_price() -> Decimal:
    return Decimal(os.environ.get('COLD_FOAM_PRICE', '1.00'))


def files_bucket() -> str:
    return os.environ['FILES_BUCKET_NAME']


def all_orders_email():
    return os.environ.get('ALL_ORDERS_EMAIL')


def orders_table_stream_arn() -> str:
    return os.environ.get('ORDERS_TABLE_STREAM_ARN', '')
