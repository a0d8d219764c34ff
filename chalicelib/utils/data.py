import json
import re
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from io import BytesIO
from typing import Dict, Tuple, Any

from werkzeug.formparser import MultiPartParser
from werkzeug.http import parse_options_header

from chalicelib.constants.constants import CENTS
from chalicelib.utils.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{0,15}$')


def replace_dict_key(item, orig_key, new_key):
    if orig_key in item:
        if new_key not in item:
            item[new_key] = item[orig_key]
        del item[orig_key]


def substitute_keys(dict_to_process: dict, base_keys: dict, opt_dict=None):
    if opt_dict is None:
        opt_dict = {}
    all_keys = {**base_keys, **opt_dict}
    for key, val in all_keys.items():
        if val:
            replace_dict_key(dict_to_process, key, val)
        elif key in dict_to_process.keys():
            dict_to_process.pop(key, None)
    return dict_to_process


def parse_raw_body(chalice_request) -> Dict:
    request_raw_body = chalice_request.raw_body
    if not request_raw_body:
        return {}
    try:
        body = json.loads(request_raw_body)
    except ValueError:
        raise ValidationError('Request body is not valid JSON', field='body')
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object', field='body')
    return fix_values_from_ui(item=body)


def fix_values_from_ui(item):
    """
    Remove keys with empty or None values and transform float to Decimal
    """
    if item.get('_values_from_ui_strategy') == 'delete_empty':
        list_to_cleanup = ['', None]
    else:
        list_to_cleanup = [None]
    item = cleanup_dict(item, list_to_cleanup)
    item.pop('_values_from_ui_strategy', None)
    result = json.dumps(item)
    return json.loads(result, parse_float=Decimal)


def cleanup_dict(item: dict, list_of_values: list):
    """ Remove None fields in dict with. Supports one nesting.  """

    def sub_clean(sub_item):
        return {
            key: value
            for key, value in sub_item.items()
            if value not in list_of_values
        }

    clean = {}
    for k, v in item.items():
        if isinstance(v, dict):
            nested = sub_clean(v)
            if len(nested.keys()) > 0:
                clean[k] = nested
        elif v not in list_of_values:
            clean[k] = v
    return clean


def parse_multipart_request_data(chalice_request) -> Tuple[Dict[str, str], Dict[str, Any]]:
    """
    Split a multipart/form-data request into plain fields and uploaded files.
    Files are returned as werkzeug FileStorage objects.
    """
    content_type, options = parse_options_header(chalice_request.headers.get('content-type', ''))
    if content_type != 'multipart/form-data' or not options.get('boundary'):
        raise ValidationError('Expected multipart/form-data body', field='content-type')
    body = chalice_request.raw_body or b''
    form, files = MultiPartParser().parse(BytesIO(body), options['boundary'].encode('utf-8'), len(body))
    return form.to_dict(), files.to_dict()


def is_multipart(chalice_request) -> bool:
    return chalice_request.headers.get('content-type', '').startswith('multipart/form-data')


def to_money(value, field: str = 'amount') -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Field '{field}' must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"Field '{field}' must be a number", field=field)
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Field '{field}' must be an integer", field=field)
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Field '{field}' must be an integer", field=field)
    if number != number.to_integral_value():
        raise ValidationError(f"Field '{field}' must be an integer", field=field)
    return int(number)


def require_fields(body: dict, *fields):
    for field in fields:
        if body.get(field) in (None, '', [], {}):
            raise ValidationError(f"Field '{field}' is required", field=field)


def validate_email(email) -> str:
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email):
        raise ValidationError('Please provide a valid email address', field='email')
    return email.strip().lower()


def validate_phone(phone) -> str:
    if not isinstance(phone, str) or not PHONE_PATTERN.match(phone):
        raise ValidationError('Please provide a valid phone number', field='phone')
    return phone


def validate_password(password) -> str:
    if not isinstance(password, str) or len(password) < 6:
        raise ValidationError('Password must be at least 6 characters long', field='password')
    return password


def validate_choice(value, choices, field: str):
    if value not in choices:
        raise ValidationError(f"Field '{field}' must be one of: {', '.join(choices)}", field=field)
    return value


def to_datetime(value, field: str) -> datetime:
    """ ISO-8601 string to an aware datetime; naive values are taken as UTC """
    if not isinstance(value, str):
        raise ValidationError(f"Field '{field}' must be an ISO-8601 date", field=field)
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f"Field '{field}' must be an ISO-8601 date", field=field)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
