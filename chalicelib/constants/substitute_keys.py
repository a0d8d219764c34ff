to_db = {
    'id': 'id_',
}

# None drops the attribute from API output
from_db = {
    'partkey': None,
    'sortkey': None,
    'record_type': None,
    'password_hash': None,
    'user_orders_key': None,
    'id_': 'id',
}
