from collections import Counter
from decimal import Decimal
from typing import Dict, List

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.constants import keys_structure
from chalicelib.events import list_events
from chalicelib.orders import Order
from chalicelib.utils import app as utils_app, db as utils_db
from chalicelib.utils.auth import RequestContext
from chalicelib.utils.logger import logger

RECENT_ORDERS = 5


def _orders() -> List[Order]:
    records = utils_db.query_partition(keys_structure.orders_pk)
    return sorted((Order(**record) for record in records), key=lambda o: o.id_, reverse=True)


def dashboard_stats() -> Dict:
    orders = _orders()
    users = utils_db.query_partition(keys_structure.users_pk)
    menu_items = utils_db.query_partition(keys_structure.menu_items_pk, filter_expression=Attr('archived').eq(False))
    pending_reviews = utils_db.query_partition(keys_structure.reviews_pk,
                                               filter_expression=Attr('is_approved').eq(False))
    revenue = sum((order.total_amount for order in orders if order.payment_status == 'paid'), Decimal('0.00'))
    return {
        'total_orders': len(orders),
        'total_users': len(users),
        'total_menu_items': len(menu_items),
        'pending_reviews': len(pending_reviews),
        'revenue': revenue,
        'users_by_role': dict(Counter(user.get('role') for user in users)),
        'orders_by_status': dict(Counter(order.status for order in orders)),
        'orders_by_payment_status': dict(Counter(order.payment_status for order in orders)),
        'events_by_status': dict(Counter(event.status for event in list_events())),
        'recent_orders': [order._to_ui() for order in orders[:RECENT_ORDERS]]
    }


@utils_app.log_start_finish
def endpoint_get_stats(context: RequestContext) -> Response:
    stats = dashboard_stats()
    logger.info(f"endpoint_get_stats ::: {stats['total_orders']} orders, {stats['total_users']} users")
    return utils_app.success_response(stats)
