from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple
from uuid import NAMESPACE_URL, uuid5

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http201
from chalicelib.menu_items import MenuItem
from chalicelib.orders import Order
from chalicelib.utils import app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.auth import Identity, RequestContext
from chalicelib.utils.logger import logger

MAX_COMMENT_LENGTH = 500


def review_id_for(user_id: str, menu_item_id: Optional[str], order_id: Optional[str]) -> str:
    """ Same user and target always map to the same review id """
    return str(uuid5(NAMESPACE_URL, f'review|{user_id}|{menu_item_id or ""}|{order_id or ""}'))


def _rating(value) -> int:
    rating = utils_data.to_int(value, 'rating')
    if not 1 <= rating <= 5:
        raise exceptions.ValidationError('Rating must be between 1 and 5', field='rating')
    return rating


def _comment(value) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or len(value) > MAX_COMMENT_LENGTH:
        raise exceptions.ValidationError(f'Comment cannot be more than {MAX_COMMENT_LENGTH} characters',
                                         field='comment')
    return value


class Review(EntityBase):
    pk = keys_structure.reviews_pk
    sk = keys_structure.reviews_sk

    not_found_exception = exceptions.ReviewNotFound

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'user_id': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'rating': lambda x: isinstance(x, int) and 1 <= x <= 5,
        'is_approved': lambda x: isinstance(x, bool),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'menu_item_id': lambda x: isinstance(x, str),
        'order_id': lambda x: isinstance(x, str),
        'comment': lambda x: isinstance(x, str) and len(x) <= MAX_COMMENT_LENGTH,
        'user_name': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.user_id: str = kwargs.get('user_id')
        self.user_name: Optional[str] = kwargs.get('user_name')
        self.menu_item_id: Optional[str] = kwargs.get('menu_item_id')
        self.order_id: Optional[str] = kwargs.get('order_id')
        self.rating: int = int(kwargs['rating']) if kwargs.get('rating') is not None else None
        self.comment: Optional[str] = kwargs.get('comment')
        self.is_approved: bool = kwargs.get('is_approved', False)
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'review'

    @classmethod
    def init_by_id(cls, review_id: str):
        c = cls(review_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def init_own(cls, review_id: str, identity: Identity):
        review = cls.init_by_id(review_id)
        if review.user_id != identity.user_id:
            raise exceptions.AccessDenied('You can only change your own reviews')
        return review

    @classmethod
    def init_request_create(cls, context: RequestContext, user_name: Optional[str] = None):
        body = context.body
        menu_item_id, order_id = body.get('menu_item_id'), body.get('order_id')
        if not menu_item_id and not order_id:
            raise exceptions.ValidationError('Either menu_item_id or order_id must be provided',
                                             field='menu_item_id')
        utils_data.require_fields(body, 'rating')
        if menu_item_id:
            MenuItem.init_active_by_id(menu_item_id)
        if order_id and Order.init_by_id(order_id).user_id != context.identity.user_id:
            raise exceptions.AccessDenied('You can only review your own orders')
        user_id = context.identity.user_id
        return cls(
            id_=review_id_for(user_id, menu_item_id, order_id),
            user_id=user_id,
            user_name=user_name,
            menu_item_id=menu_item_id,
            order_id=order_id,
            rating=_rating(body['rating']),
            comment=_comment(body.get('comment'))
        )

    @utils_app.log_start_finish
    def endpoint_create_review(self) -> Response:
        try:
            self._create_db_record()
        except exceptions.AlreadyExists:
            raise exceptions.AlreadyExists('You have already reviewed this item')
        return utils_app.success_response(
            self._to_ui(), status_code=http201,
            message='Review submitted successfully. It will be visible after approval.'
        )

    @utils_app.log_start_finish
    def endpoint_update_review(self, body: Dict) -> Response:
        if body.get('rating') is not None:
            self.rating = _rating(body['rating'])
        if 'comment' in body:
            self.comment = _comment(body['comment'])
        self.is_approved = False
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='Review updated successfully')

    @utils_app.log_start_finish
    def endpoint_approve_review(self) -> Response:
        self.is_approved = True
        self.__init__(**self._update_db_record())
        return utils_app.success_response(self._to_ui(), message='Review approved successfully')

    @utils_app.log_start_finish
    def endpoint_delete_review(self) -> Response:
        self._delete_db_record()
        return utils_app.success_response(None, message='Review deleted successfully')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(review_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'user_id': self.user_id,
            'user_name': self.user_name,
            'menu_item_id': self.menu_item_id,
            'order_id': self.order_id,
            'rating': self.rating,
            'comment': self.comment,
            'is_approved': self.is_approved,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }


def list_reviews(filter_expression=None) -> List[Review]:
    records = utils_db.query_partition(keys_structure.reviews_pk, filter_expression=filter_expression)
    return sorted((Review(**record) for record in records), key=lambda r: r.date_created, reverse=True)


def approved_item_reviews(menu_item_id: str) -> List[Review]:
    return list_reviews(Attr('menu_item_id').eq(menu_item_id) & Attr('is_approved').eq(True))


def average_rating(reviews: List[Review]) -> Decimal:
    if not reviews:
        return Decimal('0')
    average = Decimal(sum(review.rating for review in reviews)) / len(reviews)
    return average.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)


@utils_app.log_start_finish
def endpoint_get_item_reviews(context: RequestContext, menu_item_id: str) -> Response:
    reviews = [review._to_ui() for review in approved_item_reviews(menu_item_id)]
    return utils_app.success_response(reviews, count=len(reviews))


@utils_app.log_start_finish
def endpoint_get_item_rating(context: RequestContext, menu_item_id: str) -> Response:
    reviews = approved_item_reviews(menu_item_id)
    logger.info(f'endpoint_get_item_rating ::: {menu_item_id=} has {len(reviews)} approved reviews')
    return utils_app.success_response({'average_rating': average_rating(reviews), 'review_count': len(reviews)})


@utils_app.log_start_finish
def endpoint_get_my_reviews(context: RequestContext) -> Response:
    reviews = [review._to_ui() for review in list_reviews(Attr('user_id').eq(context.identity.user_id))]
    return utils_app.success_response(reviews, count=len(reviews))


@utils_app.log_start_finish
def endpoint_list_all_reviews(context: RequestContext) -> Response:
    approved = context.query_params.get('approved')
    filter_expression = None
    if approved is not None:
        filter_expression = Attr('is_approved').eq(approved.lower() == 'true')
    reviews = [review._to_ui() for review in list_reviews(filter_expression)]
    return utils_app.success_response(reviews, count=len(reviews))
