from chalicelib.constants.status_codes import http400, http401, http403, http404, http409

__all__ = ["ApiError", "AuthenticationError", "MissingToken", "InvalidToken", "UnknownSubject",
           "InvalidCredentials", "AuthorizationError", "RoleNotAuthorized", "AccessDenied", "ValidationError",
           "NotFoundError", "RecordNotFound", "MenuItemNotFound", "CartItemNotFound", "OrderNotFound",
           "CouponNotFound", "EventNotFound", "ReviewNotFound", "PaymentMethodNotFound", "ContentNotFound",
           "EventFlyerNotFound", "InquiryNotFound", "UserNotFound", "StateConflictError", "InvalidTransition",
           "CouponExpired", "UsageExceeded", "MinimumOrderNotMet", "ItemUnavailable", "AlreadyExists",
           "NumberOfRetriesExceeded"]


class ApiError(Exception):
    STATUS_CODE = http400
    ERROR_TYPE = 'error'
    LEVEL = 'warning'
    DEFAULT_MESSAGE = 'Bad request'

    def __init__(self, message=None):
        self.message = message or self.DEFAULT_MESSAGE
        super().__init__(self.message)

    @property
    def reason(self) -> str:
        return self.__class__.__name__


# Authentication (401)
class AuthenticationError(ApiError):
    STATUS_CODE = http401
    ERROR_TYPE = 'authentication'
    DEFAULT_MESSAGE = 'Not authorized'


class MissingToken(AuthenticationError):
    DEFAULT_MESSAGE = 'not authorized, no token'


class InvalidToken(AuthenticationError):
    DEFAULT_MESSAGE = 'not authorized, token failed'


class UnknownSubject(AuthenticationError):
    DEFAULT_MESSAGE = 'user not found'


class InvalidCredentials(AuthenticationError):
    DEFAULT_MESSAGE = 'Invalid credentials'


# Authorization (403)
class AuthorizationError(ApiError):
    STATUS_CODE = http403
    ERROR_TYPE = 'authorization'
    DEFAULT_MESSAGE = 'Access denied'


class RoleNotAuthorized(AuthorizationError):
    pass


class AccessDenied(AuthorizationError):
    pass


# Validation (400)
class ValidationError(ApiError):
    ERROR_TYPE = 'validation'
    DEFAULT_MESSAGE = 'Validation error'

    def __init__(self, message=None, field=None):
        super().__init__(message)
        self.field = field


# Missing entities (404)
class NotFoundError(ApiError):
    STATUS_CODE = http404
    ERROR_TYPE = 'not_found'
    DEFAULT_MESSAGE = 'Record not found'


class RecordNotFound(NotFoundError):
    pass


class MenuItemNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Menu item not found'


class CartItemNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Item not found in cart'


class OrderNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Order not found'


class CouponNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Invalid coupon code'


class EventNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Event not found'


class ReviewNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Review not found'


class PaymentMethodNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Payment method not found'


class ContentNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Content not found'


class EventFlyerNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Event flyer not found'


class InquiryNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'Inquiry not found'


class UserNotFound(NotFoundError):
    DEFAULT_MESSAGE = 'User not found'


# Lifecycle and business-rule conflicts (409)
class StateConflictError(ApiError):
    STATUS_CODE = http409
    ERROR_TYPE = 'state_conflict'
    DEFAULT_MESSAGE = 'Conflict with the current state of the resource'


class InvalidTransition(StateConflictError):
    pass


class CouponExpired(StateConflictError):
    DEFAULT_MESSAGE = 'Coupon has expired'


class UsageExceeded(StateConflictError):
    DEFAULT_MESSAGE = 'Coupon usage limit reached'


class MinimumOrderNotMet(StateConflictError):
    pass


class ItemUnavailable(StateConflictError):
    def __init__(self, message=None, menu_item_id=None):
        super().__init__(message)
        self.menu_item_id = menu_item_id


class AlreadyExists(StateConflictError):
    pass


# DB Performance Exception
class NumberOfRetriesExceeded(Exception):
    pass
