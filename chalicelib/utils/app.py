import functools
from typing import Callable, FrozenSet, Optional

from chalice import Chalice, Response

from chalicelib.constants.status_codes import http200, http500
from chalicelib.utils import auth as utils_auth, data as utils_data
from chalicelib.utils.exceptions import ApiError
from chalicelib.utils.logger import logger, log_exception

INTERNAL_ERROR_MESSAGE = 'Internal server error'


def error_response(error: Exception, msg: str = "", status_code: int = 400, *args, **kwargs):
    log_exception(error=error, msg=msg, status_code=status_code, *args, **kwargs)
    if isinstance(error, ApiError):
        body = {
            'success': False,
            'message': error.message,
            'error': error.reason,
            'error_type': error.ERROR_TYPE,
            'error_id': getattr(logger, 'current_request_id'),
        }
        if getattr(error, 'field', None):
            body['field'] = error.field
        if getattr(error, 'menu_item_id', None):
            body['menu_item_id'] = error.menu_item_id
    else:
        body = {
            'success': False,
            'message': INTERNAL_ERROR_MESSAGE,
            'error': 'InternalError',
            'error_type': 'internal',
            'error_id': getattr(logger, 'current_request_id'),
        }
    return Response(body=body, status_code=status_code, headers={'Content-Type': 'application/json'})


def success_response(data=None, message: Optional[str] = None, status_code: int = http200, **extra):
    body = {'success': True, 'data': data, **extra}
    if message:
        body['message'] = message
    return Response(body=body, status_code=status_code, headers={'Content-Type': 'application/json'})


def request_exception_handler(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        try:
            logger.info(f'Calling function {func.__name__}')
            return func(*args, **kwargs)
        except ApiError as api_error:
            return error_response(
                error=api_error,
                msg=f'function = {func.__name__} , error = {api_error}',
                status_code=api_error.STATUS_CODE)
        except Exception as exception:
            return error_response(
                error=exception,
                msg=f'function = {func.__name__}, error = {exception}',
                status_code=http500)
    return result


def log_start_finish(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        logger.info(f'{func.__name__} ::: started')
        response = func(*args, **kwargs)
        logger.info(f'{func.__name__} ::: finished')
        return response
    return result


def api_endpoint(app: Chalice, roles: Optional[FrozenSet[utils_auth.Role]] = None, authenticated: bool = True):
    """
    Wraps a chalice view: builds the RequestContext (authenticating and checking roles
    when required), parses a JSON body and turns raised errors into the JSON envelope.
    The view receives the context as its first argument, followed by URL parameters.
    """
    if roles is not None and not authenticated:
        raise ValueError('Role restricted routes must be authenticated')

    def decorator(func: Callable):
        @functools.wraps(func)
        @request_exception_handler
        def view(*args, **kwargs):
            request = app.current_request
            if authenticated:
                context = utils_auth.authenticate(request)
                if roles is not None:
                    utils_auth.authorize(context.identity, roles)
            else:
                context = utils_auth.start_request(request)
            if not utils_data.is_multipart(request):
                context.body = utils_data.parse_raw_body(request)
            return func(context, *args, **kwargs)
        return view
    return decorator
