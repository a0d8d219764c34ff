from typing import Dict

from chalice import Response

from chalicelib.constants.status_codes import http201
from chalicelib.users import User
from chalicelib.utils import app as utils_app, auth as utils_auth, data as utils_data, exceptions
from chalicelib.utils.auth import RequestContext, Role
from chalicelib.utils.logger import logger


def _token_payload(user: User) -> Dict:
    return {'token': utils_auth.issue_token(user.id_, user.role), 'user': user.public_profile()}


@utils_app.log_start_finish
def endpoint_register(context: RequestContext) -> Response:
    # self registration always creates a customer, staff accounts come from the admin routes
    user = User.init_new(context.body, role=Role.CUSTOMER.value).create()
    logger.info(f'endpoint_register ::: user {user.id_} registered')
    return utils_app.success_response(_token_payload(user), message='Registration successful', status_code=http201)


@utils_app.log_start_finish
def endpoint_login(context: RequestContext) -> Response:
    body = context.body
    utils_data.require_fields(body, 'email', 'password')
    user = User.find_by_email(utils_data.validate_email(body['email']))
    if user is None or not user.check_password(body['password']):
        logger.warning('endpoint_login ::: rejected credentials')
        raise exceptions.InvalidCredentials()
    user.touch_last_login()
    return utils_app.success_response(_token_payload(user), message='Login successful')
