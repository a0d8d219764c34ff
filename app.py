from chalice import Chalice

from chalicelib import admin, auth, carts, checkout, coupons, event_flyers, events, home_content, inquiries, \
    menu_items, orders, payment_methods, reviews, triggers, users
from chalicelib.constants.constants import APP_NAME, orders_table_stream_arn
from chalicelib.utils import data as utils_data
from chalicelib.utils.app import api_endpoint
from chalicelib.utils.auth import allowed_roles

app = Chalice(app_name=APP_NAME)

app.api.binary_types.insert(0, 'multipart/form-data')

STAFF = allowed_roles('admin', 'worker')
ADMIN = allowed_roles('admin')


@app.on_dynamodb_record(stream_arn=orders_table_stream_arn())
def db_gen_table_stream_trigger(event):
    return triggers.db_gen_table_stream_trigger(event)


# AUTH
@app.route('/auth/register', methods=['POST'], cors=True)
@api_endpoint(app, authenticated=False)
def register(context):
    return auth.endpoint_register(context)


@app.route('/auth/login', methods=['POST'], cors=True)
@api_endpoint(app, authenticated=False)
def login(context):
    return auth.endpoint_login(context)


@app.route('/auth/me', methods=['GET'], cors=True)
@api_endpoint(app)
def get_me(context):
    return users.User.init_by_id(context.identity.user_id).endpoint_get_user()


@app.route('/auth/profile', methods=['PUT'], cors=True)
@api_endpoint(app)
def update_profile(context):
    return users.User.init_by_id(context.identity.user_id).endpoint_update_profile(context.body)


@app.route('/auth/password', methods=['PUT'], cors=True)
@api_endpoint(app)
def change_password(context):
    return users.User.init_by_id(context.identity.user_id).endpoint_change_password(context.body)


# MENU
@app.route('/menu', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_menu_items(context):
    return menu_items.endpoint_get_menu_items(context)


@app.route('/menu/category/{category}', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_menu_items_by_category(context, category):
    return menu_items.endpoint_get_menu_items_by_category(context, category)


@app.route('/menu/{menu_item_id}', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_menu_item(context, menu_item_id):
    return menu_items.MenuItem.init_active_by_id(menu_item_id).endpoint_get_menu_item()


@app.route('/menu', methods=['POST'], cors=True)
@api_endpoint(app, roles=ADMIN)
def create_menu_item(context):
    return menu_items.MenuItem.init_request_create(context).endpoint_create_menu_item()


@app.route('/menu/{menu_item_id}', methods=['PUT'], cors=True)
@api_endpoint(app, roles=ADMIN)
def update_menu_item(context, menu_item_id):
    return menu_items.MenuItem.init_active_by_id(menu_item_id).endpoint_update_menu_item(context)


@app.route('/menu/{menu_item_id}', methods=['DELETE'], cors=True)
@api_endpoint(app, roles=ADMIN)
def archive_menu_item(context, menu_item_id):
    return menu_items.MenuItem.init_active_by_id(menu_item_id).endpoint_archive_menu_item(context)


@app.route('/menu/{menu_item_id}/image', methods=['POST'], content_types=['multipart/form-data'], cors=True)
@api_endpoint(app, roles=ADMIN)
def upload_menu_item_image(context, menu_item_id):
    return menu_items.MenuItem.init_active_by_id(menu_item_id).endpoint_upload_image(context)


# CART
@app.route('/cart', methods=['GET'], cors=True)
@api_endpoint(app)
def get_cart(context):
    return carts.Cart.init_by_context(context).endpoint_get_cart()


@app.route('/cart', methods=['POST'], cors=True)
@api_endpoint(app)
def add_item_to_cart(context):
    return carts.Cart.init_by_context(context).endpoint_add_item(context.body)


@app.route('/cart', methods=['DELETE'], cors=True)
@api_endpoint(app)
def clear_cart(context):
    return carts.Cart.init_by_context(context).endpoint_clear_cart()


@app.route('/cart/{line_id}', methods=['PUT'], cors=True)
@api_endpoint(app)
def update_cart_item(context, line_id):
    return carts.Cart.init_by_context(context).endpoint_update_item(line_id, context.body)


@app.route('/cart/{line_id}', methods=['DELETE'], cors=True)
@api_endpoint(app)
def remove_cart_item(context, line_id):
    return carts.Cart.init_by_context(context).endpoint_remove_item(line_id)


# CHECKOUT
@app.route('/checkout', methods=['POST'], content_types=['application/json', 'multipart/form-data'], cors=True)
@api_endpoint(app)
def create_checkout(context):
    return checkout.Checkout.init_by_context(context).endpoint_checkout(context)


# ORDERS
@app.route('/orders', methods=['GET'], cors=True)
@api_endpoint(app, roles=STAFF)
def get_orders(context):
    return orders.endpoint_get_orders(context)


@app.route('/orders/myorders', methods=['GET'], cors=True)
@api_endpoint(app)
def get_my_orders(context):
    return orders.endpoint_get_my_orders(context)


@app.route('/orders/{order_id}', methods=['GET'], cors=True)
@api_endpoint(app)
def get_order(context, order_id):
    return orders.Order.init_for_identity(order_id, context.identity).endpoint_get_order()


@app.route('/orders/{order_id}/status', methods=['PUT'], cors=True)
@api_endpoint(app, roles=STAFF)
def update_order_status(context, order_id):
    return orders.Order.init_by_id(order_id).endpoint_update_status(context)


@app.route('/orders/{order_id}/payment', methods=['PUT'], content_types=['application/json', 'multipart/form-data'],
           cors=True)
@api_endpoint(app, roles=STAFF)
def update_order_payment(context, order_id):
    return orders.Order.init_by_id(order_id).endpoint_update_payment(context)


@app.route('/orders/{order_id}/cancel', methods=['PUT'], cors=True)
@api_endpoint(app)
def cancel_order(context, order_id):
    return orders.Order.init_by_id(order_id).endpoint_cancel_order(context)


@app.route('/orders/{order_id}', methods=['DELETE'], cors=True)
@api_endpoint(app, roles=ADMIN)
def delete_order(context, order_id):
    return orders.Order.init_by_id(order_id).endpoint_delete_order()


# COUPONS
@app.route('/coupons', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_coupons(context):
    return coupons.endpoint_list_coupons(context)


@app.route('/coupons', methods=['POST'], cors=True)
@api_endpoint(app, roles=ADMIN)
def create_coupon(context):
    return coupons.Coupon.init_request_create(context).endpoint_create_coupon()


@app.route('/coupons/active', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_active_coupons(context):
    return coupons.endpoint_list_active_coupons(context)


@app.route('/coupons/validate', methods=['POST'], cors=True)
@api_endpoint(app)
def validate_coupon(context):
    cart_total = None if 'order_amount' in context.body else carts.Cart.init_by_context(context).total
    return coupons.endpoint_validate_coupon(context, cart_total=cart_total)


@app.route('/coupons/{code}', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_coupon(context, code):
    return coupons.Coupon.init_by_code(code).endpoint_get_coupon()


@app.route('/coupons/{code}', methods=['PUT'], cors=True)
@api_endpoint(app, roles=ADMIN)
def update_coupon(context, code):
    return coupons.Coupon.init_by_code(code).endpoint_update_coupon(context.body)


@app.route('/coupons/{code}', methods=['DELETE'], cors=True)
@api_endpoint(app, roles=ADMIN)
def delete_coupon(context, code):
    return coupons.Coupon.init_by_code(code).endpoint_delete_coupon()


@app.route('/coupons/{code}/apply', methods=['POST'], cors=True)
@api_endpoint(app)
def apply_coupon(context, code):
    utils_data.require_fields(context.body, 'order_id')
    order = orders.Order.init_for_identity(context.body['order_id'], context.identity)
    return order.endpoint_apply_coupon(context, code)


# EVENTS
@app.route('/events/public', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_public_events(context):
    return events.endpoint_list_public_events(context)


@app.route('/events', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_events(context):
    return events.endpoint_list_events(context)


@app.route('/events', methods=['POST'], cors=True)
@api_endpoint(app)
def create_event(context):
    return events.Event.init_request_create(context).endpoint_create_event()


@app.route('/events/myevents', methods=['GET'], cors=True)
@api_endpoint(app)
def get_my_events(context):
    return events.endpoint_list_my_events(context)


@app.route('/events/{event_id}', methods=['GET'], cors=True)
@api_endpoint(app)
def get_event(context, event_id):
    return events.Event.init_for_identity(event_id, context.identity).endpoint_get_event()


@app.route('/events/{event_id}', methods=['PUT'], cors=True)
@api_endpoint(app)
def update_event(context, event_id):
    return events.Event.init_for_identity(event_id, context.identity).endpoint_update_event(context)


@app.route('/events/{event_id}', methods=['DELETE'], cors=True)
@api_endpoint(app)
def delete_event(context, event_id):
    return events.Event.init_for_identity(event_id, context.identity).endpoint_delete_event()


@app.route('/events/{event_id}/status', methods=['PUT'], cors=True)
@api_endpoint(app, roles=ADMIN)
def update_event_status(context, event_id):
    return events.Event.init_by_id(event_id).endpoint_update_status(context.body)


# EVENT FLYERS
@app.route('/events/flyers', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_event_flyers(context):
    return event_flyers.endpoint_list_flyers(context)


@app.route('/events/flyers/{flyer_id}', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_event_flyer(context, flyer_id):
    return event_flyers.EventFlyer.init_active_by_id(flyer_id).endpoint_get_flyer()


@app.route('/events/flyers', methods=['POST'], content_types=['multipart/form-data', 'application/json'],
           cors=True)
@api_endpoint(app, roles=ADMIN)
def upload_event_flyer(context):
    return event_flyers.endpoint_upload_flyer(context)


@app.route('/events/flyers/{flyer_id}', methods=['PUT'], content_types=['application/json', 'multipart/form-data'],
           cors=True)
@api_endpoint(app, roles=ADMIN)
def update_event_flyer(context, flyer_id):
    return event_flyers.EventFlyer.init_by_id(flyer_id).endpoint_update_flyer(context)


@app.route('/events/flyers/{flyer_id}', methods=['DELETE'], cors=True)
@api_endpoint(app, roles=ADMIN)
def delete_event_flyer(context, flyer_id):
    return event_flyers.EventFlyer.init_by_id(flyer_id).endpoint_delete_flyer()


# REVIEWS
@app.route('/reviews/item/{menu_item_id}', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_item_reviews(context, menu_item_id):
    return reviews.endpoint_get_item_reviews(context, menu_item_id)


@app.route('/reviews/item/{menu_item_id}/rating', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_item_rating(context, menu_item_id):
    return reviews.endpoint_get_item_rating(context, menu_item_id)


@app.route('/reviews/my', methods=['GET'], cors=True)
@api_endpoint(app)
def get_my_reviews(context):
    return reviews.endpoint_get_my_reviews(context)


@app.route('/reviews', methods=['POST'], cors=True)
@api_endpoint(app)
def create_review(context):
    user = users.User.init_by_id(context.identity.user_id)
    return reviews.Review.init_request_create(context, user_name=user.first_name).endpoint_create_review()


@app.route('/reviews/{review_id}', methods=['PUT'], cors=True)
@api_endpoint(app)
def update_review(context, review_id):
    return reviews.Review.init_own(review_id, context.identity).endpoint_update_review(context.body)


@app.route('/reviews/{review_id}', methods=['DELETE'], cors=True)
@api_endpoint(app)
def delete_review(context, review_id):
    return reviews.Review.init_own(review_id, context.identity).endpoint_delete_review()


@app.route('/reviews/admin/all', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_all_reviews(context):
    return reviews.endpoint_list_all_reviews(context)


@app.route('/reviews/{review_id}/approve', methods=['PUT'], cors=True)
@api_endpoint(app, roles=ADMIN)
def approve_review(context, review_id):
    return reviews.Review.init_by_id(review_id).endpoint_approve_review()


@app.route('/reviews/admin/{review_id}', methods=['DELETE'], cors=True)
@api_endpoint(app, roles=ADMIN)
def delete_review_admin(context, review_id):
    return reviews.Review.init_by_id(review_id).endpoint_delete_review()


# PAYMENT METHODS
@app.route('/payment-methods', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_payment_methods(context):
    return payment_methods.endpoint_list_active_payment_methods(context)


@app.route('/payment-methods/admin', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_all_payment_methods(context):
    return payment_methods.endpoint_list_all_payment_methods(context)


@app.route('/payment-methods/admin', methods=['POST'], cors=True)
@api_endpoint(app, roles=ADMIN)
def create_payment_method(context):
    return payment_methods.PaymentMethod.init_request_create(context.body).endpoint_create_payment_method()


@app.route('/payment-methods/admin/{payment_method_id}', methods=['PUT'], cors=True)
@api_endpoint(app, roles=ADMIN)
def update_payment_method(context, payment_method_id):
    return payment_methods.PaymentMethod.init_by_id(payment_method_id).\
        endpoint_update_payment_method(context.body)


@app.route('/payment-methods/admin/{payment_method_id}', methods=['DELETE'], cors=True)
@api_endpoint(app, roles=ADMIN)
def delete_payment_method(context, payment_method_id):
    return payment_methods.PaymentMethod.init_by_id(payment_method_id).endpoint_delete_payment_method()


# HOME PAGE CONTENT
@app.route('/home-content', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_home_content(context):
    return home_content.endpoint_list_content(context)


@app.route('/home-content/{section}', methods=['GET'], cors=True)
@api_endpoint(app, authenticated=False)
def get_home_content_section(context, section):
    return home_content.HomePageContent.init_by_section(section).endpoint_get_content()


@app.route('/home-content', methods=['POST'], cors=True)
@api_endpoint(app, roles=ADMIN)
def upsert_home_content(context):
    return home_content.endpoint_upsert_content(context)


@app.route('/home-content/{section}', methods=['DELETE'], cors=True)
@api_endpoint(app, roles=ADMIN)
def delete_home_content(context, section):
    return home_content.HomePageContent.init_by_section(section).endpoint_delete_content()


# CONTACT INQUIRIES
@app.route('/contact', methods=['POST'], cors=True)
@api_endpoint(app, authenticated=False)
def submit_inquiry(context):
    return inquiries.Inquiry.init_request_create(context.body).endpoint_submit_inquiry()


@app.route('/contact', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_inquiries(context):
    return inquiries.endpoint_list_inquiries(context)


@app.route('/contact/{inquiry_id}', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_inquiry(context, inquiry_id):
    return inquiries.Inquiry.init_by_id(inquiry_id).endpoint_get_inquiry()


@app.route('/contact/{inquiry_id}', methods=['PUT'], cors=True)
@api_endpoint(app, roles=ADMIN)
def update_inquiry(context, inquiry_id):
    return inquiries.Inquiry.init_by_id(inquiry_id).endpoint_update_inquiry(context)


@app.route('/contact/{inquiry_id}', methods=['DELETE'], cors=True)
@api_endpoint(app, roles=ADMIN)
def delete_inquiry(context, inquiry_id):
    return inquiries.Inquiry.init_by_id(inquiry_id).endpoint_delete_inquiry()


# ADMIN
@app.route('/admin/stats', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_admin_stats(context):
    return admin.endpoint_get_stats(context)


@app.route('/admin/users', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_users(context):
    return users.endpoint_list_users(context)


@app.route('/admin/users', methods=['POST'], cors=True)
@api_endpoint(app, roles=ADMIN)
def create_user(context):
    return users.endpoint_create_user(context)


@app.route('/admin/users/{user_id}', methods=['GET'], cors=True)
@api_endpoint(app, roles=ADMIN)
def get_user(context, user_id):
    return users.User.init_by_id(user_id).endpoint_get_user()


@app.route('/admin/users/{user_id}', methods=['PUT'], cors=True)
@api_endpoint(app, roles=ADMIN)
def update_user(context, user_id):
    return users.User.init_by_id(user_id).endpoint_admin_update(context.body)


@app.route('/admin/users/{user_id}', methods=['DELETE'], cors=True)
@api_endpoint(app, roles=ADMIN)
def delete_user(context, user_id):
    return users.User.init_by_id(user_id).endpoint_delete_user(context)
