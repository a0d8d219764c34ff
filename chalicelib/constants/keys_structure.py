users_pk = 'users'
users_sk = '{user_id}'

menu_items_pk = 'menu_items'
menu_items_sk = '{menu_item_id}'

carts_pk = 'carts_{user_id}'
carts_sk = '{line_id}'

orders_pk = 'orders'
orders_sk = '{order_id}'

coupons_pk = 'coupons'
coupons_sk = '{code}'

coupon_redemptions_pk = 'coupon_redemptions_{code}'
coupon_redemptions_sk = '{order_id}'

events_pk = 'events'
events_sk = '{event_id}'

reviews_pk = 'reviews'
reviews_sk = '{review_id}'

payment_methods_pk = 'payment_methods'
payment_methods_sk = '{payment_method_id}'

home_content_pk = 'home_content'
home_content_sk = '{section}'

event_flyers_pk = 'event_flyers'
event_flyers_sk = '{flyer_id}'

inquiries_pk = 'inquiries'
inquiries_sk = '{inquiry_id}'

# sparse index over order records only
user_orders_index = 'user_orders-index'
user_orders_pk = 'orders_user_{user_id}'
