def format_order_items(items) -> str:
    return '\n'.join(
        f"  - {item.get('quantity')} x {item.get('name')} @ {item.get('price')}" for item in items or []
    )


def get_new_order_notification_message(order_record):
    return f"""
        Order details: \n
        ID: {order_record.get('id_')}\n
        Items:\n{format_order_items(order_record.get('items'))}\n
        Subtotal: {order_record.get('subtotal')}\n
        Discount: {order_record.get('discount')}\n
        Tax: {order_record.get('tax')}\n
        Delivery fee: {order_record.get('delivery_fee')}\n
        Total: {order_record.get('total_amount')}\n
        Order type: {order_record.get('order_type')}\n
        Address: {order_record.get('delivery_address')}\n
        Payment method: {order_record.get('payment_method')}\n
        User ID: {order_record.get('user_id')}
    """


def get_order_status_message(order_record):
    return f"""
        Your order {order_record.get('id_')} is now {order_record.get('status')}.\n
        Payment status: {order_record.get('payment_status')}\n
        Total: {order_record.get('total_amount')}
    """
