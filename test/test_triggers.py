from decimal import Decimal

import pytest
from boto3.dynamodb.types import TypeSerializer
from chalice.app import DynamoDBEvent

from chalicelib import triggers
from chalicelib.utils import notifications

serializer = TypeSerializer()

order_record = {
    'partkey': 'orders',
    'sortkey': '20300101120000-abcdef12',
    'record_type': 'order',
    'id_': '20300101120000-abcdef12',
    'user_id': 'user-1',
    'user_email': 'customer@cafe.example.com',
    'items': [{'menu_item_id': 'latte', 'name': 'Latte', 'quantity': Decimal(2), 'price': Decimal('4.00')}],
    'subtotal': Decimal('8.00'),
    'tax': Decimal('0.64'),
    'total_amount': Decimal('8.64'),
    'status': 'pending',
    'payment_status': 'pending'
}


def stream_record(event_name, new_image=None, old_image=None, event_id='1'):
    dynamodb = {
        'ApproximateCreationDateTime': 1893499200,
        'Keys': {'partkey': {'S': 'orders'}, 'sortkey': {'S': order_record['sortkey']}},
        'SequenceNumber': event_id,
        'SizeBytes': 100,
        'StreamViewType': 'NEW_AND_OLD_IMAGES'
    }
    if new_image is not None:
        dynamodb['NewImage'] = {key: serializer.serialize(value) for key, value in new_image.items()}
    if old_image is not None:
        dynamodb['OldImage'] = {key: serializer.serialize(value) for key, value in old_image.items()}
    return {
        'eventID': event_id,
        'eventName': event_name,
        'eventSource': 'aws:dynamodb',
        'eventSourceARN': 'arn:aws:dynamodb:us-east-1:000000000000:table/cafe-ordering-gen-test/stream/1',
        'awsRegion': 'us-east-1',
        'dynamodb': dynamodb
    }


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def fake_send_email_ses(emails_to, email_from, subject, message):
        sent.append({'to': emails_to, 'from': email_from, 'subject': subject, 'message': message})
        return 'message-id'

    monkeypatch.setattr(notifications, 'send_email_ses', fake_send_email_ses)
    return sent


def test_deserialize_ddb_rec():
    image = {key: serializer.serialize(value) for key, value in order_record.items()}

    assert triggers.deserialize_ddb_rec(image) == order_record
    assert triggers.deserialize_ddb_rec() == {}


def test_new_order_notifies_customer_and_kitchen(sent_emails):
    triggers.db_gen_table_stream_trigger(DynamoDBEvent({'Records': [stream_record('INSERT', order_record)]}, None))

    assert len(sent_emails) == 1
    assert sent_emails[0]['to'] == ['customer@cafe.example.com', 'kitchen@cafe.example.com']
    assert sent_emails[0]['from'] == 'orders@cafe.example.com'
    assert order_record['id_'] in sent_emails[0]['subject']
    assert '2 x Latte @ 4.00' in sent_emails[0]['message']


def test_status_change_notifies_customer(sent_emails):
    confirmed = {**order_record, 'status': 'confirmed'}
    payment_only = {**order_record, 'payment_status': 'paid'}
    event = DynamoDBEvent({'Records': [
        stream_record('MODIFY', confirmed, order_record, event_id='1'),
        stream_record('MODIFY', payment_only, order_record, event_id='2')
    ]}, None)

    triggers.db_gen_table_stream_trigger(event)

    assert len(sent_emails) == 1
    assert sent_emails[0]['to'] == ['customer@cafe.example.com']
    assert sent_emails[0]['subject'] == f"Your order {order_record['id_']} is confirmed"


def test_other_records_are_ignored(sent_emails):
    cart_line = {'partkey': 'carts_user-1', 'sortkey': 'latte', 'record_type': 'cart_item',
                 'quantity': Decimal(1)}
    removed_order = stream_record('REMOVE', old_image=order_record)

    triggers.db_gen_table_stream_trigger(DynamoDBEvent({'Records': [stream_record('INSERT', cart_line),
                                                                   removed_order]}, None))

    assert sent_emails == []


def test_failed_record_does_not_stop_batch(monkeypatch):
    sent = []

    def flaky_send_email_ses(emails_to, email_from, subject, message):
        if not sent:
            sent.append(None)
            raise RuntimeError('ses is down')
        sent.append(subject)

    monkeypatch.setattr(notifications, 'send_email_ses', flaky_send_email_ses)
    event = DynamoDBEvent({'Records': [stream_record('INSERT', order_record, event_id='1'),
                                       stream_record('INSERT', order_record, event_id='2')]}, None)

    triggers.db_gen_table_stream_trigger(event)

    assert len(sent) == 2


@pytest.mark.local_db_test
def test_send_email_through_ses(aws):
    message_id = notifications.send_email_ses(['customer@cafe.example.com', None], 'orders@cafe.example.com',
                                              'Hello', 'Your latte is ready')

    assert message_id
    assert notifications.send_email_ses([None], 'orders@cafe.example.com', 'Hello', 'Nobody') is None
