import functools
import time
from random import uniform
from typing import Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from chalicelib.constants import constants, substitute_keys
from chalicelib.utils import data
from chalicelib.utils import exceptions
from chalicelib.utils.boto_clients import aws_config_ddb
from chalicelib.utils.logger import logger, log_exception

# For safe db operations
RETRY_EXCEPTIONS = ('ProvisionedThroughputExceededException', 'ThrottlingException')
CONDITION_FAILED = 'ConditionalCheckFailedException'
need_return_capacity = ('put_item', 'get_item', 'update_item', 'delete_item')

_DB = None


def exp_db_backoff(func):
    """
        should be used for any atomic
        get/put item in the code
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f'{func.__name__}:: args={args}, kwargs={kwargs}')
        max_retries = 15
        timeout_seed = uniform(0.1, 0.99)

        if func.__name__ not in need_return_capacity:
            raise RuntimeError("This decorator only for DynamoDB methods")
        kwargs.update({'ReturnConsumedCapacity': 'TOTAL'})

        for retries in range(max_retries):
            try:
                result = func(*args, **kwargs)
                logger.info(f'{func.__name__}:: SUCCESS')
                return result
            except ClientError as e:
                if e.response['Error']['Code'] not in RETRY_EXCEPTIONS:
                    raise
                log_exception(e, msg=f'Got throttled while trying to {func.__name__}, retry={retries}')
                time.sleep(timeout_seed * 2 ** min(retries, 5) / 10)

        raise exceptions.NumberOfRetriesExceeded(
            f"MaxNumber={max_retries} of DB retries has exceeded"
        )

    return wrapper


def get_table(table_name: str):
    if constants.endpoint_url():
        table = boto3.resource('dynamodb', endpoint_url=constants.endpoint_url()).Table(table_name)
    else:
        table = boto3.resource('dynamodb', config=aws_config_ddb()).Table(table_name)

    table.put_item = exp_db_backoff(table.put_item)
    table.get_item = exp_db_backoff(table.get_item)
    table.update_item = exp_db_backoff(table.update_item)
    table.delete_item = exp_db_backoff(table.delete_item)
    return table


def get_gen_table():
    global _DB
    if _DB is None:
        _DB = get_table(constants.gen_table_name())
    return _DB


def reset_gen_table():
    global _DB
    _DB = None


def is_condition_failed(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') == CONDITION_FAILED


def put_db_record(item: dict, condition_expression=None, table=get_gen_table):
    kwargs = {'Item': item}
    if condition_expression is not None:
        kwargs['ConditionExpression'] = condition_expression
    table().put_item(**kwargs)


def delete_db_record(key: dict, table=get_gen_table) -> Optional[Dict]:
    """ Returns the removed record, None when there was nothing to remove """
    return table().delete_item(Key=key, ReturnValues='ALL_OLD').get('Attributes')


def update_db_record(key: dict, update_body: dict, allowed_attrs_to_update: list,
                     allowed_attrs_to_delete: list, condition_expression=None, table=get_gen_table):
    data.substitute_keys(dict_to_process=update_body, base_keys=substitute_keys.to_db)
    set_expr, expr_attr_values, remove_expr, expr_attr_names = generate_update_expression(
        update_body=update_body,
        allowed_attrs_to_update=allowed_attrs_to_update,
        allowed_attrs_to_delete=allowed_attrs_to_delete
    )
    update_item_dict = {"Key": key, "ReturnValues": "ALL_NEW", }
    if condition_expression is not None:
        update_item_dict['ConditionExpression'] = condition_expression

    expression = ' '.join(expr for expr in (set_expr, remove_expr) if expr)
    if not expression:
        return None

    update_item_dict.update({
        "UpdateExpression": expression,
        "ExpressionAttributeNames": expr_attr_names,
    })
    if expr_attr_values:
        update_item_dict["ExpressionAttributeValues"] = expr_attr_values
    return table().update_item(**update_item_dict).get('Attributes')


def generate_update_expression(update_body: dict, allowed_attrs_to_update: list, allowed_attrs_to_delete: list):
    """
    Generate expressions to update and delete attributes.
    if a key of update_body is empty - the attribute is deleted, else - attribute is updated
    """
    expr_attr_values = {}
    expr_attr_names = {}
    set_parts = []
    remove_parts = []
    for field in allowed_attrs_to_update:
        field_value = update_body.get(field, None)
        if field_value is None:
            continue
        expr_attr_names[f'#{field}'] = field
        # if field is in update_body but is equal to empty string, list etc. - delete field
        if field_value in ['', [], {}] and field in allowed_attrs_to_delete:
            remove_parts.append(f'#{field}')
        else:
            expr_attr_values[f':{field}'] = field_value
            set_parts.append(f'#{field}=:{field}')

    set_expr = f"SET {', '.join(set_parts)}" if set_parts else None
    remove_expr = f"REMOVE {', '.join(remove_parts)}" if remove_parts else None
    return set_expr, expr_attr_values, remove_expr, expr_attr_names


def increment_attribute(key: dict, attribute: str, amount, set_values: Optional[Dict] = None,
                        condition_expression=None, expr_attr_values: Optional[Dict] = None,
                        table=get_gen_table) -> Dict:
    """
    Atomic server-side increment (DynamoDB ADD), optionally setting other attributes in the same write.
    Creates the record if it does not exist yet.
    """
    names = {'#counter': attribute}
    values = {':amount': amount, **(expr_attr_values or {})}
    expression = 'ADD #counter :amount'
    if set_values:
        set_parts = []
        for field, value in set_values.items():
            names[f'#{field}'] = field
            values[f':{field}'] = value
            set_parts.append(f'#{field}=:{field}')
        expression = f"SET {', '.join(set_parts)} {expression}"
    kwargs = {
        'Key': key,
        'UpdateExpression': expression,
        'ExpressionAttributeNames': names,
        'ExpressionAttributeValues': values,
        'ReturnValues': 'ALL_NEW'
    }
    if condition_expression is not None:
        kwargs['ConditionExpression'] = condition_expression
    return table().update_item(**kwargs)['Attributes']


def conditional_update(key: dict, set_values: Dict, condition_expression, append_values: Optional[Dict] = None,
                       table=get_gen_table) -> Dict:
    """
    Writes set_values only if condition_expression still holds on the stored record.
    append_values are list attributes extended with list_append.
    Raises ClientError (ConditionalCheckFailedException) when the condition does not hold.
    """
    names, values, parts = {}, {}, []
    for field, value in set_values.items():
        names[f'#{field}'] = field
        values[f':{field}'] = value
        parts.append(f'#{field}=:{field}')
    for field, value in (append_values or {}).items():
        names[f'#{field}'] = field
        values[f':{field}'] = value
        values[':empty_list'] = []
        parts.append(f'#{field}=list_append(if_not_exists(#{field}, :empty_list), :{field})')
    return table().update_item(
        Key=key,
        UpdateExpression=f"SET {', '.join(parts)}",
        ConditionExpression=condition_expression,
        ExpressionAttributeNames=names,
        ExpressionAttributeValues=values,
        ReturnValues='ALL_NEW'
    )['Attributes']


def get_db_item(partkey, sortkey, table=get_gen_table):
    result = table().get_item(
        Key={
            'partkey': partkey,
            'sortkey': sortkey
        }
    )

    if 'Item' in result:
        return result['Item']
    else:
        logger.info(f"get_db_item ::: record partkey={partkey} sortkey={sortkey} not found")
        raise exceptions.RecordNotFound(f'record partkey={partkey} sortkey={sortkey} not found')


def query_items_paginated(
        key_condition_expression,
        filter_expression=None,
        projection_expression=None,
        table=get_gen_table,
        index_name=None,
        expr_attr_names=None,
        limit=None,
        start_key=None,
        scan_forward=True
) -> Tuple[List[Dict], Optional[Dict]]:
    kwargs = {'KeyConditionExpression': key_condition_expression, 'ScanIndexForward': scan_forward}
    if filter_expression:
        kwargs.update({'FilterExpression': filter_expression})

    if projection_expression:
        kwargs.update({'ProjectionExpression': projection_expression})

    if expr_attr_names:
        kwargs.update({'ExpressionAttributeNames': expr_attr_names})

    if limit:
        kwargs.update({'Limit': int(limit)})

    if index_name:
        kwargs.update({'IndexName': index_name})

    if start_key:
        kwargs.update({'ExclusiveStartKey': start_key})

    resp = table().query(**kwargs)
    return resp['Items'], resp.get('LastEvaluatedKey')


def query_items_paged(key_condition_expression, filter_expression=None, projection_expression=None,
                      table=get_gen_table, index_name=None, expr_attr_names=None) -> List[Dict]:
    """ This method shall be used whenever you think the query will
        return more than 1mb of data at once"""
    all_items = []
    items, last_evaluated_key = query_items_paginated(
        key_condition_expression,
        filter_expression=filter_expression,
        projection_expression=projection_expression,
        table=table,
        index_name=index_name,
        expr_attr_names=expr_attr_names
    )
    all_items.extend(items)

    while last_evaluated_key is not None:
        items, last_evaluated_key = query_items_paginated(
            key_condition_expression,
            filter_expression=filter_expression,
            projection_expression=projection_expression,
            table=table,
            index_name=index_name,
            expr_attr_names=expr_attr_names,
            start_key=last_evaluated_key
        )
        all_items.extend(items)

    return all_items


def query_partition(partkey: str, filter_expression=None, table=get_gen_table) -> List[Dict]:
    return query_items_paged(Key('partkey').eq(partkey), filter_expression=filter_expression, table=table)


def delete_partition(partkey: str, table=get_gen_table) -> int:
    records = query_items_paged(Key('partkey').eq(partkey), projection_expression='partkey, sortkey', table=table)
    with table().batch_writer() as batch:
        for record in records:
            batch.delete_item(Key={'partkey': record['partkey'], 'sortkey': record['sortkey']})
    logger.info(f'delete_partition ::: {partkey=}, {len(records)} records deleted')
    return len(records)
