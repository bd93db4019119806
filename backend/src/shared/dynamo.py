"""
DynamoDB implementation of the document store.
"""
import json
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import boto3
from boto3.dynamodb.conditions import Key, Attr
from botocore.exceptions import ClientError

from .config import config
from .errors import StoreError, DocumentNotFoundError
from .logging import logger
from .store import DocumentStore, Filter, EQ

# Equality filters on these fields are served by a GSI instead of a scan
INDEXED_FIELDS = {
    'status': config.STATUS_INDEX,
    'locked_by': config.LOCKED_BY_INDEX,
}


def to_dynamo(value: Any) -> Any:
    """DynamoDB rejects floats; round-trip through JSON to get Decimals."""
    return json.loads(json.dumps(value, default=str), parse_float=Decimal)


class DynamoDocumentStore(DocumentStore):
    """
    Document store backed by one DynamoDB table per collection.

    Every table is keyed on `id`. Fields written as None are removed rather
    than stored as NULL, so the sparse `locked_by` index stays valid.
    """

    def __init__(self, resource=None, key_name: str = 'id'):
        self.resource = resource or boto3.resource('dynamodb', region_name=config.AWS_REGION)
        self.key_name = key_name

    def _table(self, collection: str):
        return self.resource.Table(config.table_for(collection))

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Query DynamoDB table or index.

        The first equality filter on an indexed field becomes the key
        condition; the rest become a FilterExpression. Without an indexed
        filter the table is scanned. `order_by` is accepted for interface
        parity only: the index partition already yields a stable order.
        """
        table = self._table(collection)

        key_condition = None
        index_name = None
        filter_expression = None
        for field, op, value in filters:
            if key_condition is None and op == EQ and field in INDEXED_FIELDS:
                key_condition = Key(field).eq(value)
                index_name = INDEXED_FIELDS[field]
                continue
            condition = Attr(field).eq(value) if op == EQ else Attr(field).ne(value)
            filter_expression = condition if filter_expression is None else filter_expression & condition

        params = {}
        if index_name:
            params['IndexName'] = index_name
            params['KeyConditionExpression'] = key_condition
        if filter_expression is not None:
            params['FilterExpression'] = filter_expression
        elif limit:
            # Limit applies before filtering in DynamoDB, so only push it down unfiltered
            params['Limit'] = limit

        operation = table.query if index_name else table.scan
        items = []
        try:
            while True:
                response = operation(**params)
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key or (limit and len(items) >= limit):
                    break
                params['ExclusiveStartKey'] = last_key
        except ClientError as e:
            logger.error(f"Error querying {collection}: {e}")
            raise StoreError(f"Query on {collection} failed") from e

        return items[:limit] if limit else items

    def get_by_id(self, collection: str, doc_id: str) -> Dict[str, Any]:
        """Get a single item from DynamoDB."""
        try:
            response = self._table(collection).get_item(Key={self.key_name: doc_id})
        except ClientError as e:
            logger.error(f"Error getting {doc_id} from {collection}: {e}")
            raise StoreError(f"Read of {collection}/{doc_id} failed") from e

        item = response.get('Item')
        if item is None:
            raise DocumentNotFoundError(f"{collection}/{doc_id} not found")
        return item

    def update_fields(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Update an item in DynamoDB. The item must already exist."""
        set_parts = []
        remove_parts = []
        names = {'#pk': self.key_name}
        values = {}

        for idx, (field, value) in enumerate(fields.items()):
            name = f"#f{idx}"
            names[name] = field
            if value is None:
                remove_parts.append(name)
            else:
                values[f":v{idx}"] = to_dynamo(value)
                set_parts.append(f"{name} = :v{idx}")

        expression = []
        if set_parts:
            expression.append('SET ' + ', '.join(set_parts))
        if remove_parts:
            expression.append('REMOVE ' + ', '.join(remove_parts))

        params = {
            'Key': {self.key_name: doc_id},
            'UpdateExpression': ' '.join(expression),
            'ConditionExpression': 'attribute_exists(#pk)',
            'ExpressionAttributeNames': names
        }
        if values:
            params['ExpressionAttributeValues'] = values

        try:
            self._table(collection).update_item(**params)
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise DocumentNotFoundError(f"{collection}/{doc_id} not found") from e
            logger.error(f"Error updating {doc_id} in {collection}: {e}")
            raise StoreError(f"Update of {collection}/{doc_id} failed") from e

    def create_document(self, collection: str, fields: Dict[str, Any]) -> str:
        doc_id = str(uuid.uuid4())
        item = {k: v for k, v in to_dynamo(fields).items() if v is not None}
        item[self.key_name] = doc_id

        try:
            self._table(collection).put_item(
                Item=item,
                ConditionExpression='attribute_not_exists(#pk)',
                ExpressionAttributeNames={'#pk': self.key_name}
            )
        except ClientError as e:
            logger.error(f"Error creating document in {collection}: {e}")
            raise StoreError(f"Create in {collection} failed") from e

        logger.info(f"Created {collection}/{doc_id}")
        return doc_id

    def delete_document(self, collection: str, doc_id: str) -> None:
        try:
            self._table(collection).delete_item(Key={self.key_name: doc_id})
        except ClientError as e:
            logger.error(f"Error deleting {doc_id} from {collection}: {e}")
            raise StoreError(f"Delete of {collection}/{doc_id} failed") from e

    def increment_field(self, collection: str, doc_id: str, field_path: str, delta: int = 1) -> None:
        """
        Atomically increment a (possibly nested) counter.

        ADD only works on top-level attributes, so counters use
        `SET path = if_not_exists(path, 0) + delta`. Parent maps are created
        first, one level per request, since a single expression cannot both
        create a map and write inside it.
        """
        table = self._table(collection)
        parts = field_path.split('.')
        names = {f"#p{idx}": part for idx, part in enumerate(parts)}
        placeholders = list(names)

        try:
            for depth in range(1, len(parts)):
                parent = '.'.join(placeholders[:depth])
                table.update_item(
                    Key={self.key_name: doc_id},
                    UpdateExpression=f"SET {parent} = if_not_exists({parent}, :empty)",
                    ExpressionAttributeNames={p: names[p] for p in placeholders[:depth]},
                    ExpressionAttributeValues={':empty': {}}
                )

            path = '.'.join(placeholders)
            table.update_item(
                Key={self.key_name: doc_id},
                UpdateExpression=f"SET {path} = if_not_exists({path}, :zero) + :delta",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues={':zero': 0, ':delta': delta}
            )
        except ClientError as e:
            logger.error(f"Error incrementing {field_path} on {collection}/{doc_id}: {e}")
            raise StoreError(f"Increment of {field_path} failed") from e
