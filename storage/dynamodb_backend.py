"""DynamoDB key-value backend for the cache store."""
import logging
from typing import List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class DynamoDBBackend:
    """Stores serialized cache records in a DynamoDB table.

    Table layout: partition key ``cache_key`` (S), the JSON record in
    ``value`` and an epoch-seconds ``ttl`` attribute that DynamoDB's
    time-to-live feature can use to reap abandoned entries.
    """

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: Optional AWS region override
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBBackend for table: {table_name}")

    def get_item(self, key: str) -> Optional[str]:
        """
        Read one record.

        Args:
            key: Cache key

        Returns:
            Stored JSON text, or None if the key is absent
        """
        try:
            response = self.table.get_item(Key={'cache_key': key})
        except ClientError as e:
            logger.error(f"Error reading cache key {key}: {e}")
            raise

        item = response.get('Item')
        if not item:
            return None
        return item.get('value')

    def put_item(self, key: str, value: str, expires_at: Optional[int] = None) -> None:
        """
        Write one record, replacing any previous value.

        Args:
            key: Cache key
            value: Serialized JSON record
            expires_at: Unix timestamp after which the table may drop the item
        """
        item = {
            'cache_key': key,
            'value': value
        }
        if expires_at is not None:
            item['ttl'] = expires_at

        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            logger.error(f"Error writing cache key {key}: {e}")
            raise

    def delete_item(self, key: str) -> None:
        try:
            self.table.delete_item(Key={'cache_key': key})
        except ClientError as e:
            logger.error(f"Error deleting cache key {key}: {e}")
            raise

    def list_keys(self, prefix: str = '') -> List[str]:
        """
        List keys starting with a prefix using a paginated Scan.

        Args:
            prefix: Key prefix to match (empty matches every key)

        Returns:
            List of matching cache keys
        """
        scan_kwargs = {'ProjectionExpression': 'cache_key'}
        if prefix:
            scan_kwargs['FilterExpression'] = Attr('cache_key').begins_with(prefix)

        try:
            response = self.table.scan(**scan_kwargs)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **scan_kwargs
                )
                items.extend(response.get('Items', []))
        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

        return [item['cache_key'] for item in items]
