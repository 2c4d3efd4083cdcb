"""AWS Lambda handler proxying Hebcal calendar data."""
import asyncio
import json
import logging
import os
import time
from typing import Any, Dict, Optional

from client.zmanim_client import ZmanimClient
from gateway.hebcal_gateway import HebcalGateway
from processor.calendar_normalizer import CalendarNormalizer
from processor.errors import (
    GatewayError,
    NoLocationFoundError,
    ZmanimError,
    classify_error,
)
from processor.location_resolver import LocationResolver
from storage.cache_store import CacheStore
from storage.dynamodb_backend import DynamoDBBackend
from storage.memory_backend import MemoryBackend


ACTIONS = ('search', 'shabbat', 'zmanim', 'coords')

# Reused across warm invocations, keyed by configuration
_clients: Dict[tuple, ZmanimClient] = {}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_client(
    table_name: Optional[str],
    timeout_seconds: int,
    base_url: Optional[str],
    supported_country: str
) -> ZmanimClient:
    """Wire the gateway, resolver, normalizer and cache into a client."""
    gateway = HebcalGateway(base_url=base_url, timeout=timeout_seconds)
    backend = DynamoDBBackend(table_name) if table_name else MemoryBackend()
    return ZmanimClient(
        gateway=gateway,
        cache=CacheStore(backend),
        normalizer=CalendarNormalizer(),
        resolver=LocationResolver(gateway, supported_country=supported_country)
    )


def get_client(
    table_name: Optional[str],
    timeout_seconds: int,
    base_url: Optional[str],
    supported_country: str
) -> ZmanimClient:
    """
    Return the client for this configuration, building it on first use.

    Clients outlive a single invocation so a warm container keeps its
    in-memory cache when no table name is configured.
    """
    config = (table_name, timeout_seconds, base_url, supported_country)
    if config not in _clients:
        _clients[config] = build_client(*config)
    return _clients[config]


def resolve_action(event: Dict[str, Any]) -> Optional[str]:
    """Read the requested action from the event or its request path."""
    action = event.get('action')
    if not action:
        path = event.get('rawPath') or event.get('path') or ''
        action = path.rstrip('/').rsplit('/', 1)[-1]
    return action if action in ACTIONS else None


def _response(status_code: int, body: Any) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body)
    }


def _is_true(value: Optional[str]) -> bool:
    return str(value).lower() in ('1', 'true', 'yes', 'on')


async def dispatch(client: ZmanimClient, action: str, params: Dict[str, str]) -> Dict[str, Any]:
    """
    Run one facade operation for the given action.

    Returns:
        Response dict with statusCode and JSON body
    """
    if action == 'search':
        query = params.get('q')
        if not query:
            return _response(400, {'error': 'Query parameter is required'})
        locations = await client.search_location(query)
        return _response(200, [location.to_dict() for location in locations])

    if action == 'coords':
        lat = params.get('lat')
        lng = params.get('lng')
        if not lat or not lng:
            return _response(400, {'error': 'Latitude and longitude parameters are required'})
        try:
            latitude, longitude = float(lat), float(lng)
        except ValueError:
            return _response(400, {'error': 'Latitude and longitude must be numbers'})
        location_id = await client.resolve_from_coordinates(latitude, longitude)
        return _response(200, {'geonameid': location_id})

    location_id = params.get('geonameid')
    postal_code = params.get('zip')
    if not location_id and not postal_code:
        return _response(400, {'error': 'Geonameid or zip parameter is required'})
    is_postal_code = bool(postal_code) or _is_true(params.get('isZipCode'))

    if action == 'shabbat':
        snapshot = await client.get_shabbat_times(
            location_id or postal_code,
            display_name=params.get('name'),
            is_postal_code=is_postal_code,
            postal_code=postal_code
        )
    else:
        snapshot = await client.get_daily_times(
            location_id or postal_code,
            date=params.get('date'),
            is_postal_code=is_postal_code,
            postal_code=postal_code
        )
    return _response(200, snapshot.to_dict())


def _error_status(error: ZmanimError) -> int:
    cause = error.__cause__ if error.__cause__ is not None else error
    if isinstance(error, NoLocationFoundError):
        return 404
    if isinstance(cause, GatewayError) and cause.status is not None:
        return cause.status
    return 500


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler serving search, shabbat, zmanim and coords requests.

    Args:
        event: API Gateway proxy event or {"action": ..., "params": ...}
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    base_url = os.environ.get('HEBCAL_BASE_URL')
    supported_country = os.environ.get('SUPPORTED_COUNTRY', 'US')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    action = resolve_action(event)
    params = event.get('params') or event.get('queryStringParameters') or {}
    logger.info(
        "Lambda execution started",
        extra={'action': action, 'table_name': table_name}
    )

    if action is None:
        return _response(404, {'error': 'Unknown action'})

    try:
        client = get_client(table_name, timeout_seconds, base_url, supported_country)
        response = asyncio.run(dispatch(client, action, params))
    except ZmanimError as e:
        app_error = classify_error(e, action)
        duration = time.time() - start_time
        logger.error(
            f"Request failed: {str(e)}",
            extra={
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            },
            exc_info=True
        )
        return _response(_error_status(e), {
            'error': app_error.message,
            'error_type': app_error.type,
            'retryable': app_error.retryable
        })
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _response(500, {
            'error': 'Internal server error',
            'error_type': type(e).__name__
        })

    duration = time.time() - start_time
    logger.info(
        "Lambda execution completed",
        extra={
            'action': action,
            'status_code': response['statusCode'],
            'duration_seconds': round(duration, 2)
        }
    )
    return response
