"""
Parsing of auto scaling notifications delivered to the reconcilers.

Notifications arrive either wrapped in an SNS envelope (fleet topic and the
lifecycle hook's function target) or as the bare message dict when a handler
is invoked directly, e.g. by the CLI replay command.
"""
import json
import logging
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from fleet_reconciler.errors import MalformedEventError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Keys that identify a bare (unwrapped) auto scaling message
_BARE_MESSAGE_KEYS = ("LifecycleTransition", "Event", "EC2InstanceId")


def extract_message(event: Optional[Dict[str, Any]]) -> Optional[str]:
    """Return the message body of a notification, or None when it is absent.

    SNS delivers one record per Lambda invocation; any extra records are
    logged and left unprocessed.
    """
    if not isinstance(event, dict):
        return None

    if "Records" in event:
        records = event["Records"]
        if not isinstance(records, list) or not records:
            return None
        if len(records) > 1:
            logger.warning(f"Received {len(records)} SNS records, only the first one is processed")
        record = records[0]
        if not isinstance(record, dict) or not isinstance(record.get("Sns"), dict):
            return None
        message = record["Sns"].get("Message")
        return message if message else None

    if any(key in event for key in _BARE_MESSAGE_KEYS):
        return json.dumps(event)

    return None


def parse_message(message: str, model: Type[M]) -> M:
    """Decode a JSON message into `model`.

    Raises:
        MalformedEventError: if the message is not JSON or fails validation
    """
    try:
        payload = json.loads(message)
    except (TypeError, ValueError) as e:
        raise MalformedEventError(f"Notification message is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedEventError(f"Notification message must be a JSON object, got {type(payload).__name__}")

    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedEventError(f"Notification message failed validation: {e}") from e


def parse_notification(event: Optional[Dict[str, Any]], model: Type[M]) -> M:
    """Extract and decode the notification carried by a Lambda event.

    Raises:
        MalformedEventError: if the event carries no message or it cannot be parsed
    """
    message = extract_message(event)
    if message is None:
        raise MalformedEventError("Unrecognized SNSEvent object received")

    parsed = parse_message(message, model)
    logger.info(f"Parsed {model.__name__}: {parsed.model_dump_json(by_alias=True, exclude_none=True)}")
    return parsed


def describe_event(event: Any) -> str:
    """Render an incoming event for the log, falling back to repr for non-JSON values."""
    try:
        return json.dumps(event, indent=4, default=str)
    except (TypeError, ValueError):
        return repr(event)
