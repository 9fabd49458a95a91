"""Transforms native video queue messages into canonical publication events."""
from datetime import datetime, timezone
from typing import Tuple
import uuid

import orjson
from pydantic import ValidationError

from ..errors import InvalidPayloadError, MissingContentIdError, MissingCorrelationIdError
from ..event_models import (
    CONTENT_URI_BASE,
    Message,
    NativeVideoContent,
    PublicationEvent,
    VideoPayload,
)

X_REQUEST_ID = "X-Request-Id"
MESSAGE_TIMESTAMP = "Message-Timestamp"
MESSAGE_TYPE = "cms-content-published"
ORIGIN_SYSTEM_ID = "http://cmdb.ft.com/systems/next-video-editor"


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2017-04-13T10:27:32.353Z."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_native_content(body: str) -> NativeVideoContent:
    """
    Parse a message body into native video content.

    Raises:
        InvalidPayloadError: body is not JSON, not an object, or a known field
            has the wrong JSON type (no string-to-number or number-to-bool
            coercion)
    """
    try:
        document = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise InvalidPayloadError(str(e)) from e
    if not isinstance(document, dict):
        raise InvalidPayloadError(f"expected a JSON object, got {type(document).__name__}")
    try:
        return NativeVideoContent.model_validate_json(body)
    except ValidationError as e:
        raise InvalidPayloadError(str(e)) from e


def map_payload(content: NativeVideoContent) -> VideoPayload:
    return VideoPayload(
        uuid=content.id,
        title=content.title,
        standfirst=content.standfirst,
        description=content.description,
        byline=content.byline,
        identifiers=content.identifiers or [],
        brands=content.brands or [],
        first_published_date=content.first_published_date,
        published_date=content.published_date,
        main_image=content.main_image,
        story_package=content.story_package,
        transcript=content.transcript,
        captions=content.captions or [],
        data_source=content.data_source or [],
        can_be_distributed=content.can_be_distributed,
        type=content.type,
        last_modified=content.last_modified,
        can_be_syndicated=content.can_be_syndicated,
    )


def build_headers(tid: str, last_modified: str) -> dict[str, str]:
    return {
        X_REQUEST_ID: tid,
        MESSAGE_TIMESTAMP: last_modified,
        "Message-Id": str(uuid.uuid4()),
        "Message-Type": MESSAGE_TYPE,
        "Content-Type": "application/json",
        "Origin-System-Id": ORIGIN_SYSTEM_ID,
    }


class VideoMapper:
    """
    Stateless mapper from native video messages to publication events.

    Safe to share between threads.
    """

    def transform_msg(self, message: Message) -> Tuple[Message, str]:
        """
        Map one inbound queue message.

        Args:
            message: Inbound message carrying native video JSON

        Returns:
            The outbound message and the video UUID

        Raises:
            MissingCorrelationIdError: X-Request-Id header missing or empty
            InvalidPayloadError: body could not be parsed
            MissingContentIdError: content has no id
        """
        tid = message.headers.get(X_REQUEST_ID)
        if not tid:
            raise MissingCorrelationIdError()

        last_modified = message.headers.get(MESSAGE_TIMESTAMP) or format_timestamp(datetime.now(timezone.utc))

        content = parse_native_content(message.body)
        if not content.id:
            raise MissingContentIdError(message.body)

        if content.deleted:
            payload = VideoPayload()
        else:
            payload = map_payload(content)

        event = PublicationEvent(
            content_uri=CONTENT_URI_BASE + content.id,
            payload=payload,
            last_modified=last_modified,
        )
        return Message(headers=build_headers(tid, last_modified), body=event.to_json()), content.id
