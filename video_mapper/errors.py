"""Exception hierarchy for the video mapper."""


class VideoMapperError(Exception):
    """Base class for every error raised by this service."""


class MappingError(VideoMapperError):
    """A queue message could not be mapped; the message is skipped."""


class MissingCorrelationIdError(MappingError):
    def __init__(self):
        super().__init__("X-Request-Id not found in kafka message headers. Skipping message")


class InvalidPayloadError(MappingError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Video JSON couldn't be unmarshalled. Skipping invalid JSON: {detail}")


class MissingContentIdError(MappingError):
    def __init__(self, body: str):
        self.body = body
        super().__init__(f"Could not extract UUID from video message. Skipping invalid JSON: {body}")


class ProducerUnavailableError(VideoMapperError):
    """The outbound queue did not accept a message."""


class ProxyUnreachableError(VideoMapperError):
    """No queue proxy address was reachable, or one proxy failed a probe."""


class TopicAbsentError(ProxyUnreachableError):
    """The proxy answered but does not serve the expected topic."""


class ConfigurationError(VideoMapperError):
    """Startup configuration is unusable."""
