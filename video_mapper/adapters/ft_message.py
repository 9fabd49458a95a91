"""
Codec for the FT queue message envelope.

    FTMSG/1.0
    Message-Id: 1f6c0d2e-...
    X-Request-Id: tid_123123

    {"id": "..."}
"""
import re
from ..event_models import Message

MESSAGE_VERSION = "FTMSG/1.0"

_HEADER_LINE = re.compile(r"[\w-]*:[\w\-:/. ]*")


def encode(message: Message) -> str:
    lines = [MESSAGE_VERSION]
    for key in sorted(message.headers):
        lines.append(f"{key}: {message.headers[key]}")
    return "\n".join(lines) + "\n\n" + message.body


def decode(raw: str) -> Message:
    """Split a raw envelope into headers and body; CRLF and LF both work."""
    end = raw.find("\r\n\r\n")
    if end == -1:
        end = raw.find("\n\n")
    if end == -1:
        end = len(raw)

    headers = {}
    for line in _HEADER_LINE.findall(raw[:end]):
        key, _, value = line.partition(":")
        if key.strip():
            headers[key.strip()] = value.strip()
    return Message(headers=headers, body=raw[end:].strip())
