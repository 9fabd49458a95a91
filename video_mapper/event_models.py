"""Queue message and video content models.

Native content is parsed tolerantly but strictly typed: every field is
optional and unknown fields are accepted, yet a known field of the wrong JSON
type is rejected rather than coerced. The canonical side is written by
explicit encoders so the key order of the serialized envelope never depends
on model layout.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional
import orjson

CONTENT_URI_BASE = "http://next-video-mapper.svc.ft.com/video/model/"

# HTML-safe escaping as Go's encoding/json writes it
_HTML_ESCAPES = str.maketrans({
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
})


class Message(BaseModel):
    """A queue message: string headers plus a raw body."""
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""


class _NativeModel(BaseModel):
    # "yes" must never become deleted=True, nor "1920" a width
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True)


class Identifier(_NativeModel):
    authority: Optional[str] = None
    identifier_value: Optional[str] = None


class Brand(_NativeModel):
    id: Optional[str] = None


class Caption(_NativeModel):
    url: Optional[str] = None
    media_type: Optional[str] = None


class DataSource(_NativeModel):
    binary_url: Optional[str] = None
    pixel_width: Optional[float] = None
    pixel_height: Optional[float] = None
    media_type: Optional[str] = None
    duration: Optional[float] = None
    video_codec: Optional[str] = None
    audio_codec: Optional[str] = None


class NativeVideoContent(_NativeModel):
    """Video as published by the video editor."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, strict=True, extra="allow")

    id: Optional[str] = None
    title: Optional[str] = None
    standfirst: Optional[str] = None
    description: Optional[str] = None
    byline: Optional[str] = None
    identifiers: Optional[List[Identifier]] = None
    brands: Optional[List[Brand]] = None
    first_published_date: Optional[str] = None
    published_date: Optional[str] = None
    main_image: Optional[str] = None
    story_package: Optional[str] = None
    transcript: Optional[str] = None
    captions: Optional[List[Caption]] = None
    data_source: Optional[List[DataSource]] = None
    can_be_distributed: Optional[str] = None
    type: Optional[str] = None
    last_modified: Optional[str] = None
    can_be_syndicated: Optional[str] = None
    deleted: Optional[bool] = None


class VideoPayload(BaseModel):
    """Canonical video payload. Unset fields are left out when encoded."""
    uuid: Optional[str] = None
    title: Optional[str] = None
    standfirst: Optional[str] = None
    description: Optional[str] = None
    byline: Optional[str] = None
    identifiers: List[Identifier] = Field(default_factory=list)
    brands: List[Brand] = Field(default_factory=list)
    first_published_date: Optional[str] = None
    published_date: Optional[str] = None
    main_image: Optional[str] = None
    story_package: Optional[str] = None
    transcript: Optional[str] = None
    captions: List[Caption] = Field(default_factory=list)
    data_source: List[DataSource] = Field(default_factory=list)
    can_be_distributed: Optional[str] = None
    type: Optional[str] = None
    last_modified: Optional[str] = None
    can_be_syndicated: Optional[str] = None

    def encode(self) -> Dict[str, Any]:
        return _compact({
            "uuid": self.uuid,
            "title": self.title,
            "standfirst": self.standfirst,
            "description": self.description,
            "byline": self.byline,
            "identifiers": [
                {"authority": i.authority or "", "identifierValue": i.identifier_value or ""}
                for i in self.identifiers
            ],
            "brands": [{"id": b.id or ""} for b in self.brands],
            "firstPublishedDate": self.first_published_date,
            "publishedDate": self.published_date,
            "mainImage": self.main_image,
            "storyPackage": self.story_package,
            "transcript": self.transcript,
            "captions": [{"url": c.url or "", "mediaType": c.media_type or ""} for c in self.captions],
            "dataSource": [_encode_data_source(ds) for ds in self.data_source],
            "canBeDistributed": self.can_be_distributed,
            "type": self.type,
            "lastModified": self.last_modified,
            "canBeSyndicated": self.can_be_syndicated,
        })


class PublicationEvent(BaseModel):
    content_uri: str
    payload: VideoPayload = Field(default_factory=VideoPayload)
    last_modified: str

    def to_json(self) -> str:
        """Serialize as contentUri, payload, lastModified, in that order."""
        return orjson.dumps({
            "contentUri": self.content_uri,
            "payload": self.payload.encode(),
            "lastModified": self.last_modified,
        }).decode("utf-8").translate(_HTML_ESCAPES)


def _encode_data_source(ds: DataSource) -> Dict[str, Any]:
    return _compact({
        "binaryUrl": ds.binary_url,
        "pixelWidth": _number(ds.pixel_width),
        "pixelHeight": _number(ds.pixel_height),
        "mediaType": ds.media_type,
        "duration": _number(ds.duration),
        "videoCodec": ds.video_codec,
        "audioCodec": ds.audio_codec,
    })


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    # 0 and 0.0 are real values and must survive
    return {k: v for k, v in values.items() if v is not None and v != "" and v != []}


def _number(value: Optional[float]):
    """Write integral floats without a fractional part (1920, not 1920.0)."""
    if value is not None and float(value).is_integer() and abs(value) < 2**53:
        return int(value)
    return value
