"""
Core wire type definitions for Claude Hub using Pydantic

Every model mirrors one object of the Messages API JSON schema. Models are
frozen once constructed; ``to_wire()`` produces the JSON-ready dict sent to
(or received from) the API.
"""

import json
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    NonNegativeInt,
    PlainSerializer,
    PlainValidator,
    PositiveInt,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_serializer,
    model_validator,
)

from .exceptions import InvalidRequestError, MalformedResponseError


class WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_serializer(mode="wrap")
    def _omit_unset_optionals(self, handler) -> Dict[str, Any]:
        data = handler(self)
        declared = type(self).model_fields
        return {k: v for k, v in data.items() if not (v is None and k in declared)}

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class StopReason(str, Enum):
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    TOOL_USE = "tool_use"
    PAUSE_TURN = "pause_turn"
    REFUSAL = "refusal"


def _coerce_stop_reason(value: Any) -> Union[StopReason, str]:
    # Unrecognised reasons are kept verbatim so newer API versions still decode
    if isinstance(value, StopReason):
        return value
    if not isinstance(value, str):
        raise ValueError(f"stop_reason must be a string, got {type(value).__name__}")
    try:
        return StopReason(value)
    except ValueError:
        return value


StopReasonValue = Annotated[
    Union[StopReason, str],
    PlainValidator(_coerce_stop_reason),
    PlainSerializer(lambda v: v.value if isinstance(v, StopReason) else v, return_type=str),
]


class Model(str, Enum):
    CLAUDE_3_HAIKU_20240307 = "claude-3-haiku-20240307"
    CLAUDE_3_SONNET_20240229 = "claude-3-sonnet-20240229"
    CLAUDE_3_OPUS_20240229 = "claude-3-opus-20240229"
    CLAUDE_3_5_HAIKU_20241022 = "claude-3-5-haiku-20241022"
    CLAUDE_3_5_SONNET_20241022 = "claude-3-5-sonnet-20241022"
    CLAUDE_3_7_SONNET_20250219 = "claude-3-7-sonnet-20250219"
    CLAUDE_SONNET_4_20250514 = "claude-sonnet-4-20250514"
    CLAUDE_OPUS_4_20250514 = "claude-opus-4-20250514"

    @property
    def context_window(self) -> int:
        return 200_000

    @classmethod
    def context_window_for(cls, model: str) -> Optional[int]:
        """Context window of a known model identifier, None for unknown ones"""
        try:
            return cls(model).context_window
        except ValueError:
            return None


class Usage(WireModel):
    input_tokens: NonNegativeInt = 0
    output_tokens: NonNegativeInt = 0
    cache_creation_input_tokens: Optional[NonNegativeInt] = None
    cache_read_input_tokens: Optional[NonNegativeInt] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ImageMediaType(str, Enum):
    JPEG = "image/jpeg"
    PNG = "image/png"
    GIF = "image/gif"
    WEBP = "image/webp"


class DocumentMediaType(str, Enum):
    PDF = "application/pdf"
    TEXT = "text/plain"


# ---- sources -----------------------------------------------------------------

class Base64ImageSource(WireModel):
    type: Literal["base64"] = "base64"
    media_type: ImageMediaType
    data: str


class UrlImageSource(WireModel):
    type: Literal["url"] = "url"
    url: str


class FileSource(WireModel):
    # Reference to a file uploaded through the Files API
    type: Literal["file"] = "file"
    file_id: str


ImageSource = Annotated[
    Union[Base64ImageSource, UrlImageSource, FileSource], Field(discriminator="type")
]


class Base64DocumentSource(WireModel):
    type: Literal["base64"] = "base64"
    media_type: DocumentMediaType = DocumentMediaType.PDF
    data: str


class PlainTextDocumentSource(WireModel):
    type: Literal["text"] = "text"
    media_type: Literal["text/plain"] = "text/plain"
    data: str


class UrlDocumentSource(WireModel):
    type: Literal["url"] = "url"
    url: str


DocumentSource = Annotated[
    Union[Base64DocumentSource, PlainTextDocumentSource, UrlDocumentSource, FileSource],
    Field(discriminator="type"),
]


# ---- content blocks ----------------------------------------------------------

class TextBlock(WireModel):
    type: Literal["text"] = "text"
    text: str
    citations: Optional[Tuple[Dict[str, Any], ...]] = None

    @classmethod
    def of(cls, text: str) -> "TextBlock":
        return cls(text=text)


class ImageBlock(WireModel):
    type: Literal["image"] = "image"
    source: ImageSource

    @classmethod
    def from_base64(cls, media_type: Union[ImageMediaType, str], data: str) -> "ImageBlock":
        return cls(source=Base64ImageSource(media_type=media_type, data=data))

    @classmethod
    def from_url(cls, url: str) -> "ImageBlock":
        return cls(source=UrlImageSource(url=url))


class DocumentBlock(WireModel):
    type: Literal["document"] = "document"
    source: DocumentSource
    title: Optional[str] = None
    context: Optional[str] = None

    @classmethod
    def from_base64(
        cls,
        media_type: Union[DocumentMediaType, str],
        data: str,
        title: Optional[str] = None,
    ) -> "DocumentBlock":
        return cls(source=Base64DocumentSource(media_type=media_type, data=data), title=title)

    @classmethod
    def from_url(cls, url: str, title: Optional[str] = None) -> "DocumentBlock":
        return cls(source=UrlDocumentSource(url=url), title=title)


class ToolUseBlock(WireModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(WireModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: Optional[Union[str, Tuple["ContentBlock", ...]]] = None
    is_error: Optional[bool] = None

    @classmethod
    def of(
        cls,
        tool_use_id: str,
        content: Union[str, Sequence[Any], None] = None,
        is_error: Optional[bool] = None,
    ) -> "ToolResultBlock":
        if content is not None and not isinstance(content, str):
            content = tuple(content)
        return cls(tool_use_id=tool_use_id, content=content, is_error=is_error)


class UnknownBlock(WireModel):
    """
    Any content block whose ``type`` this library does not recognise.

    All fields are kept as given so the block re-encodes unchanged.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str


KNOWN_BLOCK_TYPES = frozenset({"text", "image", "document", "tool_use", "tool_result"})


def _block_tag(value: Any) -> str:
    tag = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return tag if tag in KNOWN_BLOCK_TYPES else "unknown"


ContentBlock = Annotated[
    Union[
        Annotated[TextBlock, Tag("text")],
        Annotated[ImageBlock, Tag("image")],
        Annotated[DocumentBlock, Tag("document")],
        Annotated[ToolUseBlock, Tag("tool_use")],
        Annotated[ToolResultBlock, Tag("tool_result")],
        Annotated[UnknownBlock, Tag("unknown")],
    ],
    Discriminator(_block_tag),
]

ToolResultBlock.model_rebuild()

_content_block_adapter: TypeAdapter = TypeAdapter(ContentBlock)


def parse_content_block(data: Any) -> Any:
    """
    Decode one content block, falling back to UnknownBlock for unrecognised tags

    Raises:
        MalformedResponseError: If a recognised block is missing required fields
    """
    try:
        return _content_block_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedResponseError(f"Invalid content block: {e}", body=_dump(data)) from e


# ---- request side ------------------------------------------------------------

class MessageParam(WireModel):
    role: Role
    content: Tuple[ContentBlock, ...]

    @field_validator("content", mode="before")
    @classmethod
    def _text_shorthand(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ({"type": "text", "text": value},)
        return value


class SystemBlock(WireModel):
    type: Literal["text"] = "text"
    text: str


class ToolDefinition(WireModel):
    name: str = Field(pattern=r"^[a-zA-Z0-9_-]{1,64}$")
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolChoice(WireModel):
    type: Literal["auto", "any", "tool", "none"] = "auto"
    name: Optional[str] = None
    disable_parallel_tool_use: Optional[bool] = None

    @model_validator(mode="after")
    def _name_for_tool(self) -> "ToolChoice":
        if self.type == "tool" and not self.name:
            raise ValueError("tool_choice of type 'tool' requires a tool name")
        return self


class ChatRequest(WireModel):
    """
    Immutable request body for ``POST /v1/messages``.

    ``model`` and ``max_tokens`` may be left unset; the client fills them from
    its configuration when the request is dispatched.
    """

    model: Optional[str] = None
    max_tokens: Optional[PositiveInt] = None
    messages: Tuple[MessageParam, ...]
    system: Optional[Tuple[SystemBlock, ...]] = None
    tools: Optional[Tuple[ToolDefinition, ...]] = None
    tool_choice: Optional[ToolChoice] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    top_k: Optional[int] = Field(default=None, ge=1)
    stop_sequences: Optional[Tuple[str, ...]] = None
    metadata: Optional[Dict[str, str]] = None

    @field_validator("messages")
    @classmethod
    def _not_empty(cls, value: Tuple[MessageParam, ...]) -> Tuple[MessageParam, ...]:
        if not value:
            raise ValueError("at least one message is required")
        return value

    def to_payload(
        self,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        stream: bool = False,
    ) -> Dict[str, Any]:
        """
        Build the JSON body, using ``model``/``max_tokens`` as fallbacks

        Raises:
            InvalidRequestError: If no model or max_tokens is available
        """
        payload = self.to_wire()
        payload["model"] = self.model or model
        payload["max_tokens"] = self.max_tokens or max_tokens
        if not payload["model"]:
            raise InvalidRequestError("Request has no model and no default model is configured")
        if not payload["max_tokens"]:
            raise InvalidRequestError("Request has no max_tokens and no default is configured")
        if stream:
            payload["stream"] = True
        return payload


class CountTokensRequest(WireModel):
    model: Optional[str] = None
    messages: Tuple[MessageParam, ...]
    system: Optional[Tuple[SystemBlock, ...]] = None
    tools: Optional[Tuple[ToolDefinition, ...]] = None
    tool_choice: Optional[ToolChoice] = None

    @classmethod
    def from_chat_request(cls, request: ChatRequest) -> "CountTokensRequest":
        return cls(
            model=request.model,
            messages=request.messages,
            system=request.system,
            tools=request.tools,
            tool_choice=request.tool_choice,
        )

    def to_payload(self, model: Optional[str] = None) -> Dict[str, Any]:
        payload = self.to_wire()
        payload["model"] = self.model or model
        if not payload["model"]:
            raise InvalidRequestError("Request has no model and no default model is configured")
        return payload


class TokenCount(WireModel):
    input_tokens: NonNegativeInt


# ---- response side -----------------------------------------------------------

class Message(WireModel):
    id: str
    type: Literal["message"] = "message"
    role: Role = Role.ASSISTANT
    model: str
    content: Tuple[ContentBlock, ...] = ()
    stop_reason: Optional[StopReasonValue] = None
    stop_sequence: Optional[str] = None
    usage: Usage = Field(default_factory=Usage)

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    @property
    def tool_uses(self) -> List[ToolUseBlock]:
        return [block for block in self.content if isinstance(block, ToolUseBlock)]


def parse_json_body(body: Union[bytes, str]) -> Any:
    """
    Decode a JSON response body

    Raises:
        MalformedResponseError: If the body is not valid JSON
    """
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedResponseError(f"Response body is not valid JSON: {e}", body=_dump(body)) from e


def parse_model(model_cls: type, data: Any) -> Any:
    """
    Validate decoded JSON into a wire model

    Raises:
        MalformedResponseError: If the data does not match the model's schema
    """
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Response does not match {model_cls.__name__} schema: {e}",
            body=_dump(data),
        ) from e


def _dump(data: Any) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    if isinstance(data, str):
        return data
    try:
        return json.dumps(data, default=str)
    except (TypeError, ValueError):
        return repr(data)
