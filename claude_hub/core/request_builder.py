"""
Fluent builder for ChatRequest
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from .exceptions import ConfigurationError, InvalidRequestError
from .types import (
    ChatRequest,
    MessageParam,
    Role,
    SystemBlock,
    TextBlock,
    ToolChoice,
    ToolDefinition,
)

Content = Union[str, Sequence[Any]]


class ChatRequestBuilder:
    """
    Mutable configuration for one ChatRequest

    Setters return the builder so calls chain. ``build()`` validates and
    returns an immutable request; a builder can be built only once. A build that
    fails validation leaves the builder usable.

    Example:
        request = (
            ChatRequestBuilder()
            .system("You are terse.")
            .user("Hello")
            .max_tokens(256)
            .build()
        )
    """

    def __init__(
        self,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        top_p: Optional[float] = None,
        top_k: Optional[int] = None,
    ):
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._top_p = top_p
        self._top_k = top_k
        self._messages: List[Any] = []
        self._system: List[str] = []
        self._tools: List[Any] = []
        self._tool_choice: Optional[Any] = None
        self._stop_sequences: List[str] = []
        self._metadata: Optional[Dict[str, str]] = None
        self._built = False

    def model(self, model: Any) -> "ChatRequestBuilder":
        self._model = getattr(model, "value", model)
        return self

    def max_tokens(self, max_tokens: int) -> "ChatRequestBuilder":
        self._max_tokens = max_tokens
        return self

    def message(self, role: Union[Role, str], content: Content) -> "ChatRequestBuilder":
        """
        Append a message; a system message is folded into the system prompt
        """
        try:
            role = Role(role)
        except ValueError as e:
            raise InvalidRequestError(f"Unknown message role: {role!r}") from e
        if role == Role.SYSTEM:
            return self.system(_system_text(content))
        self._messages.append({"role": role, "content": _content(content)})
        return self

    def user(self, content: Content) -> "ChatRequestBuilder":
        return self.message(Role.USER, content)

    def assistant(self, content: Content) -> "ChatRequestBuilder":
        return self.message(Role.ASSISTANT, content)

    def messages(self, messages: Iterable[Any]) -> "ChatRequestBuilder":
        for message in messages:
            if isinstance(message, MessageParam):
                self._messages.append(message)
            elif isinstance(message, dict):
                self.message(message.get("role", Role.USER), message.get("content", ""))
            else:
                raise InvalidRequestError(f"Unsupported message type: {type(message).__name__}")
        return self

    def system(self, text: str) -> "ChatRequestBuilder":
        if not isinstance(text, str):
            raise InvalidRequestError("System prompt must be text")
        self._system.append(text)
        return self

    def tool(self, tool: Union[ToolDefinition, Dict[str, Any]]) -> "ChatRequestBuilder":
        self._tools.append(tool)
        return self

    def tools(self, tools: Iterable[Union[ToolDefinition, Dict[str, Any]]]) -> "ChatRequestBuilder":
        self._tools.extend(tools)
        return self

    def tool_choice(self, choice: Union[ToolChoice, Dict[str, Any], str], name: Optional[str] = None) -> "ChatRequestBuilder":
        if isinstance(choice, str):
            choice = {"type": choice, "name": name}
        self._tool_choice = choice
        return self

    def temperature(self, temperature: float) -> "ChatRequestBuilder":
        self._temperature = temperature
        return self

    def top_p(self, top_p: float) -> "ChatRequestBuilder":
        self._top_p = top_p
        return self

    def top_k(self, top_k: int) -> "ChatRequestBuilder":
        self._top_k = top_k
        return self

    def stop_sequence(self, sequence: str) -> "ChatRequestBuilder":
        self._stop_sequences.append(sequence)
        return self

    def stop_sequences(self, sequences: Iterable[str]) -> "ChatRequestBuilder":
        self._stop_sequences.extend(sequences)
        return self

    def metadata(self, metadata: Dict[str, str]) -> "ChatRequestBuilder":
        self._metadata = dict(metadata)
        return self

    def build(self) -> ChatRequest:
        """
        Validate and return the request

        Raises:
            ConfigurationError: If this builder was already built
            InvalidRequestError: If any parameter is invalid
        """
        if self._built:
            raise ConfigurationError("ChatRequestBuilder.build() can only be called once")
        if not self._messages:
            raise InvalidRequestError("A request needs at least one user or assistant message")
        if self._max_tokens is not None and (
            isinstance(self._max_tokens, bool) or not isinstance(self._max_tokens, int) or self._max_tokens <= 0
        ):
            raise InvalidRequestError(f"max_tokens must be a positive integer, got {self._max_tokens!r}")

        try:
            request = ChatRequest(
                model=self._model,
                max_tokens=self._max_tokens,
                messages=self._messages,
                system=[SystemBlock(text=text) for text in self._system] or None,
                tools=self._tools or None,
                tool_choice=self._tool_choice,
                temperature=self._temperature,
                top_p=self._top_p,
                top_k=self._top_k,
                stop_sequences=self._stop_sequences or None,
                metadata=self._metadata,
            )
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid chat request: {e}") from e
        self._built = True
        return request


def _content(content: Content) -> Any:
    if isinstance(content, str):
        return content
    return tuple(content)


def _system_text(content: Content) -> str:
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, TextBlock):
            parts.append(block.text)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
        else:
            raise InvalidRequestError("System messages may only contain text")
    return "".join(parts)
