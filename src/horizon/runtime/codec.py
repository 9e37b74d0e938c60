"""Payload decode/encode for broadcast messages.

Wire format is UTF-8 JSON with no schema or version field. Decoding happens
in three steps (bytes -> text -> JSON value -> declared shape) and every
failure is raised as :class:`PayloadDecodeError`.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, Optional, TypeVar, Union

import orjson
from pydantic import BaseModel, TypeAdapter, ValidationError

from horizon.errors import PayloadDecodeError

T = TypeVar("T")

Parser = Callable[[Any], T]

_PREVIEW_LIMIT = 120


def _preview(payload: Union[bytes, bytearray, str]) -> str:
    if isinstance(payload, (bytes, bytearray)):
        text = bytes(payload).decode("utf-8", errors="replace")
    else:
        text = payload
    if len(text) > _PREVIEW_LIMIT:
        return text[:_PREVIEW_LIMIT] + "..."
    return text


class PayloadDecoder(Generic[T]):
    """Decode raw payloads into ``T``.

    ``shape`` is anything pydantic's ``TypeAdapter`` accepts (models,
    TypedDicts, dataclasses, ``dict[str, Any]`` ...). ``parser`` is a plain
    callable applied to the decoded JSON value. With neither, the JSON value
    is returned unchanged.
    """

    def __init__(self, shape: Any = None, *, parser: Optional[Parser[T]] = None) -> None:
        if shape is not None and parser is not None:
            raise ValueError("pass either shape or parser, not both")
        self._adapter: Optional[TypeAdapter[Any]] = TypeAdapter(shape) if shape is not None else None
        self._parser = parser

    def decode(self, payload: Union[bytes, bytearray, str], *, topic: Optional[str] = None) -> T:
        try:
            text = bytes(payload).decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        except UnicodeDecodeError as exc:
            raise PayloadDecodeError(
                f"payload is not valid UTF-8: {exc}", topic=topic, preview=_preview(payload)
            ) from exc

        try:
            value = orjson.loads(text)
        except orjson.JSONDecodeError as exc:
            raise PayloadDecodeError(
                f"payload is not valid JSON: {exc}", topic=topic, preview=_preview(text)
            ) from exc

        if self._adapter is not None:
            try:
                return self._adapter.validate_python(value)
            except ValidationError as exc:
                raise PayloadDecodeError(
                    f"payload does not match declared shape: {exc.error_count()} error(s)",
                    topic=topic,
                    preview=_preview(text),
                ) from exc

        if self._parser is not None:
            try:
                return self._parser(value)
            except Exception as exc:
                raise PayloadDecodeError(
                    f"parser rejected payload: {exc}", topic=topic, preview=_preview(text)
                ) from exc

        return value


def encode_payload(value: Any) -> bytes:
    """Serialize a pydantic model or JSON-compatible value to bytes.

    Raises:
        TypeError: If the value is not JSON serializable
    """
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json", by_alias=True)
    try:
        return orjson.dumps(value)
    except orjson.JSONEncodeError as exc:
        raise TypeError(f"payload is not JSON serializable: {exc}") from exc


__all__ = ["PayloadDecoder", "Parser", "encode_payload"]
