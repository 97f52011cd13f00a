"""
File handling utilities for Claude Hub

Helpers that turn local files, raw bytes and URLs into image and document
content blocks.
"""

import base64
import logging
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

import requests

from ..core.exceptions import FileHandlingError
from ..core.types import (
    DocumentBlock,
    DocumentMediaType,
    ImageBlock,
    ImageMediaType,
    PlainTextDocumentSource,
)

# Set up logger
logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    "jpg": ImageMediaType.JPEG,
    "jpeg": ImageMediaType.JPEG,
    "png": ImageMediaType.PNG,
    "gif": ImageMediaType.GIF,
    "webp": ImageMediaType.WEBP,
}

DOCUMENT_EXTENSIONS = {
    "pdf": DocumentMediaType.PDF,
    "txt": DocumentMediaType.TEXT,
}

DOWNLOAD_TIMEOUT = 30.0  # seconds

PathLike = Union[str, Path]


def _extension(path: PathLike) -> str:
    suffix = Path(path).suffix
    if not suffix:
        raise FileHandlingError(f"Unable to determine file extension of '{path}'")
    return suffix[1:].lower()


def detect_image_media_type(path: PathLike) -> ImageMediaType:
    """
    Media type of an image file, from its extension

    Raises:
        FileHandlingError: If the extension is missing or not a supported image format
    """
    extension = _extension(path)
    try:
        return IMAGE_EXTENSIONS[extension]
    except KeyError:
        raise FileHandlingError(f"Unsupported image format: {extension}") from None


def detect_document_media_type(path: PathLike) -> DocumentMediaType:
    extension = _extension(path)
    try:
        return DOCUMENT_EXTENSIONS[extension]
    except KeyError:
        raise FileHandlingError(f"Unsupported document format: {extension}") from None


def validate_url(url: str) -> str:
    """
    Check that a URL is absolute http(s)

    Returns:
        The URL unchanged

    Raises:
        FileHandlingError: If the URL is malformed or uses another scheme
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise FileHandlingError(f"URL must use HTTP or HTTPS scheme: {url!r}")
    if not parsed.netloc:
        raise FileHandlingError(f"URL has no host: {url!r}")
    return url


def _read_bytes(path: PathLike) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise FileHandlingError(f"Failed to read file '{path}': {e}") from e


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def image_block_from_bytes(data: bytes, media_type: Union[ImageMediaType, str]) -> ImageBlock:
    try:
        return ImageBlock.from_base64(ImageMediaType(media_type), _b64(data))
    except ValueError as e:
        raise FileHandlingError(f"Unsupported image media type: {media_type!r}") from e


def image_block_from_file(path: PathLike) -> ImageBlock:
    """
    Read an image file into a base64 image block

    Raises:
        FileHandlingError: If the format is unsupported or the file cannot be read
    """
    media_type = detect_image_media_type(path)
    return image_block_from_bytes(_read_bytes(path), media_type)


def image_block_from_url(url: str) -> ImageBlock:
    """Image block that lets the API fetch the image itself"""
    return ImageBlock.from_url(validate_url(url))


def fetch_image_block(url: str, timeout: float = DOWNLOAD_TIMEOUT) -> ImageBlock:
    """
    Download an image and inline it as base64

    The media type comes from the response Content-Type, falling back to the
    URL's extension.

    Raises:
        FileHandlingError: If the download fails or the image type is unsupported
    """
    validate_url(url)
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise FileHandlingError(f"Failed to download image from '{url}': {e}") from e

    content_type = response.headers.get("Content-Type", "").split(";")[0].strip().lower()
    if content_type in {m.value for m in ImageMediaType}:
        media_type = ImageMediaType(content_type)
    else:
        media_type = detect_image_media_type(urlparse(url).path)
    logger.debug(f"Fetched {len(response.content)} bytes of {media_type.value} from {url}")
    return image_block_from_bytes(response.content, media_type)


def document_block_from_bytes(
    data: bytes,
    media_type: Union[DocumentMediaType, str] = DocumentMediaType.PDF,
    title: Optional[str] = None,
) -> DocumentBlock:
    """
    Document block from raw bytes; plain text is sent as a text source
    """
    try:
        media_type = DocumentMediaType(media_type)
    except ValueError as e:
        raise FileHandlingError(f"Unsupported document media type: {media_type!r}") from e
    if media_type == DocumentMediaType.TEXT:
        try:
            return text_document_block(data.decode("utf-8"), title=title)
        except UnicodeDecodeError as e:
            raise FileHandlingError(f"Text document is not valid UTF-8: {e}") from e
    return DocumentBlock.from_base64(media_type, _b64(data), title=title)


def document_block_from_file(path: PathLike, title: Optional[str] = None) -> DocumentBlock:
    media_type = detect_document_media_type(path)
    return document_block_from_bytes(_read_bytes(path), media_type, title=title)


def document_block_from_url(url: str, title: Optional[str] = None) -> DocumentBlock:
    return DocumentBlock.from_url(validate_url(url), title=title)


def text_document_block(text: str, title: Optional[str] = None, context: Optional[str] = None) -> DocumentBlock:
    return DocumentBlock(source=PlainTextDocumentSource(data=text), title=title, context=context)
