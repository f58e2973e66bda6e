import base64
import unicodedata
from pathlib import Path
from typing import List, Optional, Literal, Sequence, Tuple, TypeVar, Union

from .types import ImageContent, ImageUrlDetail, TextContent

T = TypeVar("T")

# Map file extensions to MIME types
IMAGE_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}

# =============================================================================
# Content Part Helpers
# =============================================================================

def encode_image_file(image_path: Union[str, Path]) -> Tuple[str, str]:
    """
    Encode a local image file to base64.

    Args:
        image_path (Union[str, Path]): Path to the image file.

    Returns:
        Tuple[str, str]: The base64-encoded content and its MIME type.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(image_path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    mime_type = IMAGE_MIME_TYPES.get(path.suffix.lower(), "image/jpeg")

    with open(path, "rb") as f:
        b64_data = base64.b64encode(f.read()).decode("utf-8")

    return b64_data, mime_type


def to_data_url(b64_data: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{b64_data}"


def create_image_content(
    url: str,
    *,
    detail: Optional[Literal["auto", "low", "high"]] = None,
) -> ImageContent:
    """
    Create an image content part from a URL or data URL.

    Args:
        url (str): HTTP(S) URL or ``data:`` URL of the image.
        detail (str, optional): Detail level for OpenAI vision ('auto', 'low', 'high').

    Returns:
        ImageContent: ``{"type": "image_url", "image_url": {"url": ...}}``.
    """
    image_url: ImageUrlDetail = {"url": url}
    if detail:
        image_url["detail"] = detail

    return {"type": "image_url", "image_url": image_url}


def create_text_content(text: str) -> TextContent:
    return {"type": "text", "text": text}


# =============================================================================
# Text Helpers
# =============================================================================

def take_right(items: Sequence[T], count: int) -> List[T]:
    """Return the last ``count`` items (all of them when count exceeds the length)."""
    if count <= 0:
        return []
    return list(items[-count:])


def is_special_character(char: str) -> bool:
    # Newlines, double quotes, and every Unicode mark (M*) or punctuation (P*)
    if char in '\n"':
        return True
    return unicodedata.category(char)[0] in ("M", "P")


def remove_special_characters(text: str) -> str:
    return "".join(char for char in text if not is_special_character(char))
