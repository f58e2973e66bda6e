import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Union

from .utils import encode_image_file, to_data_url


@dataclass(frozen=True)
class EncodedImage:
    """
    Base64 image ready to be inlined into a request.

    ``data`` is the full ``data:`` URL, ``base64`` the bare payload.
    """
    data: str
    mime: str
    base64: str


class FileStore(Protocol):
    """
    Read access to stored attachments, keyed by ``FileRef.name``.
    """

    async def read(self, name: str) -> str: ...

    async def base64_image(self, name: str) -> EncodedImage: ...


class LocalFileStore:
    """
    FileStore over a local directory.

    Reads run in a worker thread so the event loop is not blocked by disk I/O.
    Missing files raise FileNotFoundError.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def _path(self, name: str) -> Path:
        return self.root / name

    async def read(self, name: str) -> str:
        path = self._path(name)
        text = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        return text.strip()

    async def base64_image(self, name: str) -> EncodedImage:
        b64_data, mime_type = await asyncio.to_thread(encode_image_file, self._path(name))
        return EncodedImage(data=to_data_url(b64_data, mime_type), mime=mime_type, base64=b64_data)
