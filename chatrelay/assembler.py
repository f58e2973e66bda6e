"""
Message Content Assembler.

Turns one domain Message (text plus attachments) into the chat payload a
vendor accepts, given the provider's file tier and the model's vision support.
"""
import logging
from typing import List

from .capabilities import CapabilityResolver, FileTier
from .files import FileStore
from .types import (
    ChatMessageParam, ContentPart, FileType, Message, Model, TEXT_FILE_TYPES,
)
from .utils import create_image_content, create_text_content

logger = logging.getLogger(__name__)

FILE_DIVIDER = "\n\n---\n\n"


class MessageAssembler:
    """
    Builds vendor message payloads, reading attachments from a FileStore.

    Attachments are read one at a time in attachment order. Read and encode
    errors propagate to the caller.
    """

    def __init__(self, files: FileStore, resolver: CapabilityResolver):
        self.files = files
        self.resolver = resolver

    async def assemble(self, message: Message, model: Model, file_tier: FileTier) -> ChatMessageParam:
        if not message.files:
            return {"role": message.role, "content": message.content}

        if file_tier is FileTier.TEXT_ONLY:
            return await self._assemble_text_only(message)

        return await self._assemble_multimodal(message, model)

    async def _assemble_text_only(self, message: Message) -> ChatMessageParam:
        # Images are dropped; text files are inlined after the message text
        text_files = [f for f in message.files if f.type in TEXT_FILE_TYPES]
        if not text_files:
            return {"role": message.role, "content": message.content}

        text = ""
        for file in text_files:
            file_content = (await self.files.read(file.name)).strip()
            text += f"file: {file.origin_name}\n\n{file_content}{FILE_DIVIDER}"

        return {"role": message.role, "content": message.content + FILE_DIVIDER + text}

    async def _assemble_multimodal(self, message: Message, model: Model) -> ChatMessageParam:
        parts: List[ContentPart] = [create_text_content(message.content)]

        # Image parts precede file-text parts; each group keeps attachment order
        images = [f for f in message.files if f.type is FileType.IMAGE]
        if images and not self.resolver.is_vision_model(model):
            logger.debug("Skipping %d image(s): model %s has no vision support", len(images), model.id)
            images = []

        for file in images:
            image = await self.files.base64_image(file.name)
            parts.append(create_image_content(image.data))

        for file in message.files:
            if file.type in TEXT_FILE_TYPES:
                file_content = (await self.files.read(file.name)).strip()
                parts.append(create_text_content(f"{file.origin_name}\n{file_content}"))

        return {"role": message.role, "content": parts}
