"""
Image description for chat turns.

Uploads a normalized image to the Gemini Files API and asks the vision
model for a JSON ``{"description": ...}`` reply.
"""

import logging
import mimetypes
from typing import Optional

from .base import UnsupportedFormatError, file_extension
from ..llm.key_rotation import KeyRotationClient
from ..llm.schemas import IMAGE_DESCRIPTION_SCHEMA, validate_image_description


logger = logging.getLogger(__name__)


IMAGE_MIME_TYPES = {
    'jpeg': 'image/jpeg',
    'jpg': 'image/jpeg',
    'png': 'image/png',
    'webp': 'image/webp',
}

VISION_SYSTEM_PROMPT = """
You are an AI vision assistant. Your task is to provide a detailed description of the provided image.

AI Response (json):
{
  "description": "A detailed description of the image content."
}
"""


class ImageDescriber:
    """Produces a detailed text description of an image."""

    def __init__(self, llm: KeyRotationClient):
        self.llm = llm

    async def describe(self, image_path: str, display_name: Optional[str] = None) -> str:
        """
        Describe an image file that has already been normalized.

        Raises:
            UnsupportedFormatError: If the path is not an image
            ExhaustedRetriesError: If the service stays unavailable
            ResponseSchemaError: If the reply carries no description
        """
        mime_type = IMAGE_MIME_TYPES.get(file_extension(image_path)) or mimetypes.guess_type(image_path)[0]
        if not mime_type or not mime_type.startswith("image/"):
            raise UnsupportedFormatError(
                "Unsupported file format. Only images are allowed.", file_path=image_path
            )

        description = await self.llm.process_media(
            image_path,
            mime_type,
            "Describe this image in detail.",
            validator=validate_image_description,
            system_instruction=VISION_SYSTEM_PROMPT,
            response_schema=IMAGE_DESCRIPTION_SCHEMA,
            display_name=display_name,
            policy=self.llm.fixed_policy,
            operation_name="image description",
        )
        logger.info(f"Described {image_path}: {len(description)} characters")
        return description
