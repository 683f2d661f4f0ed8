"""
Invitation image generation with Gemini

The organizer uploads a designed invitation and lists the text fields to
change ("original" -> "new"). Gemini edits the image in place and the first
image part of the response becomes the event's invitation image.
"""

import logging
import os
from datetime import datetime
from typing import List, Optional, Tuple

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from sqlalchemy.orm import Session
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from rsvp_manager.core.config import settings
from rsvp_manager.core.exceptions import InvitationGenerationError, ValidationError
from rsvp_manager.models import WeddingEvent
from rsvp_manager.schemas.notification import InvitationField

logger = logging.getLogger(__name__)

FLASH_IMAGE_MODEL = "gemini-2.5-flash-image"
PRO_IMAGE_MODEL = "gemini-3-pro-image-preview"

FIELD_REPLACEMENTS_PLACEHOLDER = "{{FIELD_REPLACEMENTS}}"
INVITATIONS_DIR = os.path.join("static", "invitations")

ALLOWED_MIME_TYPES = {"image/png", "image/jpeg", "image/webp"}
EXTENSIONS = {"image/png": "png", "image/jpeg": "jpg", "image/webp": "webp"}

RETRYABLE_ERRORS = (
    google_exceptions.GoogleAPIError,
    ConnectionError,
    TimeoutError,
)

def build_field_replacements(fields: List[InvitationField]) -> str:
    return "\n".join(f'"{field.original_value}" → "{field.new_value}"' for field in fields)

def build_prompt(fields: List[InvitationField], base_prompt: Optional[str] = None) -> str:
    prompt = base_prompt or settings.INVITATION_PROMPT
    if FIELD_REPLACEMENTS_PLACEHOLDER not in prompt:
        raise ValidationError(f"Prompt must include {FIELD_REPLACEMENTS_PLACEHOLDER} placeholder")
    return prompt.replace(FIELD_REPLACEMENTS_PLACEHOLDER, build_field_replacements(fields))

def extract_image(response) -> Optional[Tuple[bytes, str]]:
    """First inline image of the first candidate, as (bytes, mime type)"""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None

    parts = candidates[0].content.parts
    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return inline.data, inline.mime_type or "image/png"

    for part in parts:
        text = getattr(part, "text", None)
        if text:
            logger.info(f"Gemini responded with text instead of an image: {text[:200]}")
    return None

class InvitationService:
    """Generates invitation images from a template picture"""

    def __init__(self, api_key: Optional[str] = None):
        api_key = api_key or settings.GEMINI_API_KEY
        if not api_key:
            raise InvitationGenerationError("GEMINI_API_KEY is not configured")
        genai.configure(api_key=api_key)

    async def generate(
        self,
        template_bytes: bytes,
        mime_type: str,
        fields: List[InvitationField],
        use_pro_model: bool = False,
        base_prompt: Optional[str] = None
    ) -> Tuple[bytes, str]:
        """Edit the template's text fields and return the new image"""
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(f"Unsupported image type: {mime_type}")
        if not fields:
            raise ValidationError("At least one field replacement is required")

        prompt = build_prompt(fields, base_prompt)
        model_id = PRO_IMAGE_MODEL if use_pro_model else FLASH_IMAGE_MODEL
        logger.info(f"Generating invitation with {model_id} ({len(fields)} fields)")

        try:
            response = await self._call_gemini_with_retry(model_id, template_bytes, mime_type, prompt)
        except RETRYABLE_ERRORS as e:
            # Raised once tenacity has used up its attempts
            logger.error(f"All Gemini retries exhausted: {e}")
            raise InvitationGenerationError(
                f"Invitation generation failed after multiple attempts: {e}",
                details={"model": model_id, "attempts": settings.GEMINI_RETRY_MAX_ATTEMPTS},
            ) from e

        image = extract_image(response)
        if not image:
            raise InvitationGenerationError("No image was generated in the response", details={"model": model_id})
        return image

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(settings.GEMINI_RETRY_MAX_ATTEMPTS),
        wait=wait_exponential_jitter(
            initial=settings.GEMINI_RETRY_MIN_WAIT,
            max=settings.GEMINI_RETRY_MAX_WAIT,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _call_gemini_with_retry(self, model_id: str, template_bytes: bytes, mime_type: str, prompt: str):
        model = genai.GenerativeModel(model_id)
        return await model.generate_content_async(
            [{"mime_type": mime_type, "data": template_bytes}, prompt],
            request_options={"timeout": 120},
        )

    async def generate_for_event(
        self,
        db: Session,
        event: WeddingEvent,
        template_bytes: bytes,
        mime_type: str,
        fields: List[InvitationField],
        use_pro_model: bool = False
    ) -> str:
        """Generate, store under static/invitations and set as the event's image"""
        image_bytes, image_mime = await self.generate(template_bytes, mime_type, fields, use_pro_model)

        os.makedirs(INVITATIONS_DIR, exist_ok=True)
        filename = f"event_{event.id}_{datetime.utcnow().strftime('%Y%m%d%H%M%S')}.{EXTENSIONS.get(image_mime, 'png')}"
        with open(os.path.join(INVITATIONS_DIR, filename), "wb") as f:
            f.write(image_bytes)

        event.image_path = f"/static/invitations/{filename}"
        db.commit()
        db.refresh(event)

        logger.info(f"Stored invitation image for event {event.id} at {event.image_path}")
        return event.image_path
