"""
Tests for Gemini invitation image generation
"""

import pytest
from datetime import datetime
from types import SimpleNamespace
from google.api_core import exceptions as google_exceptions
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from tenacity import wait_none

from rsvp_manager.core.db import Base
from rsvp_manager.core.exceptions import InvitationGenerationError, ValidationError
from rsvp_manager.models import User, WeddingEvent
from rsvp_manager.schemas.notification import InvitationField
from rsvp_manager.services import invitation_service
from rsvp_manager.services.invitation_service import (
    FLASH_IMAGE_MODEL, PRO_IMAGE_MODEL, InvitationService, build_prompt, extract_image
)

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_invitations.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FIELDS = [
    InvitationField(field_type="names", original_value="Dana & Noam", new_value="Maya & Tom"),
    InvitationField(field_type="date", original_value="15.6.2030", new_value="20.7.2030"),
]

def image_response(data=b"\x89PNG-new", mime_type="image/png"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])

def text_response(text):
    part = SimpleNamespace(inline_data=None, text=text)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])

class FakeGenai:
    """Stands in for the google.generativeai module"""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.api_key = None

    def configure(self, api_key):
        self.api_key = api_key

    def GenerativeModel(self, model_id):
        fake = self

        class Model:
            async def generate_content_async(self, contents, request_options=None):
                fake.calls.append((model_id, contents))
                outcome = fake.outcomes.pop(0)
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome

        return Model()

@pytest.fixture
def fake_genai(monkeypatch):
    def install(*outcomes):
        fake = FakeGenai(outcomes)
        monkeypatch.setattr(invitation_service, "genai", fake)
        monkeypatch.setattr(InvitationService._call_gemini_with_retry.retry, "wait", wait_none())
        return fake
    return install

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

class TestPrompt:

    def test_field_replacements_listed_in_order(self):
        prompt = build_prompt(FIELDS, "Replace:\n{{FIELD_REPLACEMENTS}}\nDone")

        assert prompt == 'Replace:\n"Dana & Noam" → "Maya & Tom"\n"15.6.2030" → "20.7.2030"\nDone'

    def test_prompt_without_placeholder_rejected(self):
        with pytest.raises(ValidationError):
            build_prompt(FIELDS, "Change the names please")

    def test_default_prompt_has_placeholder(self):
        assert "Maya & Tom" in build_prompt(FIELDS)

class TestExtractImage:

    def test_first_inline_image(self):
        assert extract_image(image_response(b"abc", "image/jpeg")) == (b"abc", "image/jpeg")

    def test_text_only_response(self):
        assert extract_image(text_response("I cannot edit this image")) is None

    def test_no_candidates(self):
        assert extract_image(SimpleNamespace(candidates=[])) is None

class TestGenerate:

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(invitation_service.settings, "GEMINI_API_KEY", None)
        with pytest.raises(InvitationGenerationError):
            InvitationService()

    @pytest.mark.asyncio
    async def test_generate_with_flash_model(self, fake_genai):
        fake = fake_genai(image_response())
        service = InvitationService(api_key="key")

        result = await service.generate(b"template", "image/png", FIELDS)

        assert result == (b"\x89PNG-new", "image/png")
        assert fake.api_key == "key"
        model_id, contents = fake.calls[0]
        assert model_id == FLASH_IMAGE_MODEL
        assert contents[0] == {"mime_type": "image/png", "data": b"template"}
        assert "Maya & Tom" in contents[1]

    @pytest.mark.asyncio
    async def test_pro_model(self, fake_genai):
        fake = fake_genai(image_response())
        await InvitationService(api_key="key").generate(b"template", "image/png", FIELDS, use_pro_model=True)

        assert fake.calls[0][0] == PRO_IMAGE_MODEL

    @pytest.mark.asyncio
    async def test_transient_errors_retried(self, fake_genai):
        fake = fake_genai(google_exceptions.ServiceUnavailable("busy"), image_response())

        result = await InvitationService(api_key="key").generate(b"template", "image/png", FIELDS)

        assert result[0] == b"\x89PNG-new"
        assert len(fake.calls) == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, fake_genai):
        errors = [google_exceptions.ServiceUnavailable("busy") for _ in range(3)]
        fake = fake_genai(*errors)

        with pytest.raises(InvitationGenerationError) as exc_info:
            await InvitationService(api_key="key").generate(b"template", "image/png", FIELDS)

        assert len(fake.calls) == 3
        assert exc_info.value.details["attempts"] == 3

    @pytest.mark.asyncio
    async def test_text_response_is_an_error(self, fake_genai):
        fake_genai(text_response("Sorry"))

        with pytest.raises(InvitationGenerationError):
            await InvitationService(api_key="key").generate(b"template", "image/png", FIELDS)

    @pytest.mark.asyncio
    async def test_input_validation(self, fake_genai):
        fake = fake_genai()
        service = InvitationService(api_key="key")

        with pytest.raises(ValidationError):
            await service.generate(b"template", "application/pdf", FIELDS)
        with pytest.raises(ValidationError):
            await service.generate(b"template", "image/png", [])
        assert fake.calls == []

    @pytest.mark.asyncio
    async def test_generate_for_event_stores_image(self, fake_genai, db_session, tmp_path, monkeypatch):
        monkeypatch.setattr(invitation_service, "INVITATIONS_DIR", str(tmp_path))
        fake_genai(image_response(b"jpeg-bytes", "image/jpeg"))
        owner = User(email="owner@example.com", name="Owner", api_token="owner-token")
        db_session.add(owner)
        db_session.flush()
        event = WeddingEvent(owner_id=owner.id, title="Maya & Tom", date_time=datetime(2030, 7, 20, 17, 0),
                             location="Haifa")
        db_session.add(event)
        db_session.commit()

        path = await InvitationService(api_key="key").generate_for_event(db_session, event, b"template", "image/png", FIELDS)

        assert path.startswith(f"/static/invitations/event_{event.id}_")
        assert path.endswith(".jpg")
        assert event.image_path == path
        stored = list(tmp_path.iterdir())
        assert len(stored) == 1
        assert stored[0].read_bytes() == b"jpeg-bytes"
