"""
Platform administration: messaging provider settings, WhatsApp templates and users
"""

import logging
import secrets
from typing import Dict, List, Optional

import httpx
from sqlalchemy import func
from sqlalchemy.orm import Session

from rsvp_manager.core.exceptions import NotFoundError, ValidationError
from rsvp_manager.models import MessagingProviderSettings, User, WhatsAppTemplate
from rsvp_manager.models.enums import NotificationChannel
from rsvp_manager.schemas.notification import MessagingSettingsUpdate, WhatsAppTemplateCreate
from rsvp_manager.schemas.user import UserCreate, UserPlanUpdate
from rsvp_manager.services.repositories import SettingsRepo
from rsvp_manager.services.notifications import notification_factory
from rsvp_manager.services.notifications.twilio_client import TwilioClient
from rsvp_manager.services.plans import get_remaining_messages

logger = logging.getLogger(__name__)

SECRET_FIELDS = ("whatsapp_api_secret", "sms_api_secret")

def mask_secret(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    return "*" * max(len(value) - 4, 4) + value[-4:]

class AdminService:

    # -------- Messaging settings --------

    @staticmethod
    def settings_payload(provider: MessagingProviderSettings) -> Dict:
        payload = {
            column.name: getattr(provider, column.name)
            for column in MessagingProviderSettings.__table__.columns
            if column.name not in ("id", "updated_at")
        }
        for field in SECRET_FIELDS:
            payload[field] = mask_secret(payload[field])
        payload["whatsapp_configured"] = provider.whatsapp_configured
        payload["sms_configured"] = provider.sms_configured
        return payload

    @staticmethod
    def update_messaging_settings(db: Session, data: MessagingSettingsUpdate) -> MessagingProviderSettings:
        """Apply the given fields and drop the cached notification service choice"""
        provider = SettingsRepo.get_or_create_messaging_settings(db)
        for field, value in data.dict(exclude_unset=True).items():
            setattr(provider, field, value)
        db.commit()
        db.refresh(provider)

        notification_factory.invalidate()
        logger.info(
            f"Messaging settings updated: whatsapp_configured={provider.whatsapp_configured}, "
            f"sms_configured={provider.sms_configured}"
        )
        return provider

    @staticmethod
    async def verify_credentials(
        db: Session,
        channel: NotificationChannel,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> Dict:
        provider = SettingsRepo.get_messaging_settings(db)
        if channel == NotificationChannel.SMS:
            key, secret = (provider.sms_api_key, provider.sms_api_secret) if provider else (None, None)
        else:
            key, secret = (provider.whatsapp_api_key, provider.whatsapp_api_secret) if provider else (None, None)
        if not key or not secret:
            raise ValidationError(f"{channel.value} credentials are not configured")

        result = await TwilioClient(key, secret, transport=transport).verify_credentials()
        return {"valid": result.success, "account_status": result.status, "error": result.error}

    # -------- WhatsApp templates --------

    @staticmethod
    def list_whatsapp_templates(db: Session) -> List[WhatsAppTemplate]:
        return db.query(WhatsAppTemplate).order_by(WhatsAppTemplate.type, WhatsAppTemplate.style).all()

    @staticmethod
    def create_whatsapp_template(db: Session, data: WhatsAppTemplateCreate) -> WhatsAppTemplate:
        template = WhatsAppTemplate(**data.dict())
        db.add(template)
        db.commit()
        db.refresh(template)
        logger.info(f"Registered WhatsApp template {template.type.value}/{template.style} -> {template.content_sid}")
        return template

    @staticmethod
    def delete_whatsapp_template(db: Session, template_id: int):
        template = db.query(WhatsAppTemplate).filter(WhatsAppTemplate.id == template_id).first()
        if not template:
            raise NotFoundError("WhatsApp template")
        db.delete(template)
        db.commit()

    @staticmethod
    def template_payload(template: WhatsAppTemplate) -> Dict:
        return {
            "id": template.id,
            "type": template.type.value,
            "style": template.style,
            "name": template.name,
            "content_sid": template.content_sid,
            "is_active": template.is_active,
        }

    # -------- Users --------

    @staticmethod
    def create_user(db: Session, data: UserCreate) -> User:
        if db.query(User).filter(func.lower(User.email) == data.email.lower()).first():
            raise ValidationError("A user with this email already exists")

        user = User(
            email=data.email,
            name=data.name,
            plan=data.plan,
            role=data.role,
            api_token=secrets.token_urlsafe(32),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Created user {user.id} on plan {user.plan.value}")
        return user

    @staticmethod
    def update_user_plan(db: Session, user_id: int, data: UserPlanUpdate) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User")

        for field, value in data.dict(exclude_unset=True).items():
            if value is not None:
                setattr(user, field, value)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def user_payload(user: User, include_token: bool = False) -> Dict:
        payload = {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
            "plan": user.plan.value,
            "whatsapp_sent": user.whatsapp_sent,
            "sms_sent": user.sms_sent,
            "remaining": get_remaining_messages(user),
        }
        if include_token:
            payload["api_token"] = user.api_token
        return payload
