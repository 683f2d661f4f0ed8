"""
Repository helpers for the queries shared across services
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from rsvp_manager.models import (
    WeddingEvent, Guest, NotificationLog, MessagingProviderSettings
)
from rsvp_manager.models.enums import NotificationType, NotificationChannel, NotificationStatus

# Notification types that count as "the guest was asked to respond"
INVITATION_NOTIFICATION_TYPES = (
    NotificationType.INVITE,
    NotificationType.REMINDER,
    NotificationType.IMAGE_INVITE,
    NotificationType.INTERACTIVE_INVITE,
    NotificationType.INTERACTIVE_REMINDER,
)


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def get_by_id(db: Session, event_id: int) -> Optional[WeddingEvent]:
        return db.query(WeddingEvent).filter(WeddingEvent.id == event_id).first()

    @staticmethod
    def list_for_owner(db: Session, owner_id: int, include_archived: bool = False) -> List[WeddingEvent]:
        query = db.query(WeddingEvent).filter(WeddingEvent.owner_id == owner_id)
        if not include_archived:
            query = query.filter(WeddingEvent.archived_at.is_(None))
        return query.order_by(WeddingEvent.date_time).all()

    @staticmethod
    def count_for_owner(db: Session, owner_id: int) -> int:
        return db.query(WeddingEvent).filter(
            WeddingEvent.owner_id == owner_id,
            WeddingEvent.archived_at.is_(None)
        ).count()


# -------- Guest repository --------

class GuestRepo:
    @staticmethod
    def get_by_id(db: Session, event_id: int, guest_id: int) -> Optional[Guest]:
        return db.query(Guest).filter(Guest.id == guest_id, Guest.event_id == event_id).first()

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[Guest]:
        return db.query(Guest).filter(Guest.slug == slug).first()

    @staticmethod
    def list_for_event(db: Session, event_id: int) -> List[Guest]:
        return db.query(Guest).filter(Guest.event_id == event_id).order_by(Guest.name).all()

    @staticmethod
    def count_for_event(db: Session, event_id: int) -> int:
        return db.query(Guest).filter(Guest.event_id == event_id).count()

    @staticmethod
    def find_by_phones(db: Session, phones: Sequence[str], event_id: Optional[int] = None) -> List[Guest]:
        query = db.query(Guest).filter(Guest.phone_number.in_(list(phones)))
        if event_id is not None:
            query = query.filter(Guest.event_id == event_id)
        return query.order_by(Guest.created_at.desc()).all()


# -------- Notification repository --------

class NotificationRepo:
    @staticmethod
    def last_sent_invitation(
        db: Session,
        guest_id: int,
        channel: Optional[NotificationChannel] = None
    ) -> Optional[NotificationLog]:
        """Most recent successfully sent invite or reminder for a guest"""
        query = db.query(NotificationLog).filter(
            NotificationLog.guest_id == guest_id,
            NotificationLog.status.in_([NotificationStatus.SENT, NotificationStatus.DELIVERED]),
            NotificationLog.type.in_(INVITATION_NOTIFICATION_TYPES)
        )
        if channel is not None:
            query = query.filter(NotificationLog.channel == channel)
        return query.order_by(NotificationLog.sent_at.desc(), NotificationLog.id.desc()).first()

    @staticmethod
    def create_log(
        db: Session,
        guest_id: int,
        notification_type: NotificationType,
        channel: NotificationChannel,
        status: NotificationStatus,
        provider_response: Optional[str] = None,
        provider_message_id: Optional[str] = None,
        sent_at: Optional[datetime] = None
    ) -> NotificationLog:
        """Add a notification log row; caller commits"""
        log = NotificationLog(
            guest_id=guest_id,
            type=notification_type,
            channel=channel,
            status=status,
            provider_response=provider_response,
            provider_message_id=provider_message_id,
            sent_at=sent_at or (datetime.utcnow() if status == NotificationStatus.SENT else None),
        )
        db.add(log)
        return log

    @staticmethod
    def get_by_provider_id(db: Session, provider_message_id: str) -> Optional[NotificationLog]:
        return db.query(NotificationLog).filter(
            NotificationLog.provider_message_id == provider_message_id
        ).first()


# -------- Settings repository --------

class SettingsRepo:
    @staticmethod
    def get_messaging_settings(db: Session) -> Optional[MessagingProviderSettings]:
        return db.query(MessagingProviderSettings).order_by(MessagingProviderSettings.id).first()

    @staticmethod
    def get_or_create_messaging_settings(db: Session) -> MessagingProviderSettings:
        settings_row = SettingsRepo.get_messaging_settings(db)
        if not settings_row:
            settings_row = MessagingProviderSettings()
            db.add(settings_row)
            db.commit()
            db.refresh(settings_row)
        return settings_row
