"""
Twilio webhook routes - delivery status callbacks and inbound WhatsApp replies
"""

import logging
from typing import Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rsvp_manager.core.config import settings
from rsvp_manager.core.db import get_db
from rsvp_manager.services.repositories import SettingsRepo
from rsvp_manager.services.webhook_service import WebhookService
from rsvp_manager.utils.responses import error_response, success_response
from rsvp_manager.utils.security import enforce_rate_limit, get_client_ip, validate_twilio_signature

logger = logging.getLogger(__name__)

router = APIRouter()

async def read_twilio_form(request: Request) -> Dict[str, str]:
    form = await request.form()
    return {key: str(value) for key, value in form.items()}

def signature_is_valid(db: Session, request: Request, payload: Dict[str, str]) -> bool:
    """Twilio signs with the auth token; unchecked when disabled or no token is stored"""
    if not settings.TWILIO_VALIDATE_SIGNATURE:
        return True
    provider = SettingsRepo.get_messaging_settings(db)
    auth_token = None
    if provider:
        auth_token = provider.whatsapp_api_secret or provider.sms_api_secret
    if not auth_token:
        return True
    return validate_twilio_signature(auth_token, request.headers.get("X-Twilio-Signature"), str(request.url), payload)

@router.post("/twilio/status")
async def twilio_status_callback(
    request: Request,
    db: Session = Depends(get_db)
):
    enforce_rate_limit(get_client_ip(request), "webhook")
    payload = await read_twilio_form(request)
    if not signature_is_valid(db, request, payload):
        logger.warning("Rejected status callback with an invalid Twilio signature")
        return error_response(message="Invalid signature", error_code="invalid_signature", status_code=401)

    result = WebhookService.handle_status_callback(db, payload)
    return success_response(message="Status received", data=result)

@router.post("/twilio/whatsapp")
async def twilio_whatsapp_webhook(
    request: Request,
    db: Session = Depends(get_db)
):
    """Button and list replies to interactive WhatsApp messages"""
    enforce_rate_limit(get_client_ip(request), "webhook")
    payload = await read_twilio_form(request)
    if not signature_is_valid(db, request, payload):
        logger.warning("Rejected WhatsApp webhook with an invalid Twilio signature")
        return error_response(message="Invalid signature", error_code="invalid_signature", status_code=401)

    result = await WebhookService.handle_whatsapp_message(db, payload)
    return success_response(message="Message received", data=result)
