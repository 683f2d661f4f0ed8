"""
Admin API routes - requires the platform admin token
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rsvp_manager.core.db import get_db
from rsvp_manager.models import User
from rsvp_manager.models.enums import NotificationChannel
from rsvp_manager.schemas.notification import MessagingSettingsUpdate, WhatsAppTemplateCreate
from rsvp_manager.schemas.user import UserCreate, UserPlanUpdate
from rsvp_manager.services.admin_service import AdminService
from rsvp_manager.services.repositories import SettingsRepo
from rsvp_manager.utils.responses import success_response
from rsvp_manager.utils.security import verify_admin_token

router = APIRouter()

# -------- Messaging settings --------

@router.get("/messaging-settings")
async def get_messaging_settings(
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    provider = SettingsRepo.get_or_create_messaging_settings(db)
    return success_response(message="Messaging settings retrieved", data=AdminService.settings_payload(provider))

@router.put("/messaging-settings")
async def update_messaging_settings(
    update: MessagingSettingsUpdate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Update provider settings; the notification service is re-selected on the next send"""
    provider = AdminService.update_messaging_settings(db, update)
    return success_response(message="Messaging settings updated", data=AdminService.settings_payload(provider))

@router.post("/messaging-settings/verify")
async def verify_messaging_credentials(
    channel: NotificationChannel = NotificationChannel.WHATSAPP,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    result = await AdminService.verify_credentials(db, channel)
    message = "Credentials are valid" if result["valid"] else "Credentials check failed"
    return success_response(message=message, data=result)

# -------- WhatsApp templates --------

@router.get("/whatsapp-templates")
async def list_whatsapp_templates(
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    templates = AdminService.list_whatsapp_templates(db)
    return success_response(
        message=f"Found {len(templates)} templates",
        data=[AdminService.template_payload(template) for template in templates]
    )

@router.post("/whatsapp-templates")
async def create_whatsapp_template(
    template_data: WhatsAppTemplateCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    template = AdminService.create_whatsapp_template(db, template_data)
    return success_response(message="Template registered", data=AdminService.template_payload(template), status_code=201)

@router.delete("/whatsapp-templates/{template_id}")
async def delete_whatsapp_template(
    template_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    AdminService.delete_whatsapp_template(db, template_id)
    return success_response(message="Template deleted")

# -------- Users --------

@router.get("/users")
async def list_users(
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    users = db.query(User).order_by(User.id).all()
    return success_response(message=f"Found {len(users)} users", data=[AdminService.user_payload(user) for user in users])

@router.post("/users")
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Create a user and return their API token once"""
    user = AdminService.create_user(db, user_data)
    return success_response(message="User created", data=AdminService.user_payload(user, include_token=True), status_code=201)

@router.patch("/users/{user_id}/plan")
async def update_user_plan(
    user_id: int,
    update: UserPlanUpdate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    user = AdminService.update_user_plan(db, user_id, update)
    return success_response(message="User plan updated", data=AdminService.user_payload(user))
