"""
Twilio REST client for SMS and WhatsApp messages
"""

import json
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from rsvp_manager.core.config import settings

logger = logging.getLogger(__name__)

# Trial accounts can only reach verified numbers
TRIAL_ERROR_CODES = {21608, 21219}

ERROR_MESSAGES: Dict[int, str] = {
    20003: "Invalid Account SID or Auth Token. Check your credentials.",
    21211: "Invalid 'To' phone number format. Use E.164 format (+1234567890).",
    21212: "Invalid 'From' phone number. Ensure your Twilio number is correct.",
    21219: "Trial accounts cannot send SMS to other Twilio numbers.",
    21408: "Permission denied. Your account may need verification.",
    21606: "The 'From' phone number is not owned by your account.",
    21608: "TRIAL ACCOUNT: This phone number is not verified. Add it to your Verified Caller IDs in the Twilio Console.",
    21610: "Recipient has opted out of receiving messages from this number.",
    21611: "Maximum number of queued messages reached.",
    21614: "The 'To' number is not a valid mobile number.",
    21617: "The message body exceeds the maximum allowed length.",
    63001: "WhatsApp sender not registered. Set up WhatsApp Sandbox or register your number.",
    63003: "Recipient hasn't opted in to WhatsApp. They must message your number first.",
    63007: "Outside 24-hour window. Use approved WhatsApp templates only.",
    63016: "Rate limited by WhatsApp. Wait before sending more messages.",
    63018: "Template not approved by WhatsApp.",
    14107: "Rate limit exceeded. Too many requests.",
}

@dataclass
class TwilioSendResult:
    success: bool
    message_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[int] = None
    is_trial_error: bool = False

def friendly_error(code: Optional[int], fallback: str) -> str:
    if code is not None and code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]
    return fallback

def whatsapp_address(number: str) -> str:
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"

class TwilioClient:
    """Thin async wrapper over the Twilio Messages API"""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.base_url = (base_url or settings.TWILIO_API_BASE).rstrip("/")
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            auth=(self.account_sid, self.auth_token),
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _create_message(self, data: Dict[str, str]) -> TwilioSendResult:
        url = f"{self.base_url}/Accounts/{self.account_sid}/Messages.json"
        try:
            async with self._client() as client:
                response = await client.post(url, data=data)
        except httpx.HTTPError as e:
            logger.error(f"Twilio API request failed: {e}")
            return TwilioSendResult(success=False, error=str(e))

        if response.status_code in (200, 201):
            result = response.json()
            logger.info(f"Twilio accepted message {result.get('sid')} (status={result.get('status')})")
            return TwilioSendResult(success=True, message_id=result.get("sid"), status=result.get("status"))

        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        error_code = error_data.get("code")
        error_message = friendly_error(error_code, error_data.get("message", f"HTTP {response.status_code}"))
        is_trial_error = error_code in TRIAL_ERROR_CODES

        logger.error(f"Twilio API error [{error_code}]: {error_message}")
        return TwilioSendResult(
            success=False,
            error=error_message,
            error_code=error_code,
            is_trial_error=is_trial_error,
        )

    async def send_sms(
        self,
        to: str,
        body: str,
        from_number: Optional[str] = None,
        messaging_service_sid: Optional[str] = None,
        alpha_sender_id: Optional[str] = None
    ) -> TwilioSendResult:
        """Send an SMS; sender preference is messaging service, alphanumeric ID, then number"""
        data = {"To": to, "Body": body}
        if messaging_service_sid:
            data["MessagingServiceSid"] = messaging_service_sid
        elif alpha_sender_id:
            data["From"] = alpha_sender_id
        elif from_number:
            data["From"] = from_number
        else:
            return TwilioSendResult(success=False, error="No SMS sender configured")

        return await self._create_message(data)

    async def send_whatsapp(
        self,
        from_number: str,
        to: str,
        body: Optional[str] = None,
        content_sid: Optional[str] = None,
        content_variables: Optional[Dict[str, str]] = None,
        media_url: Optional[str] = None
    ) -> TwilioSendResult:
        """Send a WhatsApp message, using an approved content template when given"""
        data = {
            "From": whatsapp_address(from_number),
            "To": whatsapp_address(to),
        }
        if content_sid:
            data["ContentSid"] = content_sid
            if content_variables:
                data["ContentVariables"] = json.dumps(content_variables, ensure_ascii=False)
        elif body:
            data["Body"] = body
        else:
            return TwilioSendResult(success=False, error="Message body or content template is required")

        if media_url:
            data["MediaUrl"] = media_url

        return await self._create_message(data)

    async def verify_credentials(self) -> TwilioSendResult:
        """Fetch the account record to confirm the SID and token are valid"""
        url = f"{self.base_url}/Accounts/{self.account_sid}.json"
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            return TwilioSendResult(success=False, error=str(e))

        if response.status_code == 200:
            account = response.json()
            return TwilioSendResult(success=True, status=account.get("status"))

        return TwilioSendResult(
            success=False,
            error=friendly_error(20003, "Invalid credentials"),
            error_code=20003,
        )
