"""
QR code generation service
"""

import io

import qrcode

from rsvp_manager.services.notifications.template_renderer import get_rsvp_link

class QRService:
    """Service for generating QR codes of guests' RSVP links"""

    @staticmethod
    def generate_qr(url: str, format: str = "PNG") -> bytes:
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(url)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format=format)
        return buffer.getvalue()

    @staticmethod
    def generate_rsvp_qr(slug: str, format: str = "PNG") -> bytes:
        """QR code pointing at the guest's public RSVP page"""
        return QRService.generate_qr(get_rsvp_link(slug), format)
