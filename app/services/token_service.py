"""
RSVP token issuance and admission QR code generation
"""

import base64
import io
import secrets
from typing import Optional, Tuple
from urllib.parse import quote

import qrcode

from app.core.config import settings

ADMISSION_CODE_SEPARATOR = "-"
MIN_TOKEN_BYTES = 16  # 128 bits

class TokenService:
    """Issues RSVP tokens and encodes admission codes.

    Everything here is pure: no storage access and no clock.
    """

    def __init__(self, base_url: Optional[str] = None, token_bytes: Optional[int] = None):
        self.base_url = (base_url or settings.BASE_URL).rstrip("/")
        self.token_bytes = token_bytes or settings.RSVP_TOKEN_BYTES
        if self.token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"RSVP tokens need at least {MIN_TOKEN_BYTES} bytes of entropy, got {self.token_bytes}")

    def issue_rsvp_token(self) -> str:
        """Return a URL-safe random token (``token_bytes`` of entropy)"""
        return secrets.token_urlsafe(self.token_bytes)

    def build_rsvp_link(self, event_instance_id: str, assignee_id: str, rsvp_token: str) -> str:
        """Shareable RSVP form link: /rsvp/{instance}/{assignee}/{token}"""
        return "{}/rsvp/{}/{}/{}".format(
            self.base_url,
            quote(event_instance_id, safe=""),
            quote(assignee_id, safe=""),
            quote(rsvp_token, safe=""),
        )

    def build_check_in_url(self, admission_code: str) -> str:
        """Door-staff deep link for an admission code"""
        return f"{self.base_url}/checkin/qr?code={quote(admission_code, safe='')}"

    @staticmethod
    def derive_admission_code(event_instance_id: str, rsvp_id: str) -> str:
        """Build the admission code for an RSVP record that already exists.

        The code embeds the record's own id, so it can only be derived after
        the record has been created.
        """
        if not event_instance_id or not rsvp_id:
            raise ValueError("Admission code needs both an event instance id and an RSVP id")
        if ADMISSION_CODE_SEPARATOR in event_instance_id or ADMISSION_CODE_SEPARATOR in rsvp_id:
            raise ValueError(f"Ids must not contain {ADMISSION_CODE_SEPARATOR!r}")
        return f"{event_instance_id}{ADMISSION_CODE_SEPARATOR}{rsvp_id}"

    @staticmethod
    def parse_admission_code(admission_code: str) -> Optional[Tuple[str, str]]:
        """Split a code into (event_instance_id, rsvp_id), or None if malformed"""
        if not isinstance(admission_code, str):
            return None
        parts = admission_code.strip().split(ADMISSION_CODE_SEPARATOR)
        if len(parts) != 2 or not parts[0] or not parts[1]:
            return None
        return parts[0], parts[1]

    @staticmethod
    def validate_admission_code_format(admission_code: str) -> bool:
        """Format check only; does not look the code up"""
        return TokenService.parse_admission_code(admission_code) is not None

    @staticmethod
    def encode_admission_image(admission_code: str, format: str = "PNG") -> bytes:
        """Render the admission code as a QR code image"""
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=8,
            border=2,
        )
        qr.add_data(admission_code)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format=format)

        return buffer.getvalue()

    @staticmethod
    def to_data_url(image_bytes: bytes, media_type: str = "image/png") -> str:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        return f"data:{media_type};base64,{encoded}"

    @staticmethod
    def from_data_url(data_url: str) -> bytes:
        """Inverse of to_data_url; used to serve stored images"""
        _, _, encoded = data_url.partition(",")
        return base64.b64decode(encoded)
