"""
cards.py
Activation cards: a PNG with the member's details and a QR code holding the
member id, stored under a key derived only from that id.
"""

from __future__ import annotations

import logging
import secrets
from io import BytesIO

import qrcode
from PIL import Image, ImageDraw, ImageFont
from pyzbar.pyzbar import decode

from config import Config
from errors import BackendError

logger = logging.getLogger(__name__)

CARD_SIZE = (640, 380)
HEADER_COLOR = (50, 168, 164)
FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"


def card_storage_key(member_id) -> str:
    return f"cards/{member_id}.png"


def _font(size: int):
    try:
        return ImageFont.truetype(FONT_PATH, size)
    except OSError:
        return ImageFont.load_default()


def make_qr_image(payload: str) -> Image.Image:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=6,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    buffer = BytesIO()
    qr.make_image(fill_color="black", back_color="white").save(buffer, format="PNG")
    buffer.seek(0)
    return Image.open(buffer).convert("RGB")


def render_card(member) -> bytes:
    """
    Draw the activation card for `member` and return it as PNG bytes.
    """
    width, height = CARD_SIZE
    image = Image.new("RGB", CARD_SIZE, "white")
    draw = ImageDraw.Draw(image)

    draw.rectangle((0, 0, width, 64), fill=HEADER_COLOR)
    draw.text((24, 18), f"{Config.LODGE_NAME} - Activation Card", fill="white", font=_font(24))

    body = _font(18)
    lines = [
        f"Name: {member.full_name}",
        f"Email: {member.email}",
        f"Phone: {member.phone}",
        f"NIC: {member.nic}",
    ]
    for i, line in enumerate(lines):
        draw.text((24, 96 + i * 40), line, fill="black", font=body)

    qr_img = make_qr_image(str(member.id))
    qr_top = 64 + (height - 64 - qr_img.height) // 2
    image.paste(qr_img, (width - qr_img.width - 16, max(qr_top, 70)))

    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def decode_qr(image) -> str | None:
    """
    Return the first QR payload found in `image` (PIL image or encoded bytes).
    """
    if isinstance(image, (bytes, bytearray)):
        image = Image.open(BytesIO(image))
    result = decode(image.convert("RGB"))
    if not result:
        return None
    return result[0].data.decode()


def publish_card(client, member) -> str:
    """
    Render and upload the card, overwriting any earlier one for this member.
    The returned URL carries a fresh ?v= token so viewers skip stale caches.
    """
    key = card_storage_key(member.id)
    client.upload(key, render_card(member), content_type="image/png")
    logger.info(f"Uploaded activation card for member {member.id} to {key}")
    return f"{client.public_url(key)}?v={secrets.token_hex(6)}"


def remove_card(client, member_id) -> bool:
    key = card_storage_key(member_id)
    try:
        client.remove(key)
    except BackendError as e:
        logger.warning(f"Could not remove activation card {key}: {e}")
        return False
    return True
