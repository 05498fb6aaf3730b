"""PromptPay payment requests.

The EMVCo payload itself comes from the ``promptpay`` package; this module
renders it as a PNG data URL and hands out the satang-suffixed amounts that
let an admin tell two transfers of the same round amount apart.
"""
import base64
import random
import secrets
import string
from io import BytesIO

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from promptpay import qrcode as promptpay_qr

REFERENCE_PREFIX = 'PP'
REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 10


def render_qr_data_url(payload):
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=10, border=2)
    qr.add_data(payload)
    qr.make(fit=True)
    image = qr.make_image(fill_color='#000000', back_color='#ffffff')
    buffer = BytesIO()
    image.save(buffer, format='PNG')
    encoded = base64.b64encode(buffer.getvalue()).decode('ascii')
    return f"data:image/png;base64,{encoded}"


def new_reference_id():
    suffix = ''.join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))
    return f"{REFERENCE_PREFIX}{suffix}"


def generate_promptpay_qr(promptpay_id, amount):
    """QR bundle for a phone, tax id or e-wallet id; without an amount the payer types it in."""
    payload = promptpay_qr.generate_payload(promptpay_id, amount)
    return {
        'qr_code_data_url': render_qr_data_url(payload),
        'payload': payload,
        'amount': amount,
        'promptpay_id': promptpay_id,
        'reference_id': new_reference_id(),
    }


def format_thb(amount):
    return f"฿{amount:,.2f}"


def add_random_satang(amount):
    """Adds 0.01-0.99 to an integer amount; fractional amounts pass through."""
    if amount % 1 != 0:
        return amount
    satang = random.randint(1, 99)
    return round(amount + satang / 100, 2)
