import base64
import binascii
import os
import re
import uuid
from io import BytesIO

from flask import current_app
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from mirin.errors import BadRequest

ALLOWED_CONTENT_TYPES = {'image/jpeg', 'image/jpg', 'image/png', 'image/gif', 'image/webp'}
OUTPUT_SIZE = (1600, 1600)
WATERMARK_TEXT = 'MIRIN RENTAL - VERIFICATION ONLY'

_DATA_URL = re.compile(r'^data:([^;]+);base64,(.+)$', re.DOTALL)


def _decode(data):
    content_type = None
    encoded = data
    match = _DATA_URL.match(data)
    if match:
        content_type, encoded = match.group(1), match.group(2)
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise BadRequest(f"Unsupported file type: {content_type}")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise BadRequest("Image is not valid base64")


def _open_image(raw):
    try:
        image = Image.open(BytesIO(raw))
        image.load()
    except (UnidentifiedImageError, OSError):
        raise BadRequest("Uploaded file is not an image")
    return image.convert('RGB')


def _target_dir(folder):
    safe_folder = re.sub(r'[^a-zA-Z0-9_-]', '_', folder)
    path = os.path.join(current_app.config['UPLOAD_FOLDER'], safe_folder)
    os.makedirs(path, exist_ok=True)
    return safe_folder, path


def _save(image, folder, prefix):
    safe_folder, path = _target_dir(folder)
    filename = f"{prefix}{uuid.uuid4().hex[:12]}.png"
    image.save(os.path.join(path, filename), format='PNG')
    key = f"{safe_folder}/{filename}"
    return {'key': key, 'url': f"/uploads/{key}"}


def watermark(image, text=WATERMARK_TEXT):
    base = image.convert('RGBA')
    overlay = Image.new('RGBA', base.size, (255, 255, 255, 0))
    draw = ImageDraw.Draw(overlay)
    font = ImageFont.load_default()
    step = max(base.size[1] // 6, 12)
    for y in range(0, base.size[1], step):
        draw.text((10, y), text, fill=(255, 0, 0, 110), font=font)
    return Image.alpha_composite(base, overlay).convert('RGB')


def store_base64_image(data, folder='uploads', with_watermark=False):
    """Decodes a base64 (or data URL) image, thumbnails it and writes it under UPLOAD_FOLDER.

    Returns the stored key and public URL, plus the watermarked copy when requested.
    """
    image = _open_image(_decode(data))
    image.thumbnail(OUTPUT_SIZE)
    stored = _save(image, folder, '')
    if with_watermark:
        marked = _save(watermark(image), folder, 'wm_')
        stored['watermarked_key'] = marked['key']
        stored['watermarked_url'] = marked['url']
    return stored


def delete_stored_file(key):
    path = os.path.join(current_app.config['UPLOAD_FOLDER'], key.lstrip('/'))
    if os.path.exists(path):
        os.remove(path)
