"""
Zeene Storefront - File Upload Utilities
=========================================
Payment receipt upload, validation, and optimization.
Files land under UPLOAD_DIR and are served from /static.
"""

import logging
import os
import re
import uuid
from typing import Optional, Tuple

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from config.settings import (
    UPLOAD_DIR, ALLOWED_IMAGE_EXTENSIONS, MAX_FILE_SIZE,
    RECEIPT_IMAGE_MAX_SIZE, BASE_URL,
)
from common.exceptions import ValidationError

logger = logging.getLogger("storefront.upload")


def save_receipt(
    upload_file: UploadFile,
    max_size: Tuple[int, int] = RECEIPT_IMAGE_MAX_SIZE,
    subfolder: str = "receipts",
) -> str:
    """
    Save an uploaded payment receipt image.

    Args:
        upload_file: The uploaded file from FastAPI
        max_size: Maximum dimensions (width, height) to resize to
        subfolder: Subfolder within UPLOAD_DIR

    Returns:
        Public URL of the stored image

    Raises:
        ValidationError: empty upload, wrong type, too large, or unreadable image
    """
    if not upload_file or not upload_file.filename:
        raise ValidationError("Please attach your payment receipt", {"receipt": "Receipt is required"})

    # Validate file size
    upload_file.file.seek(0, 2)
    file_size = upload_file.file.tell()
    upload_file.file.seek(0)
    if file_size > MAX_FILE_SIZE:
        msg = f"Maximum file size is {MAX_FILE_SIZE // (1024 * 1024)}MB"
        raise ValidationError(msg, {"receipt": msg})

    # Validate extension
    ext = os.path.splitext(upload_file.filename)[1].lower()
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        msg = f"Invalid file type. Allowed: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}"
        raise ValidationError(msg, {"receipt": msg})

    target_dir = os.path.join(UPLOAD_DIR, subfolder) if subfolder else UPLOAD_DIR
    os.makedirs(target_dir, exist_ok=True)

    unique_name = f"{uuid.uuid4().hex}{ext}"
    file_path = os.path.join(target_dir, unique_name)

    try:
        img = Image.open(upload_file.file)
        img.thumbnail(max_size)
        if ext in (".jpg", ".jpeg"):
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            img.save(file_path, optimize=True, quality=80)
        else:
            img.save(file_path)
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Receipt image rejected ({upload_file.filename}): {e}")
        raise ValidationError("Please upload an image (PNG, JPG, etc.)", {"receipt": "Unreadable image"})

    return f"{receipt_url_prefix(subfolder)}{unique_name}"


def receipt_url_prefix(subfolder: str = "receipts") -> str:
    return f"{BASE_URL.rstrip('/')}/static/uploads/{subfolder + '/' if subfolder else ''}"


_RECEIPT_URL_RE = re.compile(
    re.escape(receipt_url_prefix())
    + r"[0-9a-f]{32}(?:"
    + "|".join(re.escape(ext) for ext in sorted(ALLOWED_IMAGE_EXTENSIONS))
    + r")"
)


def is_receipt_url(url: Optional[str]) -> bool:
    """True only for URLs that save_receipt hands out."""
    return bool(url) and _RECEIPT_URL_RE.fullmatch(url) is not None
