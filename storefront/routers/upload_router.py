import logging
import random
import time
from pathlib import Path
from typing import Dict

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from .. import config
from ..auth import get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])

CHUNK_SIZE = 64 * 1024


def _unique_filename(original: str) -> str:
    ext = Path(original or "").suffix.lower()
    return f"product-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"


@router.post("/")
def upload_image(
    image: UploadFile = File(..., description="Product image (max 5MB)"),
    current_admin: Dict = Depends(get_current_admin),
):
    if not (image.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only images are allowed")

    upload_dir = Path(config.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    filename = _unique_filename(image.filename)
    target = upload_dir / filename

    written = 0
    try:
        with target.open("wb") as out:
            while chunk := image.file.read(CHUNK_SIZE):
                written += len(chunk)
                if written > config.MAX_UPLOAD_BYTES:
                    raise HTTPException(status_code=400, detail="Image is larger than 5MB")
                out.write(chunk)
    except HTTPException:
        target.unlink(missing_ok=True)
        raise

    logger.info("Image %s uploaded by user %s (%d bytes)", filename, current_admin["id"], written)
    return {
        "message": "Image uploaded successfully",
        "imageUrl": f"/uploads/{filename}",
        "filename": filename,
    }
