"""
Storage Gateway - IPA and icon uploads, signed URLs

Validates uploads (extension, MIME type, size, base64 integrity) before they
reach the storage bucket and hands out time-limited signed URLs.
"""

import base64
import binascii
import re
from typing import Optional, Dict, Any

from config import settings
from store.models import Clock, utc_now
from store.repository import StoreBackend, StoreBackendError
from utils.logger import logger

IPA_URL_TTL_SECONDS = 60 * 60 * 24 * 7        # returned right after upload
IPA_DOWNLOAD_TTL_SECONDS = 60 * 60            # pre-download link
ICON_DISPLAY_TTL_SECONDS = 60 * 60 * 24       # icons embedded in listings
ICON_URL_TTL_SECONDS = 60 * 60 * 24 * 365     # explicit icon URL requests

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

GB = 1024 * 1024 * 1024
MB = 1024 * 1024


class UploadRejectedError(Exception):
    """Raised when an upload fails validation. Carries the HTTP status to use."""

    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def format_size(num_bytes: float) -> str:
    if num_bytes >= GB:
        return f"{num_bytes / GB:.2f}GB"
    return f"{num_bytes / MB:.1f}MB"


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", name)


def decode_base64(data: str, error_message: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise UploadRejectedError(error_message) from e


class StorageGateway:
    """Object storage operations for IPA files and app icons"""

    def __init__(
        self,
        backend: StoreBackend,
        clock: Clock = utc_now,
        ipa_bucket: Optional[str] = None,
        assets_bucket: Optional[str] = None,
        max_ipa_bytes: Optional[int] = None,
        max_icon_bytes: Optional[int] = None,
    ):
        self.backend = backend
        self.clock = clock
        self.ipa_bucket = ipa_bucket or settings.IPA_BUCKET
        self.assets_bucket = assets_bucket or settings.APP_ASSETS_BUCKET
        self.max_ipa_bytes = max_ipa_bytes or settings.MAX_IPA_BYTES
        self.max_icon_bytes = max_icon_bytes or settings.MAX_ICON_BYTES

    def _timestamp_ms(self) -> int:
        return int(self.clock().timestamp() * 1000)

    def _full_path(self, bucket: str, path: str) -> str:
        return f"{bucket}/{path}"

    # ------------------------------------------------------------------
    # IPA files
    # ------------------------------------------------------------------

    def ipa_object_name(self, filename: Optional[str]) -> str:
        name = sanitize_filename(filename or "app.ipa")
        if not name.lower().endswith(".ipa"):
            raise UploadRejectedError("Only .ipa files are allowed")
        return f"{self._timestamp_ms()}-{name}"

    def upload_ipa(self, data: bytes, filename: Optional[str]) -> Dict[str, Any]:
        """
        Store an IPA and return its path plus a 7-day signed URL.

        A signed URL failure does not fail the upload; the client can ask for
        a download link later.
        """
        path = self.ipa_object_name(filename)
        if len(data) > self.max_ipa_bytes:
            raise UploadRejectedError(
                f"File too large. Maximum size is {format_size(self.max_ipa_bytes)} "
                f"(your file is ~{format_size(len(data))}).",
                status_code=413,
            )

        self.backend.upload_object(self.ipa_bucket, path, data, "application/octet-stream")
        result = {"path": path, "fullPath": self._full_path(self.ipa_bucket, path)}

        try:
            result["signedUrl"] = self.backend.create_signed_url(self.ipa_bucket, path, IPA_URL_TTL_SECONDS)
            result["expiresIn"] = "7 days"
        except StoreBackendError as e:
            logger.warning(f"Signed URL generation failed after upload of {path}: {e}")
            result["message"] = "File uploaded. Signed URL generation failed - use /download to get a link."

        return result

    def upload_ipa_base64(self, encoded: str, filename: Optional[str]) -> Dict[str, Any]:
        # validate name and size before paying for the decode
        self.ipa_object_name(filename)
        estimated = (len(encoded) * 3 + 3) // 4
        if estimated > self.max_ipa_bytes:
            raise UploadRejectedError(
                f"File too large. Maximum size is {format_size(self.max_ipa_bytes)} "
                f"(your file is ~{format_size(estimated)}).",
                status_code=413,
            )

        data = decode_base64(encoded, "Invalid base64 file. The file may be corrupted.")
        return self.upload_ipa(data, filename)

    def ipa_download_url(self, path: str) -> Dict[str, Any]:
        signed_url = self.backend.create_signed_url(self.ipa_bucket, path, IPA_DOWNLOAD_TTL_SECONDS)
        return {"signedUrl": signed_url, "expiresIn": "1 hour"}

    # ------------------------------------------------------------------
    # Icons
    # ------------------------------------------------------------------

    def upload_icon(self, data: bytes, filename: Optional[str], content_type: Optional[str]) -> Dict[str, Any]:
        content_type = content_type or "image/jpeg"
        extension = ALLOWED_IMAGE_TYPES.get(content_type)
        if extension is None:
            raise UploadRejectedError("Only image files (JPEG, PNG, WebP, GIF) are allowed")

        if len(data) > self.max_icon_bytes:
            raise UploadRejectedError(
                f"Icon too large. Maximum size is {format_size(self.max_icon_bytes)}.",
                status_code=413,
            )

        name = sanitize_filename(filename or "icon")
        path = f"icons/{self._timestamp_ms()}-{name}.{extension}"
        self.backend.upload_object(self.assets_bucket, path, data, content_type)
        return {"path": path, "fullPath": self._full_path(self.assets_bucket, path)}

    def upload_icon_base64(self, encoded: str, filename: Optional[str], content_type: Optional[str]) -> Dict[str, Any]:
        if (content_type or "image/jpeg") not in ALLOWED_IMAGE_TYPES:
            raise UploadRejectedError("Only image files (JPEG, PNG, WebP, GIF) are allowed")
        data = decode_base64(encoded, "Invalid base64. File may be corrupted or not an image.")
        return self.upload_icon(data, filename, content_type)

    def icon_url(self, path: str) -> str:
        return self.backend.create_signed_url(self.assets_bucket, path, ICON_URL_TTL_SECONDS)

    def icon_display_url(self, path: Optional[str]) -> str:
        """Signed icon URL for listings; empty string when missing or unavailable"""
        if not path:
            return ""
        try:
            return self.backend.create_signed_url(self.assets_bucket, path, ICON_DISPLAY_TTL_SECONDS)
        except StoreBackendError as e:
            logger.warning(f"Icon URL unavailable for {path}: {e}")
            return ""
