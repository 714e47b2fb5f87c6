import base64
import binascii
import re
import time
from typing import Optional, Tuple

from google.cloud import storage

from config import IMAGES_BUCKET_NAME

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,", re.IGNORECASE)


def decode_image_base64(value: str) -> Tuple[bytes, str]:
    """
    Decodes a base64 image, with or without a data URI prefix.
    Returns (bytes, content_type); content type defaults to image/jpeg.
    """
    text = (value or "").strip()
    content_type = "image/jpeg"
    match = _DATA_URI_RE.match(text)
    if match:
        content_type = match.group("mime").lower()
        text = text[match.end():]
    if not text:
        raise ValueError("画像が必要です")
    try:
        return base64.b64decode(text, validate=True), content_type
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image: {e}")


class GcsService:
    def __init__(self, client: Optional[storage.Client] = None, bucket_name: str = IMAGES_BUCKET_NAME):
        self._client = client
        self.bucket_name = bucket_name

    @property
    def client(self) -> storage.Client:
        if self._client is None:
            self._client = storage.Client()
        return self._client

    @property
    def bucket(self):
        return self.client.bucket(self.bucket_name)

    def upload_book_image(self, user_id: str, data: bytes, file_name: str,
                          content_type: str = "image/jpeg") -> str:
        """Uploads a cover image and returns its public URL."""
        if not user_id:
            raise ValueError("user_id is required")
        safe_name = re.sub(r'[\\/:*?"<>|\s]', '_', file_name or "book-cover.jpg")
        path = f"users/{user_id}/books/{int(time.time() * 1000)}_{safe_name}"

        blob = self.bucket.blob(path)
        blob.upload_from_string(data, content_type=content_type)
        print(f"Uploaded cover image to gs://{self.bucket_name}/{path}")
        return blob.public_url

    def upload_book_image_base64(self, user_id: str, image_base64: str,
                                 file_name: str = "book-cover.jpg") -> str:
        data, content_type = decode_image_base64(image_base64)
        return self.upload_book_image(user_id, data, file_name, content_type)
