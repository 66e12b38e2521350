"""Object store abstraction. Local filesystem for dev, Cloudinary for production."""
import asyncio
import hashlib
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import aiohttp

from docvault.config import Settings
from docvault.errors import ObjectStoreError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StoredBlob:
    """Where a blob ended up: opaque reference plus public URL."""
    reference: str
    url: str


class ObjectStore(ABC):
    """Stores and deletes blobs. Every failure surfaces as ObjectStoreError."""

    @abstractmethod
    async def put(self, path: Path, filename: str, content_type: str) -> StoredBlob:
        """Upload the file at ``path`` and return its durable location."""

    @abstractmethod
    async def delete(self, reference: str) -> None:
        """Delete a blob. Deleting an already-missing blob is not an error."""

    def local_path(self, reference: str) -> Optional[Path]:
        """On-disk path for streaming downloads, or None for remote stores."""
        return None


class LocalObjectStore(ObjectStore):
    """Blobs as flat files under one directory, served by a static mount."""

    def __init__(self, base_path: str, url_prefix: str = "/uploads"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.url_prefix = url_prefix.rstrip("/")

    async def put(self, path: Path, filename: str, content_type: str) -> StoredBlob:
        name = f"{uuid.uuid4()}{Path(filename).suffix.lower()}"
        target = self.base_path / name
        try:
            async with aiofiles.open(path, "rb") as src, aiofiles.open(target, "wb") as dst:
                while True:
                    chunk = await src.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    await dst.write(chunk)
        except OSError as e:
            await self._discard(target)
            raise ObjectStoreError(f"Local write failed for {name}: {e}") from e
        return StoredBlob(reference=name, url=f"{self.url_prefix}/{name}")

    async def delete(self, reference: str) -> None:
        try:
            await aiofiles.os.remove(self._resolve(reference))
        except FileNotFoundError:
            logger.info("Blob %s already absent from local storage", reference)
        except OSError as e:
            raise ObjectStoreError(f"Local delete failed for {reference}: {e}") from e

    def local_path(self, reference: str) -> Path:
        return self._resolve(reference)

    def _resolve(self, reference: str) -> Path:
        # References are bare file names; anything else could escape base_path.
        if not reference or Path(reference).name != reference or reference in (".", ".."):
            raise ObjectStoreError(f"Invalid local storage reference: {reference!r}")
        return self.base_path / reference

    async def _discard(self, target: Path) -> None:
        try:
            await aiofiles.os.remove(target)
        except OSError:
            pass


class CloudinaryObjectStore(ObjectStore):
    """Signed uploads/destroys against the Cloudinary REST API.

    References have the form ``<resource_type>/<public_id>`` because destroy
    calls must name the resource type Cloudinary assigned on upload.
    """

    API_BASE = "https://api.cloudinary.com/v1_1"

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "",
        timeout: float = 60.0,
    ):
        if not (cloud_name and api_key and api_secret):
            raise ValueError("Cloudinary storage requires cloud name, API key and API secret")
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    def sign(self, params: dict) -> str:
        """Cloudinary signature: sha1 of sorted ``k=v`` pairs joined by ``&`` plus the secret."""
        to_sign = "&".join(
            f"{key}={value}" for key, value in sorted(params.items()) if value not in (None, "")
        )
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode("utf-8")).hexdigest()

    async def put(self, path: Path, filename: str, content_type: str) -> StoredBlob:
        params = {
            "folder": self.folder,
            "timestamp": int(time.time()),
            "unique_filename": "true",
            "use_filename": "true",
        }
        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except OSError as e:
            raise ObjectStoreError(f"Could not read upload buffer {path}: {e}") from e

        form = self._signed_form(params)
        form.add_field("file", data, filename=filename, content_type=content_type)
        body = await self._post(f"{self.API_BASE}/{self.cloud_name}/auto/upload", form)

        try:
            reference = f"{body.get('resource_type', 'raw')}/{body['public_id']}"
            return StoredBlob(reference=reference, url=body["secure_url"])
        except KeyError as e:
            raise ObjectStoreError(f"Cloudinary upload response missing {e}") from e

    async def delete(self, reference: str) -> None:
        resource_type, _, public_id = reference.partition("/")
        if not public_id:
            raise ObjectStoreError(f"Invalid Cloudinary reference: {reference!r}")
        params = {"public_id": public_id, "timestamp": int(time.time())}
        body = await self._post(
            f"{self.API_BASE}/{self.cloud_name}/{resource_type}/destroy", self._signed_form(params)
        )
        result = body.get("result")
        if result == "not found":
            logger.info("Blob %s already absent from Cloudinary", reference)
        elif result != "ok":
            raise ObjectStoreError(f"Cloudinary destroy for {reference} returned {result!r}")

    def signed_params(self, params: dict) -> dict:
        """Form fields for a signed call; empty values are neither signed nor sent."""
        fields = {key: str(value) for key, value in params.items() if value not in (None, "")}
        fields["api_key"] = self.api_key
        fields["signature"] = self.sign(params)
        return fields

    def _signed_form(self, params: dict) -> aiohttp.FormData:
        form = aiohttp.FormData()
        for key, value in self.signed_params(params).items():
            form.add_field(key, value)
        return form

    async def _post(self, url: str, form: aiohttp.FormData) -> dict:
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as session:
                async with session.post(url, data=form) as resp:
                    body = await resp.json(content_type=None)
                    status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ObjectStoreError(f"Cloudinary request to {url} failed: {e!r}") from e

        if status >= 400 or not isinstance(body, dict):
            raise ObjectStoreError(f"Cloudinary returned HTTP {status}: {body}")
        return body


def build_object_store(settings: Settings) -> ObjectStore:
    """Pick the object store implementation from FILE_STORAGE_TYPE."""
    if settings.FILE_STORAGE_TYPE == "local":
        return LocalObjectStore(settings.FILE_STORAGE_PATH, settings.LOCAL_FILE_URL_PREFIX)
    if settings.FILE_STORAGE_TYPE == "cloudinary":
        return CloudinaryObjectStore(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            folder=settings.CLOUDINARY_FOLDER,
            timeout=settings.OBJECT_STORE_TIMEOUT,
        )
    raise ValueError(f"Unknown storage type: {settings.FILE_STORAGE_TYPE}")
