"""Download and classify the files attached to a work order."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from signdesk.core.config import settings
from signdesk.core.exceptions import StorageError
from signdesk.database.models import WorkOrderFile
from signdesk.services.storage_service import StorageService, storage_key_from_url
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")
PDF_MIME_TYPE = "application/pdf"


class FileKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


@dataclass
class CollectedFile:
    """A downloaded file ready to be sent to a vision model."""
    file_id: object
    file_name: str
    kind: FileKind
    mime_type: str
    data: bytes


@dataclass
class CollectionResult:
    files: List[CollectedFile] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    unsupported: List[str] = field(default_factory=list)


def _extension(name: Optional[str]) -> str:
    if not name or "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()


def classify_file(file_name: Optional[str], mime_type: Optional[str] = None) -> FileKind:
    """Classify by filename extension, falling back to the declared MIME type."""
    extension = _extension(file_name)
    if extension == "pdf":
        return FileKind.PDF
    if extension in IMAGE_EXTENSIONS:
        return FileKind.IMAGE
    if extension:
        return FileKind.UNSUPPORTED

    mime = (mime_type or "").lower()
    if mime == PDF_MIME_TYPE:
        return FileKind.PDF
    if mime.startswith("image/") and mime.split("/", 1)[1] in IMAGE_EXTENSIONS:
        return FileKind.IMAGE
    return FileKind.UNSUPPORTED


def resolve_mime_type(kind: FileKind, file_name: Optional[str], mime_type: Optional[str]) -> str:
    if kind == FileKind.PDF:
        return PDF_MIME_TYPE
    if mime_type and mime_type.startswith("image/"):
        return mime_type
    extension = _extension(file_name) or "jpeg"
    if extension == "jpg":
        extension = "jpeg"
    return f"image/{extension}"


class FileCollector:
    """Fetches the supported files of a work order from object storage.

    Unsupported files are never downloaded. Download failures are logged
    and skipped so the remaining files can still be analyzed.
    """

    def __init__(self, storage: StorageService, bucket: Optional[str] = None):
        self.storage = storage
        self.bucket = bucket or settings.work_order_bucket

    async def collect(self, files: Sequence[WorkOrderFile]) -> CollectionResult:
        result = CollectionResult()
        pending = []
        for record in files:
            name = record.file_name or storage_key_from_url(record.file_url)
            kind = classify_file(name, record.mime_type)
            if kind == FileKind.UNSUPPORTED:
                LOGGER.info(
                    f"Skipping unsupported file {name}",
                    extra={"file_id": str(record.id), "mime_type": record.mime_type},
                )
                result.unsupported.append(name)
                continue
            pending.append((record, name, kind))

        downloads = await asyncio.gather(
            *(self._download(record, name, kind) for record, name, kind in pending)
        )
        for (record, name, _), collected in zip(pending, downloads):
            if collected is None:
                result.failed.append(name)
            else:
                result.files.append(collected)

        LOGGER.info(
            f"Collected {len(result.files)} file(s)",
            extra={
                "failed": len(result.failed),
                "unsupported": len(result.unsupported),
            },
        )
        return result

    async def _download(
        self, record: WorkOrderFile, name: str, kind: FileKind
    ) -> Optional[CollectedFile]:
        key = storage_key_from_url(record.file_url)
        try:
            data = await self.storage.download_file(self.bucket, key)
        except StorageError as e:
            LOGGER.warning(
                f"Failed to download file {name}: {e}",
                extra={"file_id": str(record.id), "storage_key": key},
            )
            return None

        return CollectedFile(
            file_id=record.id,
            file_name=name,
            kind=kind,
            mime_type=resolve_mime_type(kind, name, record.mime_type),
            data=data,
        )
