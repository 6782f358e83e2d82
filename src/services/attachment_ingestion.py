"""Upload ingestion: turn raw uploaded bytes into stored :class:`Attachment` records.

The declared content type decides how a file is treated; bytes are never
sniffed and images are never resized.

    - images (jpeg/jpg/png/gif/webp) → ``data:image/<fmt>;base64,...``,
      with ``jpg`` normalised to ``jpeg``
    - PDFs → page text extracted with PyMuPDF plus a small SVG placeholder
      preview

``resolve()`` is the read side used by generate/stream requests: it turns
a list of ids back into attachments, skipping (and logging) any id that
has expired or whose record is incomplete.
"""

from __future__ import annotations

import asyncio
import base64
import io
from collections.abc import Iterable

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from PIL import Image, UnidentifiedImageError

from src.interfaces.attachment_store import IAttachmentStore
from src.models.attachment import Attachment, AttachmentKind
from src.utils.errors import UnsupportedFileError

logger = structlog.get_logger(logger_name=__name__)

ALLOWED_IMAGE_TYPES: dict[str, str] = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}
PDF_TYPE = "application/pdf"

_PDF_PREVIEW_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="100" height="100" viewBox="0 0 100 100">'
    '<rect width="100" height="100" fill="#f3f4f6"/>'
    '<text x="50" y="50" font-family="Arial" font-size="14" fill="#6b7280" '
    'text-anchor="middle" dominant-baseline="middle">PDF</text>'
    "</svg>"
)
PDF_PREVIEW_DATA_URL = "data:image/svg+xml;base64," + base64.b64encode(
    _PDF_PREVIEW_SVG.encode("utf-8")
).decode("ascii")


class AttachmentIngestionService:
    """Validates, converts and stores uploaded files."""

    def __init__(self, store: IAttachmentStore, max_file_bytes: int = 20 * 1024 * 1024) -> None:
        self._store = store
        self._max_file_bytes = max_file_bytes

    @property
    def max_file_mb(self) -> int:
        return self._max_file_bytes // (1024 * 1024)

    async def ingest(self, filename: str, content_type: str | None, data: bytes) -> Attachment:
        """Convert one uploaded file and store it.

        Raises
        ------
        UnsupportedFileError
            Unsupported content type, oversized file, or unreadable content.
        """
        content_type = (content_type or "").split(";")[0].strip().lower()
        if len(data) > self._max_file_bytes:
            raise UnsupportedFileError(
                f"El archivo excede el tamaño máximo permitido de {self.max_file_mb}MB"
            )

        if content_type in ALLOWED_IMAGE_TYPES:
            attachment = await asyncio.to_thread(
                self._ingest_image, filename, ALLOWED_IMAGE_TYPES[content_type], data
            )
        elif content_type == PDF_TYPE:
            attachment = await asyncio.to_thread(self._ingest_pdf, filename, data)
        else:
            raise UnsupportedFileError(
                "Tipo de archivo no permitido. Solo se aceptan imágenes "
                "(JPEG, PNG, GIF, WebP) y PDFs."
            )

        await self._store.put(attachment)
        logger.info(
            "attachment_ingested",
            attachment_id=attachment.id,
            filename=filename,
            kind=attachment.kind.value,
            format=attachment.format,
            size_bytes=attachment.size_bytes,
        )
        return attachment

    async def resolve(self, attachment_ids: Iterable[str]) -> list[Attachment]:
        """Fetch attachments by id, skipping missing or incomplete records."""
        resolved: list[Attachment] = []
        for attachment_id in attachment_ids:
            attachment = await self._store.get(attachment_id)
            if attachment is None:
                logger.warning("attachment_missing", attachment_id=attachment_id)
                continue
            if not attachment.is_complete:
                logger.warning(
                    "attachment_incomplete",
                    attachment_id=attachment_id,
                    kind=attachment.kind.value,
                )
                continue
            resolved.append(attachment)
        return resolved

    async def get(self, attachment_id: str) -> Attachment | None:
        return await self._store.get(attachment_id)

    async def delete(self, attachment_id: str) -> bool:
        return await self._store.delete(attachment_id)

    # ------------------------------------------------------------------
    # Sync helpers (executed via asyncio.to_thread)
    # ------------------------------------------------------------------

    @staticmethod
    def _ingest_image(filename: str, image_format: str, data: bytes) -> Attachment:
        # Pillow only checks that the bytes decode; format comes from the
        # declared content type.
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            logger.warning("image_unreadable", filename=filename, error=str(exc))
            raise UnsupportedFileError("Error al procesar la imagen") from exc

        media_type = f"image/{image_format}"
        payload = base64.b64encode(data).decode("ascii")
        return Attachment(
            display_name=filename,
            kind=AttachmentKind.IMAGE,
            format=image_format,
            size_bytes=len(data),
            media_type=media_type,
            inline_base64=f"data:{media_type};base64,{payload}",
        )

    @staticmethod
    def _ingest_pdf(filename: str, data: bytes) -> Attachment:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (fitz.FileDataError, RuntimeError, ValueError) as exc:
            logger.warning("pdf_open_failed", filename=filename, error=str(exc))
            raise UnsupportedFileError("Error al procesar el PDF") from exc

        try:
            pages = [page.get_text("text") for page in doc]
        finally:
            doc.close()

        text = "\n".join(p.strip() for p in pages if p.strip())
        if not text:
            logger.warning("pdf_no_text_extracted", filename=filename, pages=len(pages))

        return Attachment(
            display_name=filename,
            kind=AttachmentKind.DOCUMENT,
            format="pdf",
            size_bytes=len(data),
            media_type=PDF_TYPE,
            inline_base64=PDF_PREVIEW_DATA_URL,
            extracted_text=text or None,
        )
