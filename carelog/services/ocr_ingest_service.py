"""First step of the OCR flow: run Vision text detection on a stored file."""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from carelog.core.exceptions import ValidationError
from carelog.repositories.source_doc_repository import SourceDocRepository
from carelog.services.base_service import BaseService
from carelog.services.storage_service import StorageService
from carelog.services.vision_ocr import VisionOCRService
from carelog.utils.logging import get_logger

LOGGER = get_logger(__name__)


class OCRIngestService(BaseService):
    """Store the raw Vision response for a file as the SourceDoc's ``ocr_json``."""

    def __init__(self, session: AsyncSession, storage: StorageService, ocr: VisionOCRService):
        super().__init__(session)
        self.storage = storage
        self.ocr = ocr
        self.docs = SourceDocRepository(session)

    def validate(self, storage_path: str, *args, **kwargs):
        if not storage_path or not storage_path.strip():
            raise ValidationError("storagePath required")

    async def run(self, storage_path: str, source_doc_id: Optional[UUID] = None) -> UUID:
        if source_doc_id is None:
            doc = await self.docs.create_source_doc(storage_path)
            await self.session.commit()
        else:
            doc = await self.docs.get_required(source_doc_id)
        doc_id = doc.id

        signed_url = await self.storage.create_signed_url(storage_path)
        ocr_json = await self.ocr.annotate(signed_url)

        await self.docs.update_ocr_json(doc_id, ocr_json)
        await self.session.commit()

        LOGGER.info("Stored OCR response", extra={"source_doc_id": str(doc_id)})
        return doc_id
