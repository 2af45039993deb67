"""Default processor that simulates per-type file analysis."""

import random
from typing import Optional

from common.logging_config import get_logger
from common.types import FailureReason, FileRecord, ProcessingFailure, ProcessingOutcome, ProcessingSuccess

logger = get_logger(__name__)


class SimulatedProcessor:
    """
    Produces plausible analysis results without touching file contents.

    Images report dimensions, CSV files a row count, PDFs page and word
    counts, other text its size. Anything else is reported as unsupported.
    Thumbnail generation belongs to an image library and is not attempted
    here.

    The service never schedules empty uploads; the empty-image check covers
    records handed to the processor directly.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    async def process(self, record: FileRecord) -> ProcessingOutcome:
        mime_type = record.mime_type

        if mime_type.startswith("image/"):
            if record.size <= 0:
                return ProcessingFailure(FailureReason.CORRUPTED, "empty image payload")
            return ProcessingSuccess({
                "width": 1920,
                "height": 1080,
                "format": mime_type.split("/", 1)[1],
                "thumbnail_created": False,
            })

        if mime_type == "text/csv":
            return ProcessingSuccess({"rows": self._rng.randrange(1000)})

        if mime_type == "application/pdf":
            return ProcessingSuccess({
                "pages": self._rng.randint(1, 50),
                "text_extracted": True,
                "word_count": self._rng.randrange(10000),
            })

        if mime_type.startswith("text/"):
            return ProcessingSuccess({"bytes": record.size})

        logger.debug(f"No analysis available for {mime_type}")
        return ProcessingFailure(FailureReason.UNSUPPORTED, f"no analysis for {mime_type}")
