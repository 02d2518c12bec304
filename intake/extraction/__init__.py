"""
Extraction gateway package.

Public surface:
  - ExtractionResultV1, ExtractionMetadata   (schemas)
  - ExtractionGateway, LLMExtractionGateway  (gateway)
  - PromptDataCache                          (cache)
"""

from intake.extraction.cache import PromptDataCache
from intake.extraction.gateway import ExtractionGateway, LLMExtractionGateway
from intake.extraction.schemas import ExtractionMetadata, ExtractionResultV1

__all__ = [
    "ExtractionGateway",
    "ExtractionMetadata",
    "ExtractionResultV1",
    "LLMExtractionGateway",
    "PromptDataCache",
]
