from .models import ConversionResult, Job, JobStatus, MediaFile, MediaKind, Scenario
from .service import ConversionService, get_conversion_service

__all__ = [
    "ConversionResult",
    "ConversionService",
    "Job",
    "JobStatus",
    "MediaFile",
    "MediaKind",
    "Scenario",
    "get_conversion_service",
]
