"""
Pydantic models for buildstash.
"""

from .base import BuildstashBaseModel, ImmutableModel, WireModel
from .config import ApiConfig, BuildstashConfig, LoggingConfig, TransferConfig, UploadConfig
from .context import BuildContext, RunInfo
from .registry import (
    BuildRecord,
    FileTransfer,
    FileUploadInfo,
    PartUrlResponse,
    PendingUpload,
    PresignedData,
    UploadPart,
    UploadPlan,
    UploadRequestResponse,
)
from .upload import CIProvenance, FileDescriptor, UploadRequest, VersionInfo
from .vcs import VCProvenance

__all__ = [
    "ApiConfig",
    "BuildContext",
    "BuildRecord",
    "BuildstashBaseModel",
    "BuildstashConfig",
    "CIProvenance",
    "FileDescriptor",
    "FileTransfer",
    "FileUploadInfo",
    "ImmutableModel",
    "LoggingConfig",
    "PartUrlResponse",
    "PendingUpload",
    "PresignedData",
    "RunInfo",
    "TransferConfig",
    "UploadConfig",
    "UploadPart",
    "UploadPlan",
    "UploadRequest",
    "UploadRequestResponse",
    "VCProvenance",
    "VersionInfo",
    "WireModel",
]
