"""
Upload services for buildstash.

- UploadPlanner: negotiates the transfer plan
- TransferOrchestrator: executes it and finalizes
- PublicationPipeline: sequences resolver, planner and orchestrator
"""

from .ci import build_ci_provenance, format_duration
from .planner import UploadPlanner, build_upload_payload
from .service import PublicationInputs, PublicationPipeline, describe_file
from .transfer import TransferOrchestrator, build_complete_payload

__all__ = [
    "PublicationInputs",
    "PublicationPipeline",
    "TransferOrchestrator",
    "UploadPlanner",
    "build_ci_provenance",
    "build_complete_payload",
    "build_upload_payload",
    "describe_file",
    "format_duration",
]
