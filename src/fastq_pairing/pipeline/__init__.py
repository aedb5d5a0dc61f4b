# re-exports for fastq_pairing.pipeline, excluding the CLI modules which run with python -m

from .jobs import JobListError, build_jobs
from .status import Status, StatusLedger, StatusRecord

__all__ = [
    "JobListError",
    "Status",
    "StatusLedger",
    "StatusRecord",
    "build_jobs",
]
