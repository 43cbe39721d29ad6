from .archive import ArchiveResult, VideoArchiver
from .dedup import InProgressSet
from .job_queue import (
    ArchivePipeline,
    ArchiveWorkerPool,
    CompletionBatcher,
    IdFetcher,
    PipelineConfig,
    PipelineStats,
    archive_ids,
)
from .paths import is_already_archived, resolve_output_root, shard_path
from .runtime import get_runtime_info
from .work_source import WorkSourceClient, WorkSourceError

__all__ = [
    "ArchivePipeline",
    "ArchiveResult",
    "ArchiveWorkerPool",
    "CompletionBatcher",
    "IdFetcher",
    "InProgressSet",
    "PipelineConfig",
    "PipelineStats",
    "VideoArchiver",
    "WorkSourceClient",
    "WorkSourceError",
    "archive_ids",
    "get_runtime_info",
    "is_already_archived",
    "resolve_output_root",
    "shard_path",
]
