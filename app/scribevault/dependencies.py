"""
FastAPI dependency providers.

Each collaborator is built once from the settings and injected into the
routes; tests replace them through ``app.dependency_overrides``.
"""

from functools import lru_cache

from configs.config import get_config
from scribevault.database.backup_repository import BackupRepository
from scribevault.database.transcript_repository import TranscriptRepository
from scribevault.deletion.coordinator import DeletionCoordinator
from scribevault.history.reconciliation import HistoryService
from scribevault.provider.client import AssemblyAIClient
from scribevault.provider.poller import Poller
from scribevault.transcription.orchestrator import JobOrchestrator
from scribevault.transcription.registry import JobRegistry

cfg = get_config()


@lru_cache()
def get_provider_client() -> AssemblyAIClient:
    return AssemblyAIClient.from_config(cfg)


@lru_cache()
def get_transcript_repository() -> TranscriptRepository:
    return TranscriptRepository()


@lru_cache()
def get_backup_repository() -> BackupRepository:
    return BackupRepository()


@lru_cache()
def get_orchestrator() -> JobOrchestrator:
    client = get_provider_client()
    return JobOrchestrator(
        client=client,
        poller=Poller.from_config(client, cfg),
        transcripts=get_transcript_repository(),
        backups=get_backup_repository(),
        transcripts_dir=cfg.TRANSCRIPTS_DIR,
    )


@lru_cache()
def get_job_registry() -> JobRegistry:
    return JobRegistry(ttl_seconds=cfg.JOB_REGISTRY_TTL_SECONDS)


@lru_cache()
def get_history_service() -> HistoryService:
    return HistoryService(
        client=get_provider_client(),
        backups=get_backup_repository(),
        transcripts=get_transcript_repository(),
        page_size=cfg.HISTORY_PAGE_SIZE,
    )


@lru_cache()
def get_deletion_coordinator() -> DeletionCoordinator:
    return DeletionCoordinator(
        transcripts=get_transcript_repository(),
        client=get_provider_client(),
        transcripts_dir=cfg.TRANSCRIPTS_DIR,
        upload_dir=cfg.UPLOAD_DIR,
    )
