"""Dependency injection providers for FastAPI."""

from functools import lru_cache

from rugbatch.batch.base import BatchJobService
from rugbatch.batch.gemini import GeminiBatchService
from rugbatch.config import Settings, get_settings
from rugbatch.eventlog import EventLog, create_event_log
from rugbatch.imagegen.direct import DirectImageGenerator
from rugbatch.pipeline.manager import PipelineManager
from rugbatch.storage.output_store import OutputStore


@lru_cache
def get_event_log() -> EventLog:
    settings = get_settings()
    return create_event_log(settings.event_log_capacity, settings.event_log_path)


@lru_cache
def get_batch_service() -> BatchJobService:
    return GeminiBatchService()


@lru_cache
def get_output_store() -> OutputStore:
    return OutputStore()


@lru_cache
def get_pipeline_manager() -> PipelineManager:
    return PipelineManager(
        events=get_event_log(), service_factory=get_batch_service, store=get_output_store()
    )


def get_image_generator() -> DirectImageGenerator:
    return DirectImageGenerator()


def get_app_settings() -> Settings:
    return get_settings()
