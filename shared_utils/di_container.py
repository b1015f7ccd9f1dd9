"""
Dependency injection container for managing application dependencies.
Centralizes adapter/provider creation and lifecycle management.

Backends are chosen from settings: ``storage_backend`` (memory | dynamodb)
and ``job_backend`` (thread | ecs).
"""

from typing import Optional
import logging

from core_intelligence.providers import LLMProviderBase
from core_intelligence.providers.factory import LLMProviderFactory
from shared_utils.config_loader import get_settings
from shared_utils.constants import JobBackend, LogScope, StorageBackend


logger = logging.getLogger(__name__)


class DIContainer:
    """Singleton dependency injection container."""

    _instance: Optional['DIContainer'] = None
    _llm_provider: Optional[LLMProviderBase] = None

    # adapter singletons
    _meeting_store: Optional[object] = None
    _agent_store: Optional[object] = None
    _user_directory: Optional[object] = None
    _job_queue: Optional[object] = None
    _call_platform: Optional[object] = None
    _call_platform_checked: bool = False
    _transcript_source: Optional[object] = None
    _voice_session_port: Optional[object] = None

    # service singletons
    _lifecycle_service: Optional[object] = None
    _agent_service: Optional[object] = None
    _call_event_ingress: Optional[object] = None
    _processing_service: Optional[object] = None
    _voice_session_service: Optional[object] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def reset(self):
        """Reset container (useful for testing)."""
        self._llm_provider = None
        self._meeting_store = None
        self._agent_store = None
        self._user_directory = None
        self._job_queue = None
        self._call_platform = None
        self._call_platform_checked = False
        self._transcript_source = None
        self._voice_session_port = None
        self._lifecycle_service = None
        self._agent_service = None
        self._call_event_ingress = None
        self._processing_service = None
        self._voice_session_service = None

    def get_llm_provider(self) -> LLMProviderBase:
        """Get or create LLM provider (lazy singleton).

        Returns:
            Initialized LLM provider.

        Raises:
            RuntimeError: If provider initialization fails.
        """
        if self._llm_provider is None:
            logger.info(
                "Initializing LLM provider",
                extra={"scope": LogScope.CONFIG}
            )
            try:
                self._llm_provider = LLMProviderFactory.create()
            except Exception as e:
                logger.error(
                    "Failed to initialize LLM provider",
                    extra={"scope": LogScope.CONFIG, "error": str(e)}
                )
                raise RuntimeError(f"LLM provider initialization failed: {e}") from e

        return self._llm_provider

    # ------------------------------------------------------------------
    # Adapter accessors
    # ------------------------------------------------------------------

    def get_meeting_store(self):
        """Get or create the meeting store (lazy singleton)."""
        if self._meeting_store is None:
            settings = get_settings()
            if settings.storage_backend == StorageBackend.DYNAMODB:
                from adapters.dynamo_meeting_store import DynamoMeetingStoreAdapter
                self._meeting_store = DynamoMeetingStoreAdapter(
                    table_name=settings.dynamodb_meetings_table,
                    region=settings.aws_region,
                    endpoint_url=settings.aws_endpoint_url,
                )
                logger.info("Initialized DynamoMeetingStoreAdapter")
            else:
                from adapters.in_memory_store import InMemoryMeetingStoreAdapter
                self._meeting_store = InMemoryMeetingStoreAdapter()
                logger.info("Initialized InMemoryMeetingStoreAdapter (local dev)")
        return self._meeting_store

    def get_agent_store(self):
        """Get or create the agent store (lazy singleton)."""
        if self._agent_store is None:
            settings = get_settings()
            if settings.storage_backend == StorageBackend.DYNAMODB:
                from adapters.dynamo_agent_store import DynamoAgentStoreAdapter
                self._agent_store = DynamoAgentStoreAdapter(
                    table_name=settings.dynamodb_agents_table,
                    region=settings.aws_region,
                    endpoint_url=settings.aws_endpoint_url,
                )
                logger.info("Initialized DynamoAgentStoreAdapter")
            else:
                from adapters.in_memory_store import InMemoryAgentStoreAdapter
                self._agent_store = InMemoryAgentStoreAdapter()
                logger.info("Initialized InMemoryAgentStoreAdapter (local dev)")
        return self._agent_store

    def get_user_directory(self):
        """Get or create the user directory (lazy singleton)."""
        if self._user_directory is None:
            settings = get_settings()
            if settings.storage_backend == StorageBackend.DYNAMODB:
                from adapters.dynamo_agent_store import DynamoUserDirectoryAdapter
                self._user_directory = DynamoUserDirectoryAdapter(
                    table_name=settings.dynamodb_users_table,
                    region=settings.aws_region,
                    endpoint_url=settings.aws_endpoint_url,
                )
                logger.info("Initialized DynamoUserDirectoryAdapter")
            else:
                from adapters.in_memory_store import InMemoryUserDirectoryAdapter
                self._user_directory = InMemoryUserDirectoryAdapter()
                logger.info("Initialized InMemoryUserDirectoryAdapter (local dev)")
        return self._user_directory

    def get_job_queue(self):
        """Get or create the processing job queue (lazy singleton).

        ``thread`` runs jobs inside this process so in-memory stores are
        shared with the API; ``ecs`` starts one worker task per job.
        """
        if self._job_queue is None:
            settings = get_settings()
            if settings.job_backend == JobBackend.ECS:
                from adapters.job_queue import EcsJobQueueAdapter
                self._job_queue = EcsJobQueueAdapter(
                    cluster=settings.ecs_cluster_name,
                    task_definition=settings.ecs_worker_task_def,
                    subnets=[s.strip() for s in settings.ecs_worker_subnets.split(",") if s.strip()],
                    security_group=settings.ecs_worker_security_group,
                    container_name=settings.ecs_worker_container_name,
                    region=settings.aws_region,
                )
                logger.info("Initialized EcsJobQueueAdapter")
            else:
                from adapters.job_queue import ThreadJobQueueAdapter
                # Resolved at run time: the processing service depends on the lifecycle service
                self._job_queue = ThreadJobQueueAdapter(
                    runner=lambda request: self.get_processing_service().run(request)
                )
                logger.info("Initialized ThreadJobQueueAdapter (local dev)")
        return self._job_queue

    def get_call_platform(self):
        """Get or create the Stream adapter; None when Stream is not configured."""
        if not self._call_platform_checked:
            settings = get_settings()
            self._call_platform_checked = True
            if settings.stream_api_key and settings.stream_server_token:
                from adapters.http_clients import StreamCallPlatformAdapter
                self._call_platform = StreamCallPlatformAdapter(
                    api_key=settings.stream_api_key,
                    server_token=settings.stream_server_token,
                    base_url=settings.stream_base_url,
                    call_type=settings.call_type,
                    timeout=settings.request_timeout_seconds,
                )
                logger.info("Initialized StreamCallPlatformAdapter")
            else:
                logger.warning(
                    "Call platform not configured; start/end run without it",
                    extra={"scope": LogScope.CONFIG}
                )
        return self._call_platform

    def get_transcript_source(self):
        """Get or create HttpTranscriptSourceAdapter (lazy singleton)."""
        if self._transcript_source is None:
            from adapters.http_clients import HttpTranscriptSourceAdapter
            self._transcript_source = HttpTranscriptSourceAdapter(
                timeout=get_settings().request_timeout_seconds,
            )
            logger.info("Initialized HttpTranscriptSourceAdapter")
        return self._transcript_source

    def get_voice_session_port(self):
        """Get or create OpenAIRealtimeSessionAdapter (lazy singleton)."""
        if self._voice_session_port is None:
            from adapters.http_clients import OpenAIRealtimeSessionAdapter
            settings = get_settings()
            self._voice_session_port = OpenAIRealtimeSessionAdapter(
                api_key=settings.openai_api_key or "",
                base_url=settings.openai_base_url,
                model=settings.openai_realtime_model,
                sdp_model=settings.openai_realtime_sdp_model,
                voice=settings.openai_realtime_voice,
                timeout=settings.request_timeout_seconds,
            )
            logger.info("Initialized OpenAIRealtimeSessionAdapter")
        return self._voice_session_port

    # ------------------------------------------------------------------
    # Service accessors
    # ------------------------------------------------------------------

    def get_lifecycle_service(self):
        """Get or create LifecycleService (lazy singleton)."""
        if self._lifecycle_service is None:
            from services.lifecycle_service import LifecycleService

            self._lifecycle_service = LifecycleService(
                meeting_store=self.get_meeting_store(),
                agent_store=self.get_agent_store(),
                job_queue=self.get_job_queue(),
                call_platform=self.get_call_platform(),
            )
            logger.info("Initialized LifecycleService")
        return self._lifecycle_service

    def get_agent_service(self):
        """Get or create AgentService (lazy singleton)."""
        if self._agent_service is None:
            from services.agent_service import AgentService

            self._agent_service = AgentService(
                agent_store=self.get_agent_store(),
                meeting_store=self.get_meeting_store(),
            )
            logger.info("Initialized AgentService")
        return self._agent_service

    def get_call_event_ingress(self):
        """Get or create CallEventIngress (lazy singleton)."""
        if self._call_event_ingress is None:
            from services.call_event_ingress import CallEventIngress

            self._call_event_ingress = CallEventIngress(
                lifecycle=self.get_lifecycle_service(),
                agent_store=self.get_agent_store(),
                signing_secret=get_settings().stream_secret_key,
            )
            logger.info("Initialized CallEventIngress")
        return self._call_event_ingress

    def get_processing_service(self):
        """Get or create TranscriptProcessingService (lazy singleton)."""
        if self._processing_service is None:
            from services.transcript_processing import TranscriptProcessingService

            settings = get_settings()
            self._processing_service = TranscriptProcessingService(
                lifecycle=self.get_lifecycle_service(),
                transcript_source=self.get_transcript_source(),
                user_directory=self.get_user_directory(),
                llm_provider=self.get_llm_provider(),
                max_retries=settings.job_max_retries,
                retry_wait_seconds=settings.job_retry_wait_seconds,
                retry_max_wait_seconds=settings.job_retry_max_wait_seconds,
            )
            logger.info("Initialized TranscriptProcessingService")
        return self._processing_service

    def get_voice_session_service(self):
        """Get or create VoiceSessionService (lazy singleton)."""
        if self._voice_session_service is None:
            from services.voice_bridge import VoiceSessionService

            self._voice_session_service = VoiceSessionService(
                voice_port=self.get_voice_session_port(),
            )
            logger.info("Initialized VoiceSessionService")
        return self._voice_session_service


# Global singleton instance
_container = DIContainer()


def get_di_container() -> DIContainer:
    """Get global DI container instance."""
    return _container
