"""
Constants management.
Centralized configuration for all magic values, event names, and defaults.
"""

from enum import Enum
from typing import Final


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LLMProvider(str, Enum):
    """Supported LLM providers for summarization."""
    BEDROCK = "bedrock"
    OPENAI = "openai"


class StorageBackend(str, Enum):
    """Supported record store backends."""
    MEMORY = "memory"
    DYNAMODB = "dynamodb"


class JobBackend(str, Enum):
    """Supported job queue backends."""
    THREAD = "thread"
    ECS = "ecs"


# Model IDs
class ModelIDs:
    """Centralized model identifiers."""
    OPENAI_SUMMARY_MODEL: Final[str] = "gpt-4o-mini"
    BEDROCK_CLAUDE_3_HAIKU: Final[str] = "anthropic.claude-3-haiku-20240307-v1:0"
    OPENAI_REALTIME_MODEL: Final[str] = "gpt-4o-realtime-preview"
    OPENAI_REALTIME_SDP_MODEL: Final[str] = "gpt-4o-realtime-preview-2024-12-17"


# Default values
class Defaults:
    """Defaults for lifecycle, processing and integrations."""
    JOB_MAX_RETRIES: Final[int] = 2
    JOB_RETRY_WAIT_SECONDS: Final[float] = 2.0
    JOB_RETRY_MAX_WAIT_SECONDS: Final[float] = 30.0
    SUMMARIZER_TIMEOUT: Final[float] = 60.0
    REQUEST_TIMEOUT: Final[float] = 30.0
    LIST_LIMIT: Final[int] = 50
    LIST_LIMIT_MAX: Final[int] = 100
    TRANSITION_ATTEMPTS: Final[int] = 3
    LOG_LEVEL: Final[str] = "INFO"
    AWS_REGION: Final[str] = "eu-west-2"
    CALL_TYPE: Final[str] = "default"
    VOICE: Final[str] = "alloy"
    EMPTY_TRANSCRIPT_SUMMARY: Final[str] = "No transcript available."
    UNKNOWN_SPEAKER: Final[str] = "Unknown"


# Logging scopes
class LogScope:
    """Standardized logging scope names."""
    CONFIG = "config_loader"
    API = "api"
    PARSER = "transcript_parser"
    ERROR_HANDLER = "error_handler"
    PROVIDER = "provider"
    LIFECYCLE = "lifecycle"
    AGENTS = "agents"
    WEBHOOK = "webhook"
    PROCESSING = "transcript_processing"
    VOICE_BRIDGE = "voice_bridge"
    WORKER = "worker"
    ADAPTER = "adapter"


# API endpoints and paths
class APIEndpoints:
    """API route definitions."""
    HEALTH = "/health"
    MEETINGS = "/api/meetings"
    MEETING_STATS = "/api/meetings/stats"
    MEETING = "/api/meetings/{meeting_id}"
    MEETING_START = "/api/meetings/{meeting_id}/start"
    MEETING_END = "/api/meetings/{meeting_id}/end"
    MEETING_CANCEL = "/api/meetings/{meeting_id}/cancel"
    MEETING_TRANSCRIPT = "/api/meetings/{meeting_id}/transcript"
    AGENTS = "/api/agents"
    AGENT = "/api/agents/{agent_id}"
    WEBHOOK = "/api/webhook/stream"
    VOICE_SESSION = "/api/openai-session"


# Headers
class Headers:
    """HTTP header names."""
    SIGNATURE: Final[str] = "x-signature"
    USER_ID: Final[str] = "x-user-id"


# Background job events
class JobEvents:
    """Names of asynchronous job trigger events."""
    MEETING_PROCESSING: Final[str] = "meetings/processing"


# Call platform webhook event types
class CallEventTypes:
    """Wire names of call-platform webhook events."""
    SESSION_STARTED: Final[str] = "call.session_started"
    SESSION_ENDED: Final[str] = "call.session_ended"
    TRANSCRIPTION_READY: Final[str] = "call.transcription_ready"
    PARTICIPANT_JOINED: Final[str] = "call.session_participant_joined"


# Raw transcript record types
class TranscriptRecordTypes:
    """JSONL record types emitted by the call platform transcriber."""
    SPEECH_STOPPED: Final[str] = "speech.user.stopped"


# Error codes
class ErrorCode(str, Enum):
    """Standardized error codes for consistency."""
    INVALID_CONFIG = "INVALID_CONFIG"
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    AGENT_IN_USE = "AGENT_IN_USE"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    STORAGE_ERROR = "STORAGE_ERROR"
