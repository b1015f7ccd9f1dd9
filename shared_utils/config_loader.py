from pydantic_settings import BaseSettings
from pydantic import field_validator, ConfigDict
from functools import lru_cache
from typing import Dict, Optional
import json
import logging
import boto3

from shared_utils.constants import Defaults, ModelIDs

logger = logging.getLogger(__name__)

# Settings fields that may be filled from the Secrets Manager JSON document
_SECRET_FIELDS = ("openai_api_key", "stream_secret_key", "stream_server_token")


def get_secrets_from_aws(secret_name: str, region: str = Defaults.AWS_REGION) -> Dict[str, str]:
    """Fetch a JSON secret document from AWS Secrets Manager.

    Args:
        secret_name: Name of the secret in Secrets Manager
        region: AWS region

    Returns:
        Mapping of the secret's string keys, or an empty dict if the fetch fails
    """
    try:
        client = boto3.client("secretsmanager", region_name=region)
        response = client.get_secret_value(SecretId=secret_name)
        if "SecretString" in response:
            secret = json.loads(response["SecretString"])
            return {k: v for k, v in secret.items() if isinstance(v, str)}
        return {}
    except Exception as e:
        logger.warning(f"Could not fetch secret from Secrets Manager: {e}")
        return {}


class Settings(BaseSettings):
    """Application configuration with environment variable precedence.

    Precedence: 1) Environment Variables > 2) .env file > 3) Class defaults

    Defaults describe a self-contained local setup (in-memory stores,
    in-process jobs); production overrides storage_backend/job_backend.
    """
    # Application metadata
    app_name: str = "Meeting Lifecycle Service"
    app_version: str = "1.0.0"
    app_description: str = "Meeting scheduling, call lifecycle and transcript summarization"

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    environment: str = "development"
    log_level: str = Defaults.LOG_LEVEL

    # Record storage
    storage_backend: str = "memory"
    aws_region: str = Defaults.AWS_REGION
    aws_endpoint_url: str = ""
    dynamodb_meetings_table: str = "Meetings"
    dynamodb_agents_table: str = "Agents"
    dynamodb_users_table: str = "Users"

    # Transcript processing jobs
    job_backend: str = "thread"
    job_max_retries: int = Defaults.JOB_MAX_RETRIES
    job_retry_wait_seconds: float = Defaults.JOB_RETRY_WAIT_SECONDS
    job_retry_max_wait_seconds: float = Defaults.JOB_RETRY_MAX_WAIT_SECONDS
    ecs_cluster_name: str = ""
    ecs_worker_task_def: str = ""
    ecs_worker_subnets: str = ""
    ecs_worker_security_group: str = ""
    ecs_worker_container_name: str = "meeting-worker"

    # Summarization LLM
    llm_provider: str = "openai"
    openai_api_key: Optional[str] = None
    openai_llm_model_id: str = ModelIDs.OPENAI_SUMMARY_MODEL
    bedrock_region: str = Defaults.AWS_REGION
    bedrock_llm_model_id: str = ModelIDs.BEDROCK_CLAUDE_3_HAIKU
    summarizer_timeout_seconds: float = Defaults.SUMMARIZER_TIMEOUT

    # Video-calling platform (Stream)
    stream_api_key: str = ""
    stream_secret_key: str = ""
    stream_server_token: str = ""
    stream_base_url: str = "https://video.stream-io-api.com"
    call_type: str = Defaults.CALL_TYPE

    # Realtime voice platform
    openai_base_url: str = "https://api.openai.com/v1"
    openai_realtime_model: str = ModelIDs.OPENAI_REALTIME_MODEL
    openai_realtime_sdp_model: str = ModelIDs.OPENAI_REALTIME_SDP_MODEL
    openai_realtime_voice: str = Defaults.VOICE

    request_timeout_seconds: float = Defaults.REQUEST_TIMEOUT

    # Optional Secrets Manager document holding the keys in _SECRET_FIELDS
    secrets_name: Optional[str] = None

    model_config = ConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator('llm_provider')
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        """Validate LLM provider is supported."""
        valid_providers = {"openai", "bedrock"}
        if v.lower() not in valid_providers:
            raise ValueError(f"llm_provider must be one of {valid_providers}, got {v}")
        return v.lower()

    @field_validator('storage_backend')
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        """Validate record store backend is supported."""
        valid_backends = {"memory", "dynamodb"}
        if v.lower() not in valid_backends:
            raise ValueError(f"storage_backend must be one of {valid_backends}, got {v}")
        return v.lower()

    @field_validator('job_backend')
    @classmethod
    def validate_job_backend(cls, v: str) -> str:
        """Validate job queue backend is supported."""
        valid_backends = {"thread", "ecs"}
        if v.lower() not in valid_backends:
            raise ValueError(f"job_backend must be one of {valid_backends}, got {v}")
        return v.lower()

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is recognized."""
        valid_envs = {"development", "staging", "production"}
        if v.lower() not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}, got {v}")
        return v.lower()

    @field_validator('job_max_retries')
    @classmethod
    def validate_job_max_retries(cls, v: int) -> int:
        """Retry count cannot be negative."""
        if v < 0:
            raise ValueError(f"job_max_retries must be >= 0, got {v}")
        return v

    @property
    def webhook_signing_configured(self) -> bool:
        """Whether a shared secret for webhook signatures is set."""
        return bool(self.stream_secret_key)


@lru_cache()
def get_settings() -> Settings:
    """Load and cache application settings.

    When SECRETS_NAME is provided, any secret field left empty in the
    environment is filled from AWS Secrets Manager.

    Returns:
        Validated Settings instance

    Raises:
        ValueError: If settings are invalid
    """
    settings = Settings()

    if settings.secrets_name:
        secrets = get_secrets_from_aws(settings.secrets_name, settings.aws_region)
        for field in _SECRET_FIELDS:
            if secrets.get(field) and not getattr(settings, field):
                setattr(settings, field, secrets[field])
                logger.debug(f"fetched_{field}_from_secrets_manager")

    if not settings.webhook_signing_configured:
        logger.warning("stream_secret_key not configured; every webhook will be dropped")

    logger.info(
        "configuration_loaded environment=%s storage=%s jobs=%s llm=%s",
        settings.environment,
        settings.storage_backend,
        settings.job_backend,
        settings.llm_provider,
    )

    return settings
