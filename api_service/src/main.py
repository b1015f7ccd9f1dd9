"""
FastAPI backend for the meeting lifecycle service.

Endpoints:
    GET    /health                                Health check
    GET    /api/meetings                          List meetings (status, limit, offset)
    POST   /api/meetings                          Create meeting
    GET    /api/meetings/stats                    Per-status counts
    GET    /api/meetings/{meeting_id}             Meeting + agent + summary sections
    PATCH  /api/meetings/{meeting_id}             Edit upcoming meeting
    DELETE /api/meetings/{meeting_id}             Delete meeting
    POST   /api/meetings/{meeting_id}/start       upcoming → active
    POST   /api/meetings/{meeting_id}/end         active → processing | completed
    POST   /api/meetings/{meeting_id}/cancel      upcoming | active → cancelled
    GET    /api/meetings/{meeting_id}/transcript  Stored transcript
    GET    /api/agents                            List agents
    POST   /api/agents                            Create agent
    GET    /api/agents/{agent_id}                 Get agent
    PATCH  /api/agents/{agent_id}                 Edit agent
    DELETE /api/agents/{agent_id}                 Delete agent (409 while in use)
    POST   /api/webhook/stream                    Call-platform webhook (always 200)
    POST   /api/openai-session                    Realtime voice client secret

The authenticated user arrives in the ``X-User-Id`` header, set by the
auth gateway in front of this service.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
import uvicorn

from core_intelligence.summary import parse_summary_sections
from domain.models import AuthenticatedCaller, MeetingStatus
from shared_utils.config_loader import get_settings
from shared_utils.constants import APIEndpoints, Headers, LogScope
from shared_utils.di_container import get_di_container
from shared_utils.error_handler import (
    AppException,
    AuthenticationError,
    ValidationError,
    handle_error,
)
from shared_utils.logging_utils import ContextualLogger, configure_log_level


# ---------------------------------------------------------------------------
# Application bootstrap
# ---------------------------------------------------------------------------

settings = get_settings()
configure_log_level(settings.log_level)
logger = ContextualLogger(scope=LogScope.API)

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=settings.app_description,
)

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

logger.info(
    "api_initialized",
    environment=settings.environment,
    storage_backend=settings.storage_backend,
    job_backend=settings.job_backend,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _caller(request: Request) -> AuthenticatedCaller:
    user_id = (request.headers.get(Headers.USER_ID) or "").strip()
    if not user_id:
        raise AuthenticationError()
    return AuthenticatedCaller.for_user(user_id)


def _parse_status(value: Optional[str]) -> Optional[MeetingStatus]:
    if value is None or value == "":
        return None
    try:
        return MeetingStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown status: {value}",
            context={"allowed": [s.value for s in MeetingStatus]},
        )


async def _json_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _error_response(e: Exception, event: str) -> JSONResponse:
    if isinstance(e, AppException):
        logger.warning(event, error_code=e.error_code)
        return JSONResponse(status_code=e.http_status, content=e.to_dict())
    error_response = handle_error(e, scope=LogScope.API)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get(APIEndpoints.HEALTH)
def health_check() -> dict:
    """Health check endpoint."""
    logger.debug("health_check_requested")
    return {
        "status": "healthy",
        "environment": settings.environment,
        "storage_backend": settings.storage_backend,
        "job_backend": settings.job_backend,
    }


# ---------------------------------------------------------------------------
# Meetings
# ---------------------------------------------------------------------------

@app.get(APIEndpoints.MEETINGS)
async def list_meetings(
    request: Request,
    status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> JSONResponse:
    """List the caller's meetings, newest first."""
    try:
        caller = _caller(request)
        meetings = get_di_container().get_lifecycle_service().list(
            caller, status=_parse_status(status), limit=limit, offset=offset
        )
        return JSONResponse(content=[m.model_dump(mode="json") for m in meetings])
    except Exception as e:
        return _error_response(e, "list_meetings_error")


@app.post(APIEndpoints.MEETINGS)
@limiter.limit("30/minute")
async def create_meeting(request: Request) -> JSONResponse:
    """Create an upcoming meeting.

    Body JSON:
        name (str), agent_id (str), description (str, optional),
        scheduled_at (ISO-8601 or epoch, optional).
    """
    try:
        caller = _caller(request)
        body = await _json_body(request)
        meeting = get_di_container().get_lifecycle_service().create(
            caller,
            name=body.get("name"),
            agent_id=body.get("agent_id"),
            description=body.get("description"),
            scheduled_at=body.get("scheduled_at"),
        )
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=meeting.model_dump(mode="json"),
        )
    except Exception as e:
        return _error_response(e, "create_meeting_error")


@app.get(APIEndpoints.MEETING_STATS)
async def meeting_stats(request: Request) -> JSONResponse:
    """Per-status meeting counts for the caller."""
    try:
        caller = _caller(request)
        stats = get_di_container().get_lifecycle_service().get_stats(caller)
        return JSONResponse(content=stats.model_dump())
    except Exception as e:
        return _error_response(e, "meeting_stats_error")


@app.get(APIEndpoints.MEETING)
async def get_meeting(request: Request, meeting_id: str) -> JSONResponse:
    """Meeting with its agent and the summary split into sections."""
    try:
        caller = _caller(request)
        view = get_di_container().get_lifecycle_service().get_by_id(caller, meeting_id)
        body = view.model_dump(mode="json")
        body["summary_sections"] = (
            parse_summary_sections(view.meeting.summary).model_dump()
            if view.meeting.summary
            else None
        )
        return JSONResponse(content=body)
    except Exception as e:
        return _error_response(e, "get_meeting_error")


@app.patch(APIEndpoints.MEETING)
@limiter.limit("30/minute")
async def update_meeting(request: Request, meeting_id: str) -> JSONResponse:
    """Edit name, description or scheduled_at of an upcoming meeting."""
    try:
        caller = _caller(request)
        body = await _json_body(request)
        meeting = get_di_container().get_lifecycle_service().update(caller, meeting_id, body)
        return JSONResponse(content=meeting.model_dump(mode="json"))
    except Exception as e:
        return _error_response(e, "update_meeting_error")


@app.delete(APIEndpoints.MEETING)
@limiter.limit("30/minute")
async def delete_meeting(request: Request, meeting_id: str) -> JSONResponse:
    try:
        caller = _caller(request)
        meeting = get_di_container().get_lifecycle_service().delete(caller, meeting_id)
        return JSONResponse(content={"id": meeting.id, "deleted": True})
    except Exception as e:
        return _error_response(e, "delete_meeting_error")


@app.post(APIEndpoints.MEETING_START)
@limiter.limit("30/minute")
async def start_meeting(request: Request, meeting_id: str) -> JSONResponse:
    try:
        caller = _caller(request)
        meeting = get_di_container().get_lifecycle_service().start(caller, meeting_id)
        return JSONResponse(content=meeting.model_dump(mode="json"))
    except Exception as e:
        return _error_response(e, "start_meeting_error")


@app.post(APIEndpoints.MEETING_END)
@limiter.limit("30/minute")
async def end_meeting(request: Request, meeting_id: str) -> JSONResponse:
    """End an active meeting.

    Body JSON:
        notes (str, optional): the user's notes for the meeting.
    """
    try:
        caller = _caller(request)
        body = await _json_body(request)
        meeting = get_di_container().get_lifecycle_service().end(
            caller, meeting_id, notes=body.get("notes")
        )
        return JSONResponse(content=meeting.model_dump(mode="json"))
    except Exception as e:
        return _error_response(e, "end_meeting_error")


@app.post(APIEndpoints.MEETING_CANCEL)
@limiter.limit("30/minute")
async def cancel_meeting(request: Request, meeting_id: str) -> JSONResponse:
    try:
        caller = _caller(request)
        meeting = get_di_container().get_lifecycle_service().cancel(caller, meeting_id)
        return JSONResponse(content=meeting.model_dump(mode="json"))
    except Exception as e:
        return _error_response(e, "cancel_meeting_error")


@app.get(APIEndpoints.MEETING_TRANSCRIPT)
async def get_meeting_transcript(request: Request, meeting_id: str) -> JSONResponse:
    try:
        caller = _caller(request)
        view = get_di_container().get_lifecycle_service().get_transcript(caller, meeting_id)
        return JSONResponse(content=view.model_dump(mode="json"))
    except Exception as e:
        return _error_response(e, "get_transcript_error")


# ---------------------------------------------------------------------------
# Agents
# ---------------------------------------------------------------------------

@app.get(APIEndpoints.AGENTS)
async def list_agents(request: Request) -> JSONResponse:
    try:
        caller = _caller(request)
        agents = get_di_container().get_agent_service().list(caller)
        return JSONResponse(content=[a.model_dump(mode="json") for a in agents])
    except Exception as e:
        return _error_response(e, "list_agents_error")


@app.post(APIEndpoints.AGENTS)
@limiter.limit("30/minute")
async def create_agent(request: Request) -> JSONResponse:
    """Body JSON: name (str), instructions (str)."""
    try:
        caller = _caller(request)
        body = await _json_body(request)
        agent = get_di_container().get_agent_service().create(
            caller, name=body.get("name"), instructions=body.get("instructions")
        )
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=agent.model_dump(mode="json"),
        )
    except Exception as e:
        return _error_response(e, "create_agent_error")


@app.get(APIEndpoints.AGENT)
async def get_agent(request: Request, agent_id: str) -> JSONResponse:
    try:
        caller = _caller(request)
        agent = get_di_container().get_agent_service().get_by_id(caller, agent_id)
        return JSONResponse(content=agent.model_dump(mode="json"))
    except Exception as e:
        return _error_response(e, "get_agent_error")


@app.patch(APIEndpoints.AGENT)
@limiter.limit("30/minute")
async def update_agent(request: Request, agent_id: str) -> JSONResponse:
    try:
        caller = _caller(request)
        body = await _json_body(request)
        agent = get_di_container().get_agent_service().update(caller, agent_id, body)
        return JSONResponse(content=agent.model_dump(mode="json"))
    except Exception as e:
        return _error_response(e, "update_agent_error")


@app.delete(APIEndpoints.AGENT)
@limiter.limit("30/minute")
async def delete_agent(request: Request, agent_id: str) -> JSONResponse:
    try:
        caller = _caller(request)
        agent = get_di_container().get_agent_service().delete(caller, agent_id)
        return JSONResponse(content={"id": agent.id, "deleted": True})
    except Exception as e:
        return _error_response(e, "delete_agent_error")


# ---------------------------------------------------------------------------
# Call-platform webhook
# ---------------------------------------------------------------------------

@app.post(APIEndpoints.WEBHOOK)
async def call_platform_webhook(request: Request) -> JSONResponse:
    """Receive a call-platform event.

    Always acknowledges with 200 so the platform does not retry events this
    service has already dropped or applied.
    """
    body = await request.body()
    signature = request.headers.get(Headers.SIGNATURE)
    try:
        ack = get_di_container().get_call_event_ingress().handle(body, signature)
    except Exception as e:
        handle_error(e, scope=LogScope.WEBHOOK)
        ack = {"status": "ok"}
    return JSONResponse(content=ack)


# ---------------------------------------------------------------------------
# Realtime voice session
# ---------------------------------------------------------------------------

@app.post(APIEndpoints.VOICE_SESSION)
@limiter.limit("20/minute")
async def create_voice_session(request: Request) -> JSONResponse:
    """Issue a short-lived realtime client secret.

    Body JSON:
        instructions (str, optional), agentName (str, optional).
    """
    try:
        body = await _json_body(request)
        session = get_di_container().get_voice_session_service().create_session(
            instructions=body.get("instructions"),
            agent_name=body.get("agentName"),
        )
        return JSONResponse(
            content={"clientSecret": session.client_secret, "sessionId": session.session_id}
        )
    except Exception as e:
        return _error_response(e, "voice_session_error")


if __name__ == "__main__":
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower()
    )
