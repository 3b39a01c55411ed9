"""FastAPI API routes for the event digest service.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.  Domain errors are raised as
``EventDigestError`` subclasses and converted to JSON by
``ErrorHandlingMiddleware``; routes never build error responses themselves.

# ─── API ROUTE MAP (Junior Developer Guide) ───────────────────────────
#
# Endpoint                                         Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/users                                    POST    Create a user
# /api/v1/users/{uid}                              GET     Fetch a user
# /api/v1/users/{uid}/city                         PUT     Set city (profile dirty)
# /api/v1/users/{uid}/preferences                  GET/PUT Read/replace preferences
# /api/v1/users/{uid}/discover                     POST    Run discovery now
# /api/v1/users/{uid}/exclusions                   GET     List exclusion rules
# /api/v1/users/{uid}/exclusions                   POST    Add exclusion rule
# /api/v1/users/{uid}/exclusions                   DELETE  Delete all rules
# /api/v1/users/{uid}/exclusions/{rid}             DELETE  Delete one rule
# /api/v1/users/{uid}/sources                      GET     List event sources
# /api/v1/users/{uid}/sources                      POST    Add event source
# /api/v1/users/{uid}/sources/{sid}                DELETE  Delete event source
# /api/v1/users/{uid}/newsletters                  GET     List newsletters
# /api/v1/users/{uid}/newsletters/generate         POST    Generate newsletter
# /api/v1/users/{uid}/newsletters/{nid}/send       POST    Email a newsletter
# /api/v1/health                                   GET     Health + providers
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request, status

from src.api.schemas import (
    CreateUserRequest,
    DeleteAllResponse,
    DiscoverResponse,
    ErrorResponse,
    EventSourceRequest,
    EventSourceResponse,
    ExclusionRequest,
    ExclusionResponse,
    GenerateNewsletterResponse,
    HealthResponse,
    NewsletterResponse,
    PreferencesRequest,
    PreferencesResponse,
    SendNewsletterResponse,
    SetCityRequest,
    UserResponse,
)
from src.interfaces.user_store import IUserStore
from src.models.user import ExclusionRule, UserPreferences
from src.pipeline.orchestrator import EventDiscoveryPipeline
from src.services.exclusion_service import ExclusionService
from src.services.newsletter_service import NewsletterService
from src.services.profile_service import ProfileService
from src.utils.errors import NotFoundError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_ERRORS: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Dependencies (populated on app.state by main.build_components)
# ---------------------------------------------------------------------------


def _get_user_store(request: Request) -> IUserStore:
    return request.app.state.user_store


def _get_profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


def _get_exclusion_service(request: Request) -> ExclusionService:
    return request.app.state.exclusion_service


def _get_pipeline(request: Request) -> EventDiscoveryPipeline:
    return request.app.state.pipeline


def _get_newsletter_service(request: Request) -> NewsletterService:
    return request.app.state.newsletter_service


UserStoreDep = Annotated[IUserStore, Depends(_get_user_store)]
ProfileDep = Annotated[ProfileService, Depends(_get_profile_service)]
ExclusionDep = Annotated[ExclusionService, Depends(_get_exclusion_service)]
PipelineDep = Annotated[EventDiscoveryPipeline, Depends(_get_pipeline)]
NewsletterDep = Annotated[NewsletterService, Depends(_get_newsletter_service)]
ShowDump = Annotated[bool, Query(description="Include raw discovery responses")]


# ---------------------------------------------------------------------------
# Users, city, preferences
# ---------------------------------------------------------------------------


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
    summary="Create a user",
)
async def create_user(body: CreateUserRequest, users: UserStoreDep) -> UserResponse:
    user = await users.create_user(body.email.strip(), (body.name or "").strip() or None)
    return UserResponse.model_validate(user, from_attributes=True)


@router.get("/users/{user_id}", response_model=UserResponse, responses=_ERRORS)
async def get_user(user_id: int, users: UserStoreDep) -> UserResponse:
    user = await users.get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return UserResponse.model_validate(user, from_attributes=True)


@router.put("/users/{user_id}/city", response_model=UserResponse, responses=_ERRORS)
async def set_city(user_id: int, body: SetCityRequest, profiles: ProfileDep) -> UserResponse:
    user = await profiles.set_city(user_id, body.city)
    return UserResponse.model_validate(user, from_attributes=True)


@router.get(
    "/users/{user_id}/preferences", response_model=PreferencesResponse, responses=_ERRORS
)
async def get_preferences(user_id: int, users: UserStoreDep) -> PreferencesResponse:
    if await users.get_user(user_id) is None:
        raise NotFoundError("User not found")
    preferences = await users.get_preferences(user_id)
    return PreferencesResponse.model_validate(preferences, from_attributes=True)


@router.put(
    "/users/{user_id}/preferences", response_model=PreferencesResponse, responses=_ERRORS
)
async def set_preferences(
    user_id: int, body: PreferencesRequest, profiles: ProfileDep
) -> PreferencesResponse:
    saved = await profiles.set_preferences(user_id, UserPreferences(**body.model_dump()))
    return PreferencesResponse.model_validate(saved, from_attributes=True)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


@router.post(
    "/users/{user_id}/discover",
    response_model=DiscoverResponse,
    responses={**_ERRORS, 502: {"model": ErrorResponse}},
    summary="Run event discovery for a user",
)
async def discover(
    user_id: int, pipeline: PipelineDep, show_dump: ShowDump = False
) -> DiscoverResponse:
    _logger.info("discovery_requested", user_id=user_id, show_dump=show_dump)
    result = await pipeline.discover_for_user(user_id)
    return DiscoverResponse.from_result(result, show_dump=show_dump)


# ---------------------------------------------------------------------------
# Exclusion rules ("hates")
# ---------------------------------------------------------------------------


def _exclusion(rule: ExclusionRule) -> ExclusionResponse:
    return ExclusionResponse(
        id=rule.id, type=rule.type.value, value=rule.value, created_at=rule.created_at
    )


@router.get("/users/{user_id}/exclusions", response_model=list[ExclusionResponse])
async def list_exclusions(user_id: int, exclusions: ExclusionDep) -> list[ExclusionResponse]:
    return [_exclusion(r) for r in await exclusions.list_exclusions(user_id)]


@router.post(
    "/users/{user_id}/exclusions",
    response_model=ExclusionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
)
async def add_exclusion(
    user_id: int, body: ExclusionRequest, exclusions: ExclusionDep
) -> ExclusionResponse:
    rule = await exclusions.add_exclusion(user_id, body.type, body.value)
    return _exclusion(rule)


@router.delete("/users/{user_id}/exclusions", response_model=DeleteAllResponse)
async def delete_all_exclusions(user_id: int, exclusions: ExclusionDep) -> DeleteAllResponse:
    return DeleteAllResponse(deleted=await exclusions.delete_all(user_id))


@router.delete(
    "/users/{user_id}/exclusions/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
)
async def delete_exclusion(user_id: int, rule_id: int, exclusions: ExclusionDep) -> None:
    await exclusions.delete_exclusion(user_id, rule_id)


# ---------------------------------------------------------------------------
# Event sources
# ---------------------------------------------------------------------------


@router.get(
    "/users/{user_id}/sources", response_model=list[EventSourceResponse], responses=_ERRORS
)
async def list_sources(user_id: int, profiles: ProfileDep) -> list[EventSourceResponse]:
    sources = await profiles.list_sources(user_id)
    return [EventSourceResponse.model_validate(s, from_attributes=True) for s in sources]


@router.post(
    "/users/{user_id}/sources",
    response_model=EventSourceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_ERRORS, 409: {"model": ErrorResponse}},
)
async def add_source(
    user_id: int, body: EventSourceRequest, profiles: ProfileDep
) -> EventSourceResponse:
    source = await profiles.add_source(user_id, body.url, body.name)
    return EventSourceResponse.model_validate(source, from_attributes=True)


@router.delete(
    "/users/{user_id}/sources/{source_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_ERRORS,
)
async def delete_source(user_id: int, source_id: int, profiles: ProfileDep) -> None:
    await profiles.delete_source(user_id, source_id)


# ---------------------------------------------------------------------------
# Newsletters
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/newsletters", response_model=list[NewsletterResponse])
async def list_newsletters(
    user_id: int, newsletters: NewsletterDep
) -> list[NewsletterResponse]:
    return [
        NewsletterResponse.from_newsletter(n)
        for n in await newsletters.list_newsletters(user_id)
    ]


@router.post(
    "/users/{user_id}/newsletters/generate",
    response_model=GenerateNewsletterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={**_ERRORS, 502: {"model": ErrorResponse}},
    summary="Discover events and store a rendered newsletter",
)
async def generate_newsletter(
    user_id: int, newsletters: NewsletterDep, show_dump: ShowDump = False
) -> GenerateNewsletterResponse:
    _logger.info("newsletter_generate_requested", user_id=user_id)
    newsletter, result = await newsletters.generate(user_id)
    return GenerateNewsletterResponse(
        newsletter=NewsletterResponse.from_newsletter(newsletter),
        raw_dump=result.raw_dump if show_dump else None,
    )


@router.post(
    "/users/{user_id}/newsletters/{newsletter_id}/send",
    response_model=SendNewsletterResponse,
    responses={**_ERRORS, 502: {"model": ErrorResponse}},
)
async def send_newsletter(
    user_id: int, newsletter_id: int, newsletters: NewsletterDep
) -> SendNewsletterResponse:
    sent = await newsletters.send(user_id, newsletter_id)
    return SendNewsletterResponse(success=True, sent_at=sent.sent_at)


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request) -> HealthResponse:
    """Report provider availability; discovery without credentials is degraded."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    if not providers.get("database", False):
        state = "unhealthy"
    elif providers.get("ai_search", False) and providers.get("email", False):
        state = "healthy"
    else:
        state = "degraded"
    return HealthResponse(
        status=state,
        version=request.app.version,
        providers=providers,
    )
