"""FastAPI app: mission queries, catalog CRUD, CSV import and auth.

Queries are public; every mutating route requires a bearer token.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Generic, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from . import auth, catalog, models
from .config import settings
from .db import get_session
from .errors import (
    AuthenticationError,
    ConflictError,
    IngestionError,
    NotFoundError,
    SpaceMissionsError,
    ValidationError,
)
from .links import LinkInfo, mission_links, page_links, rocket_links, link
from .logging_config import setup_logging
from .parsers import ParseError
from .pipelines.ingest import import_csv
from .pipelines.querying import (
    MissionFilter,
    MissionSort,
    MissionSummary,
    PageRequest,
    query_missions,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

JsonDecimal = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


# Pydantic request/response models
class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


class Resource(ApiModel, Generic[T]):
    """Payload plus hypermedia links."""
    data: T
    links: list[LinkInfo] = Field(default_factory=list)


class MissionListItem(ApiModel):
    id: int
    company: str
    mission_name: str
    rocket_name: str
    launch_date_time: datetime
    mission_status: str | None = None


class MissionPage(ApiModel):
    items: list[MissionListItem]
    page_number: int
    page_size: int
    total_count: int
    total_pages: int
    has_previous_page: bool
    has_next_page: bool


class MissionIn(ApiModel):
    """Create/update mission request."""
    id: int = 0
    mission_name: str = Field(min_length=1, max_length=200)
    launch_date_time: datetime
    company: str = Field(default="", max_length=100)
    location: str = Field(default="", max_length=200)
    mission_status: str | None = Field(default=None, max_length=50)
    price: Decimal | None = Field(default=None, ge=0, le=1_000_000, decimal_places=2)
    rocket_id: int | None = None


class MissionOut(ApiModel):
    id: int
    mission_name: str
    launch_date_time: datetime
    company: str
    location: str
    mission_status: str
    price: JsonDecimal | None = None
    rocket_id: int | None = None
    rocket_name: str


class RocketIn(ApiModel):
    id: int = 0
    name: str = Field(min_length=1, max_length=100)
    is_active: bool = False


class RocketOut(ApiModel):
    id: int
    name: str
    is_active: bool


class ImportRejection(ApiModel):
    row: int
    reason: str


class ImportResponse(ApiModel):
    loaded: int
    skipped: int
    rockets_added: int
    missions_added: int
    rejections: list[ImportRejection] = Field(default_factory=list)


class UserLogin(ApiModel):
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=6, max_length=100)


class TokenResponse(ApiModel):
    token: str
    token_type: str = "bearer"


def _mission_data(body: MissionIn) -> catalog.MissionData:
    return catalog.MissionData(
        mission_name=body.mission_name,
        launch_datetime=body.launch_date_time,
        company=body.company,
        location=body.location,
        mission_status=body.mission_status,
        price=body.price,
        rocket_id=body.rocket_id,
    )


def _mission_out(mission: models.Mission, rocket_name: str | None = None) -> MissionOut:
    if rocket_name is None:
        rocket_name = mission.rocket.name if mission.rocket is not None else ""
    return MissionOut(
        id=mission.id,
        mission_name=mission.mission_name,
        launch_date_time=mission.launch_datetime,
        company=mission.company,
        location=mission.location,
        mission_status=mission.mission_status or "",
        price=mission.price,
        rocket_id=mission.rocket_id,
        rocket_name=rocket_name,
    )


def _rocket_out(rocket: models.Rocket) -> RocketOut:
    return RocketOut(id=rocket.id, name=rocket.name, is_active=rocket.is_active)


def _list_item(summary: MissionSummary) -> MissionListItem:
    return MissionListItem(
        id=summary.id,
        company=summary.company,
        mission_name=summary.mission_name,
        rocket_name=summary.rocket_name,
        launch_date_time=summary.launch_datetime,
        mission_status=summary.mission_status,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info(f"{settings.app_name} v{settings.version} starting up")

    yield

    # Shutdown
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="API for managing space missions",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
_ERROR_STATUS: dict[type[SpaceMissionsError], tuple[int, str]] = {
    ValidationError: (status.HTTP_400_BAD_REQUEST, "validation_error"),
    NotFoundError: (status.HTTP_404_NOT_FOUND, "not_found"),
    ConflictError: (status.HTTP_409_CONFLICT, "conflict"),
    AuthenticationError: (status.HTTP_401_UNAUTHORIZED, "unauthorized"),
    IngestionError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "ingestion_error"),
}


@app.exception_handler(SpaceMissionsError)
async def catalog_error_handler(request: Request, exc: SpaceMissionsError):
    """Map catalog errors to status codes."""
    status_code, error = status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error"
    for exc_type, mapped in _ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            status_code, error = mapped
            break

    if status_code >= 500:
        logger.error(f"{error}: {exc}")
    else:
        logger.warning(f"{error} on {request.method} {request.url.path}: {exc}")

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=str(exc)).model_dump(),
        headers=headers,
    )


@app.exception_handler(ParseError)
async def parse_error_handler(request: Request, exc: ParseError):
    """Handle CSV source parsing errors."""
    logger.error(f"Parse error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(
            error="parse_error",
            detail=str(exc),
        ).model_dump(),
    )


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=settings.version,
    )


# Missions ------------------------------------------------------------------


@app.get("/api/missions", name="list_missions", response_model=Resource[MissionPage])
async def list_missions(
    request: Request,
    company: str | None = Query(default=None, max_length=100),
    mission_status: str | None = Query(default=None, alias="missionStatus", max_length=50),
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    sort_descending: bool = Query(default=False, alias="sortDescending"),
    page_number: int = Query(default=1, alias="pageNumber"),
    page_size: int = Query(default=settings.pagination.default_page_size, alias="pageSize"),
    session: AsyncSession = Depends(get_session),
) -> Resource[MissionPage]:
    """Paginated mission list with optional filtering and sorting."""
    page = await query_missions(
        session,
        MissionFilter(
            company=company,
            mission_status=mission_status,
            start_date=start_date,
            end_date=end_date,
        ),
        MissionSort(field=sort_by, descending=sort_descending),
        PageRequest(page_number=page_number, page_size=page_size),
    )

    data = MissionPage(
        items=[_list_item(s) for s in page.items],
        page_number=page.page_number,
        page_size=page.page_size,
        total_count=page.total_count,
        total_pages=page.total_pages,
        has_previous_page=page.has_previous_page,
        has_next_page=page.has_next_page,
    )
    links = page_links(
        request,
        "list_missions",
        page_number=page.page_number,
        page_size=page.page_size,
        has_next_page=page.has_next_page,
        has_previous_page=page.has_previous_page,
    )
    return Resource[MissionPage](data=data, links=links)


@app.get("/api/missions/{mission_id}", name="get_mission", response_model=Resource[MissionOut])
async def get_mission(
    mission_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Resource[MissionOut]:
    mission = await catalog.get_mission(session, mission_id)
    return Resource[MissionOut](data=_mission_out(mission), links=mission_links(request, mission_id))


@app.post(
    "/api/missions",
    name="create_mission",
    response_model=Resource[MissionOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_mission(
    body: MissionIn,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    _: models.User = Depends(auth.require_user),
) -> Resource[MissionOut]:
    mission = await catalog.create_mission(session, _mission_data(body))
    response.headers["Location"] = str(request.url_for("get_mission", mission_id=mission.id))
    return Resource[MissionOut](data=_mission_out(mission), links=mission_links(request, mission.id))


@app.put(
    "/api/missions/{mission_id}",
    name="update_mission",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def update_mission(
    mission_id: int,
    body: MissionIn,
    request: Request,
    session: AsyncSession = Depends(get_session),
    _: models.User = Depends(auth.require_user),
) -> Response:
    await catalog.update_mission(session, mission_id, _mission_data(body), body_id=body.id)
    self_url = request.url_for("get_mission", mission_id=mission_id)
    return Response(
        status_code=status.HTTP_204_NO_CONTENT,
        headers={"Link": f'<{self_url}>; rel="self"'},
    )


@app.delete(
    "/api/missions/{mission_id}",
    name="delete_mission",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_mission(
    mission_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    _: models.User = Depends(auth.require_user),
) -> Response:
    await catalog.delete_mission(session, mission_id)
    collection_url = request.url_for("list_missions")
    return Response(
        status_code=status.HTTP_204_NO_CONTENT,
        headers={"Link": f'<{collection_url}>; rel="collection"'},
    )


@app.get(
    "/api/missions/{mission_id}/rocket",
    name="get_mission_rocket",
    response_model=Resource[RocketOut],
)
async def get_mission_rocket(
    mission_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Resource[RocketOut]:
    rocket = await catalog.get_mission_rocket(session, mission_id)
    links = [
        link(request, "get_mission_rocket", "self", mission_id=mission_id),
        link(request, "get_mission", "mission", mission_id=mission_id),
        link(request, "list_missions", "missions"),
    ]
    return Resource[RocketOut](data=_rocket_out(rocket), links=links)


# Rockets -------------------------------------------------------------------


@app.get("/api/rockets", name="list_rockets", response_model=list[RocketOut])
async def list_rockets(session: AsyncSession = Depends(get_session)) -> list[RocketOut]:
    return [_rocket_out(r) for r in await catalog.list_rockets(session)]


@app.get("/api/rockets/{rocket_id}", name="get_rocket", response_model=Resource[RocketOut])
async def get_rocket(
    rocket_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Resource[RocketOut]:
    rocket = await catalog.get_rocket(session, rocket_id)
    return Resource[RocketOut](data=_rocket_out(rocket), links=rocket_links(request, rocket_id))


@app.post(
    "/api/rockets",
    name="create_rocket",
    response_model=Resource[RocketOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_rocket(
    body: RocketIn,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    _: models.User = Depends(auth.require_user),
) -> Resource[RocketOut]:
    rocket = await catalog.create_rocket(session, name=body.name, is_active=body.is_active)
    response.headers["Location"] = str(request.url_for("get_rocket", rocket_id=rocket.id))
    return Resource[RocketOut](data=_rocket_out(rocket), links=rocket_links(request, rocket.id))


@app.put(
    "/api/rockets/{rocket_id}",
    name="update_rocket",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def update_rocket(
    rocket_id: int,
    body: RocketIn,
    session: AsyncSession = Depends(get_session),
    _: models.User = Depends(auth.require_user),
) -> Response:
    await catalog.update_rocket(
        session,
        rocket_id,
        name=body.name,
        is_active=body.is_active,
        body_id=body.id,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.delete(
    "/api/rockets/{rocket_id}",
    name="delete_rocket",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_rocket(
    rocket_id: int,
    session: AsyncSession = Depends(get_session),
    _: models.User = Depends(auth.require_user),
) -> Response:
    await catalog.delete_rocket(session, rocket_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get(
    "/api/rockets/{rocket_id}/missions",
    name="list_rocket_missions",
    response_model=Resource[list[MissionOut]],
)
async def list_rocket_missions(
    rocket_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> Resource[list[MissionOut]]:
    rocket = await catalog.get_rocket(session, rocket_id)
    missions = await catalog.list_rocket_missions(session, rocket_id)
    return Resource[list[MissionOut]](
        data=[_mission_out(m, rocket_name=rocket.name) for m in missions],
        links=[
            link(request, "list_rocket_missions", "self", rocket_id=rocket_id),
            link(request, "get_rocket", "rocket", rocket_id=rocket_id),
        ],
    )


# Import ----------------------------------------------------------------------


@app.post("/api/csvimport/import", name="import_missions", response_model=ImportResponse)
async def import_missions(
    session: AsyncSession = Depends(get_session),
    _: models.User = Depends(auth.require_user),
) -> ImportResponse:
    """Import missions and rockets from the configured CSV file."""
    csv_path = settings.imports.csv_path
    try:
        report = await import_csv(session, csv_path)
    except FileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="CSV file not found",
        )

    return ImportResponse(
        loaded=report.loaded,
        skipped=report.skipped,
        rockets_added=report.rockets_added,
        missions_added=report.missions_added,
        rejections=[ImportRejection(row=i, reason=r.value) for i, r in report.rejections],
    )


# Auth ------------------------------------------------------------------------


@app.post("/api/auth/register", name="register", status_code=status.HTTP_201_CREATED)
async def register(body: UserLogin, session: AsyncSession = Depends(get_session)) -> dict:
    await auth.register(session, username=body.username, password=body.password)
    return {"message": "User registered successfully."}


@app.post("/api/auth/login", name="login", response_model=TokenResponse)
async def login(body: UserLogin, session: AsyncSession = Depends(get_session)) -> TokenResponse:
    token = await auth.login(session, username=body.username, password=body.password)
    return TokenResponse(token=token)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "endpoints": {
            "health": "/health",
            "missions": "/api/missions",
            "rockets": "/api/rockets",
            "import": "/api/csvimport/import",
            "auth": "/api/auth/login",
            "docs": "/docs",
        },
    }
