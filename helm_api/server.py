"""HTTP API for creating, updating, deleting and listing environments."""

import logging
import secrets
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response as StarletteResponse

from .config import ApiKeys
from .exceptions import (
    HelmApiException,
    InputException,
    ReleaseBusyError,
    ReleaseExistsError,
    ReleaseNotFoundError,
    ValuesException,
)
from .manager import ReleaseManager
from .manifest import ChartMetadata

__all__ = [
    "create_app",
]

_LOGGER = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


class Response(BaseModel):
    """Body of every API response."""

    message: str
    error: Optional[str] = None
    data: Optional[list[str]] = None


class ChartMetadataBody(BaseModel):
    """Metadata of the chart to create."""

    name: str = ""
    version: Optional[str] = None
    description: Optional[str] = None


class EnvRequest(BaseModel):
    """Body of the create-env and update-env requests."""

    model_config = ConfigDict(populate_by_name=True)

    chart_metadata: ChartMetadataBody = Field(
        default_factory=ChartMetadataBody, alias="chartMetadata"
    )
    action: Optional[str] = None


def _respond(status_code: int, message: str, **kwargs: Any) -> JSONResponse:
    body = Response(message=message, **kwargs)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _status_code(err: HelmApiException) -> int:
    """Return the HTTP status for a failed operation."""
    if isinstance(err, InputException):
        return 400
    if isinstance(err, ReleaseNotFoundError):
        return 404
    if isinstance(err, (ReleaseExistsError, ReleaseBusyError)):
        return 409
    return 500


def _failed(message: str, err: HelmApiException) -> JSONResponse:
    _LOGGER.error("%s: %s", message, err)
    return _respond(_status_code(err), message, error=str(err))


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Checks the API key of each request against the key for its endpoint."""

    def __init__(self, app: Any, api_keys: ApiKeys) -> None:
        super().__init__(app)
        # Keyed by the first path segment, None means no key is required.
        self._endpoints: dict[str, str | None] = {
            "create-env": api_keys.create,
            "update-env": api_keys.update,
            "delete-env": api_keys.delete,
            "health-check": None,
            "list": None,
        }

    def authorized(self, path: str, api_key: str) -> bool:
        """Return True if the key is valid for the endpoint of the path."""
        endpoint = path.lstrip("/").split("/", 1)[0]
        if endpoint not in self._endpoints:
            return False
        if (expected := self._endpoints[endpoint]) is None:
            return True
        return secrets.compare_digest(expected.encode(), api_key.encode())

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> StarletteResponse:
        api_key = request.headers.get(API_KEY_HEADER, "")
        if not self.authorized(request.url.path, api_key):
            _LOGGER.info("Unauthorized request for %s", request.url.path)
            return _respond(401, "Unauthorized")
        return await call_next(request)


def create_app(manager: ReleaseManager, api_keys: ApiKeys) -> FastAPI:
    """Create the API application serving the release manager."""
    app = FastAPI(title="helm-api")
    app.add_middleware(ApiKeyMiddleware, api_keys=api_keys)

    @app.exception_handler(RequestValidationError)
    async def invalid_payload(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _respond(400, "Invalid request payload", error=str(exc))

    @app.post("/create-env")
    async def create_env(body: EnvRequest) -> JSONResponse:
        if not body.chart_metadata.name:
            return _respond(400, "Missing required fields in request")
        metadata = ChartMetadata.from_dict(body.chart_metadata.model_dump())
        try:
            chart_path = await manager.create_release(metadata)
        except HelmApiException as err:
            return _failed("Failed to create Helm chart", err)
        try:
            await manager.install(chart_path, metadata.name)
        except HelmApiException as err:
            return _failed("Failed to install Helm chart", err)
        return _respond(
            201,
            f"Helm chart {metadata.name} created and successfully installed "
            f"from {chart_path}",
        )

    @app.post("/update-env/{chart_name}")
    async def update_env(
        chart_name: str, body: Optional[EnvRequest] = None
    ) -> JSONResponse:
        try:
            exists = await manager.chart_exists(chart_name)
        except HelmApiException as err:
            return _failed("Failed to update Helm chart", err)
        if not exists:
            return _respond(
                400,
                "env doesn't exist, please use create-env endpoint for brand new env",
            )
        action = body.action if body else None
        try:
            if action is not None:
                await manager.set_scale(chart_name, action)
            else:
                await manager.upgrade(chart_name)
        except ValuesException as err:
            return _failed("Updating values.yaml failed", err)
        except HelmApiException as err:
            return _failed("Failed to update Helm chart", err)
        return _respond(200, f"Helm chart {chart_name} successfully updated")

    @app.post("/delete-env/{chart_name}")
    async def delete_env(chart_name: str) -> JSONResponse:
        try:
            result = await manager.uninstall(chart_name)
        except HelmApiException as err:
            return _failed("Failed to uninstall Helm chart", err)
        return _respond(200, f"Helm chart {result.name} successfully uninstalled")

    @app.get("/list")
    async def list_env() -> JSONResponse:
        try:
            names = await manager.list()
        except HelmApiException as err:
            return _failed(
                f"Failed to list helm charts with prefix {manager.config.env_prefix}",
                err,
            )
        message = "No helm-api related helm chart"
        if names:
            message = "List:"
        return _respond(200, message, data=names)

    @app.get("/health-check")
    async def health_check() -> JSONResponse:
        return _respond(200, "API is healthy")

    return app
