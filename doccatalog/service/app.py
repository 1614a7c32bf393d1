"""FastAPI application entrypoint for doccatalog service mode."""

from __future__ import annotations

import threading
from typing import Any, Callable, List, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..catalog import ContentCatalog
from ..config import DocCatalogConfig
from ..errors import InvalidResourceIdSyntaxError
from ..models import ResourceIdContext
from ..resource_id import resolve_resource


class VersionSummary(BaseModel):
    version: str
    display_version: str
    prerelease: bool


class ComponentSummary(BaseModel):
    name: str
    title: str
    latest: str
    versions: List[VersionSummary]


class OriginSummary(BaseModel):
    url: str
    refname: str
    reftype: str
    start_path: str


class FileSummary(BaseModel):
    id: str
    component: str
    version: str
    module: str
    family: str
    relative: str
    src_path: str
    size: int
    media_type: Optional[str] = None
    edit_url: Optional[str] = None
    origin: Optional[OriginSummary] = None


class HealthResponse(BaseModel):
    status: str


class _CatalogHolder:
    """Builds the catalog on first use and shares it afterwards."""

    def __init__(self, factory: Callable[[], ContentCatalog]) -> None:
        self._factory = factory
        self._catalog: Optional[ContentCatalog] = None
        self._lock = threading.Lock()

    def get(self) -> ContentCatalog:
        with self._lock:
            if self._catalog is None:
                self._catalog = self._factory()
            return self._catalog


def create_app(catalog_factory: Callable[[], ContentCatalog]) -> FastAPI:
    """Create the FastAPI application exposing catalog lookups."""

    app = FastAPI(title="DocCatalog Service", version="1.0.0")
    holder = _CatalogHolder(catalog_factory)

    def get_catalog() -> ContentCatalog:
        return holder.get()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/components", response_model=List[ComponentSummary])
    def components(catalog: ContentCatalog = Depends(get_catalog)) -> List[ComponentSummary]:
        return [
            ComponentSummary(
                name=component.name,
                title=component.title,
                latest=component.latest.version,
                versions=[
                    VersionSummary(
                        version=entry.version,
                        display_version=entry.display_version,
                        prerelease=entry.is_prerelease,
                    )
                    for entry in component.versions
                ],
            )
            for component in catalog.get_components()
        ]

    @app.get("/resolve", response_model=FileSummary)
    def resolve(
        id: str = Query(..., description="Resource ID to resolve"),
        component: Optional[str] = None,
        version: Optional[str] = None,
        module: Optional[str] = None,
        family: str = "page",
        catalog: ContentCatalog = Depends(get_catalog),
    ) -> Any:
        ctx = ResourceIdContext(component=component, version=version, module=module)
        file = resolve_resource(id, catalog, ctx, default_family=family)
        if file is None:
            return JSONResponse(status_code=404, content={"detail": f"Unresolved resource ID: {id}"})
        origin = None
        if file.origin is not None:
            origin = OriginSummary(
                url=file.origin.url,
                refname=file.origin.refname,
                reftype=file.origin.reftype,
                start_path=file.origin.start_path,
            )
        return FileSummary(
            id=str(file.key),
            component=file.component,
            version=file.version,
            module=file.module,
            family=file.family,
            relative=file.relative,
            src_path=file.src_path,
            size=file.size,
            media_type=file.media_type,
            edit_url=file.edit_url,
            origin=origin,
        )

    @app.exception_handler(InvalidResourceIdSyntaxError)
    async def invalid_resource_id_handler(
        _: Any, exc: InvalidResourceIdSyntaxError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(
    config: DocCatalogConfig, host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    try:
        import uvicorn
    except ModuleNotFoundError as exc:
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install doccatalog[service]`."
        ) from exc

    from ..aggregator import aggregate_content

    app = create_app(lambda: aggregate_content(config).catalog)
    uvicorn.run(app, host=host, port=port)
