"""FastAPI routes exposing restore, preview and the audit log.

Requires the ``api`` extra.  Mount the router on an application that
provides the orchestrator::

    from fastapi import FastAPI
    from snapshot_restore.api import create_router

    app = FastAPI()
    app.include_router(create_router(orchestrator))

Authentication is the host application's job; add a dependency on the
router (``create_router(orchestrator, dependencies=[Depends(require_admin)])``).

Routes:
    POST /api/admin/restore           - run a restore, streamed as NDJSON
    GET  /api/admin/restore/preview   - snapshot metadata and table counts
    GET  /api/admin/backup-logs       - most recent audit records
"""

import logging
from collections.abc import Sequence
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from fastapi.params import Depends
from fastapi.responses import StreamingResponse
from pydantic import AliasChoices, BaseModel, Field

from snapshot_restore.restore.errors import (
    InvalidSnapshotNameError,
    SnapshotDownloadError,
    SnapshotParseError,
)
from snapshot_restore.restore.models import SnapshotPreview
from snapshot_restore.restore.orchestrator import RestoreOrchestrator, stream_restore
from snapshot_restore.restore.progress import NDJSON_MEDIA_TYPE, STREAM_HEADERS

logger = logging.getLogger(__name__)


class RestoreRequest(BaseModel):
    """Body of ``POST /restore``.  ``fileName`` is accepted for ``file_name``."""

    file_name: str = Field(validation_alias=AliasChoices("file_name", "fileName"))
    resume: bool = False


def create_router(
    orchestrator: RestoreOrchestrator,
    dependencies: Sequence[Depends] | None = None,
) -> APIRouter:
    """Build the admin restore router bound to ``orchestrator``."""
    router = APIRouter(
        prefix="/api/admin",
        tags=["restore"],
        dependencies=list(dependencies or []),
    )

    @router.post("/restore")
    async def restore(request: RestoreRequest) -> StreamingResponse:
        """Restore from a snapshot, streaming progress events."""
        try:
            stream = stream_restore(orchestrator, request.file_name, resume=request.resume)
        except InvalidSnapshotNameError as e:
            raise HTTPException(status_code=400, detail=str(e))

        logger.info("Restore of %s requested over HTTP", request.file_name)
        return StreamingResponse(
            stream,
            media_type=NDJSON_MEDIA_TYPE,
            headers=STREAM_HEADERS,
        )

    @router.get("/restore/preview", response_model=SnapshotPreview)
    async def preview(
        file_name: str | None = Query(None, description="Snapshot name"),
        file_name_camel: str | None = Query(None, alias="fileName", include_in_schema=False),
    ) -> SnapshotPreview:
        """Describe a snapshot without touching the database."""
        file_name = file_name or file_name_camel
        if not file_name:
            raise HTTPException(status_code=400, detail="file_name is required")
        try:
            return await orchestrator.preview(file_name)
        except InvalidSnapshotNameError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except SnapshotDownloadError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except SnapshotParseError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @router.get("/backup-logs")
    async def backup_logs(
        limit: int = Query(50, ge=1, le=500),
    ) -> list[dict[str, Any]]:
        """Most recent backup and restore audit records, newest first."""
        try:
            return await orchestrator.audit.recent(limit=limit)
        except Exception as e:
            logger.error("Could not read audit log: %s", e)
            raise HTTPException(status_code=500, detail=f"Could not read audit log: {e}")

    return router
