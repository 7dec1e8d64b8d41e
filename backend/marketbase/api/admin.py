"""
Index maintenance endpoints
"""

import json
import time
from typing import Literal

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import StreamingResponse

from .. import tasks
from ..log import get_logger
from ..schemas import ApiResponse
from ..services import ReindexService
from .deps import get_reindex_service

logger = get_logger(__name__)
router = APIRouter()

Entity = Literal["all", "products", "users", "articles"]


@router.post("/reindex", status_code=202)
async def reindex(
    response: Response,
    entity: Entity = "all",
    wait: bool = False,
    service: ReindexService = Depends(get_reindex_service),
):
    """Rebuild indices from the database.

    By default the work is queued on the Celery worker and the task id is
    returned; ``wait=true`` runs it inside the request and returns the reports.
    """
    if wait:
        response.status_code = 200
        if entity == "all":
            reports = await service.reindex_all()
        else:
            reports = [await service.reindex(entity)]
        return ApiResponse(data=[r.model_dump() for r in reports], message="Reindex complete")

    task = tasks.reindex_task.apply_async(args=[entity])
    logger.info("Queued reindex of %s as task %s", entity, task.id)
    return ApiResponse(data={"task_id": task.id}, message="Reindex queued")


POLL_INTERVAL = 0.5


def progress_events(r, task_id: str):
    """Yield an SSE frame for every change of the task's progress value."""
    key = tasks.progress_key(task_id)
    last = None
    while True:
        val = r.get(key)
        if val != last:
            last = val
            yield f"data: {val}\n\n"
            if val:
                try:
                    if json.loads(val).get("status") in ("done", "error"):
                        break
                except (ValueError, AttributeError):
                    pass
        time.sleep(POLL_INTERVAL)


@router.get("/reindex/{task_id}/progress")
def reindex_progress(task_id: str, request: Request):
    return StreamingResponse(progress_events(request.app.state.redis, task_id), media_type="text/event-stream")
