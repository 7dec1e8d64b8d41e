# marketbase/tasks.py
import asyncio
import json

import redis
from celery import Celery

from .config import get_settings
from .database import make_engine, make_session_factory
from .log import get_logger
from .search_index import SearchIndex
from .services import ReindexService

logger = get_logger(__name__)

settings = get_settings()

celery_app = Celery("marketbase", broker=settings.BROKER_URL, backend=settings.RESULT_BACKEND)


def progress_key(task_id: str) -> str:
    return f"reindex_progress:{task_id}"


def set_progress(r: redis.Redis, task_id: str, percent: int, status: str, meta=None):
    """
    Store progress information for a given task in Redis.
    /api/admin/reindex/{task_id}/progress reads this.
    """
    key = progress_key(task_id)
    payload = {"percent": percent, "status": status, "meta": meta or {}}
    r.set(key, json.dumps(payload))
    r.expire(key, 3600)  # auto-clean after 1 hour


async def run_reindex(entities, on_progress=None):
    """Reindex ``entities`` in order with a private engine and index client."""
    engine = make_engine(settings)
    index = SearchIndex.from_settings(settings)
    reports = []
    try:
        async with make_session_factory(engine)() as db:
            service = ReindexService(db, index, settings)
            for position, entity in enumerate(entities):
                if on_progress is not None:
                    on_progress(position, entity, None)
                report = await service.reindex(
                    entity,
                    progress=(lambda rep, p=position, e=entity: on_progress(p, e, rep)) if on_progress else None,
                )
                reports.append(report)
    finally:
        await index.close()
        await engine.dispose()
    return reports


@celery_app.task(bind=True)
def reindex_task(self, entity: str = "all"):
    """
    Rebuild search indices from the database:
    1. Create each index with its mapping if missing
    2. Page through the primary entities
    3. Submit one bulk request per page, logging failed items
    """
    task_id = self.request.id
    r = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
    entities = list(ReindexService.ENTITIES) if entity == "all" else [entity]
    share = 100 / len(entities)

    def on_progress(position, name, report):
        done = position * share
        meta = {"index": name}
        if report is not None:
            meta.update(indexed=report.indexed, failed=report.failed, batches=report.batches)
        set_progress(r, task_id, int(done), f"reindexing_{name}", meta)

    try:
        set_progress(r, task_id, 0, "starting")
        reports = asyncio.run(run_reindex(entities, on_progress))
        summary = [report.model_dump(exclude={"failures"}) for report in reports]
        set_progress(r, task_id, 100, "done", {"reports": summary})
        return {"status": "ok", "reports": summary}

    except Exception as e:
        # Push a clear error to Redis so the SSE stream can show it
        set_progress(r, task_id, 100, "error", {"detail": str(e)})
        # Re-raise so the worker logs still show full traceback
        raise
