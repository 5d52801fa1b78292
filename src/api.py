"""Optional FastAPI HTTP triggers for the scheduler.

Install with: pip install inkpress[api]
Run with: uvicorn --factory inkpress.api:create_app
"""

from __future__ import annotations

import logging

try:
    from fastapi import Depends, FastAPI, Header, HTTPException
    from fastapi.responses import JSONResponse
except ImportError:
    raise ImportError("FastAPI is not installed. Install with: pip install inkpress[api]")

from pydantic import BaseModel

from inkpress import __version__
from inkpress.config import InkpressConfig, load_config
from inkpress.generation.models import EditKind
from inkpress.pipeline.scheduler import ErrorKind, SchedulerOrchestrator, build_orchestrator
from inkpress.shared.errors import ConfigurationError, GenerationError

logger = logging.getLogger(__name__)


class InvestigateRequest(BaseModel):
    idea: str = ""


class PublishRequest(BaseModel):
    draftId: str = ""


class EditRequest(BaseModel):
    instruction: str = ""
    bodyMdx: str = ""
    title: str = ""
    metaDescription: str = ""


def create_app(
    config: InkpressConfig | None = None,
    orchestrator: SchedulerOrchestrator | None = None,
) -> FastAPI:
    """Build the app around one orchestrator.

    Raises:
        ConfigurationError: If no orchestrator is given and the database
            URL is missing.
    """
    config = config or load_config()
    orchestrator = orchestrator or build_orchestrator(config)
    generator = orchestrator.generator

    app = FastAPI(title="inkpress", version=__version__)

    def require_cron_secret(authorization: str | None = Header(default=None)) -> None:
        secret = config.scheduler.cron_secret
        if secret and authorization != f"Bearer {secret}":
            raise HTTPException(401, "Unauthorized")

    @app.get("/api/health")
    def health():
        return {"status": "ok", "version": __version__}

    @app.get("/api/cron/write-blogs", dependencies=[Depends(require_cron_secret)])
    def write_blogs():
        tick = orchestrator.run_tick()
        body = {"success": tick.write.ok, **tick.to_summary()}
        return JSONResponse(body, status_code=200 if tick.write.ok else 500)

    @app.get("/api/cron/publish-blogs", dependencies=[Depends(require_cron_secret)])
    def publish_blogs():
        result = orchestrator.run_publish_flow()
        body = {"success": result.ok, **result.to_summary()}
        return JSONResponse(body, status_code=200 if result.ok else 500)

    @app.post("/api/publish")
    def publish(request: PublishRequest):
        draft_id = request.draftId.strip()
        if not draft_id:
            raise HTTPException(400, "draftId is required")
        if orchestrator.store.get_draft(draft_id) is None:
            raise HTTPException(404, "Draft not found")
        result = orchestrator.publish_draft(draft_id)
        if result.ok:
            status = 200
        elif result.error_kind == ErrorKind.PRECONDITION:
            status = 400
        else:
            status = 500
        return JSONResponse({"success": result.ok, **result.to_summary()}, status_code=status)

    @app.post("/api/ai-edit")
    def ai_edit(request: EditRequest):
        if not request.instruction.strip():
            raise HTTPException(400, "instruction is required")
        try:
            edit = generator.edit_article(
                request.bodyMdx,
                request.instruction,
                title=request.title,
                meta_description=request.metaDescription,
            )
        except (ConfigurationError, GenerationError) as exc:
            logger.error("AI edit failed: %s", exc)
            raise HTTPException(500, str(exc))
        if edit.kind == EditKind.NOTE:
            return {"type": "note", "message": edit.content}
        return {"type": "edit", "content": edit.content}

    @app.post("/api/topics/investigate")
    def investigate(request: InvestigateRequest):
        idea = request.idea.strip()
        if not idea:
            raise HTTPException(400, "idea is required")
        try:
            result = generator.investigate_topic(idea)
        except (ConfigurationError, GenerationError) as exc:
            logger.error("Investigate topic failed: %s", exc)
            raise HTTPException(500, str(exc))
        return {
            "suggestedTitle": result.suggested_title,
            "description": result.description,
            "keywords": result.keywords,
        }

    @app.post("/api/topics/suggest-ideas")
    def suggest_ideas():
        try:
            ideas = generator.suggest_topic_ideas()
        except (ConfigurationError, GenerationError) as exc:
            logger.error("Suggest ideas failed: %s", exc)
            raise HTTPException(500, str(exc))
        return {"ideas": ideas}

    return app
