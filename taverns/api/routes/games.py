"""games.py — Single-game import from a URL.

Endpoints:
    POST /api/v1/games/import → Import one game (BGG or any product page)

Responses:
    201 {"success": true, "action": "created", "game": {...}}
    200 {"success": true, "action": "updated", "game": {...}}
    4xx {"success": false, "error": "..."}

Called by: Frontend "Add game" dialog
Depends on: deps.py (CurrentUser, DbSession, HttpClient, LLMDep),
            services/catalog/importer.py
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from taverns.api.deps import ConfigDep, CurrentUser, DbSession, HttpClient, LLMDep, resolve_target_library
from taverns.models.schemas import GameImportRequest, GameImportResponse, ImportedGame, ImportErrorResponse
from taverns.services.catalog.importer import import_game
from taverns.services.catalog.records import GameImportError

router = APIRouter(prefix="/api/v1/games", tags=["games"])
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.post(
    "/import",
    response_model=GameImportResponse,
    responses={
        400: {"model": ImportErrorResponse},
        401: {"model": ImportErrorResponse},
        403: {"model": ImportErrorResponse},
        422: {"model": ImportErrorResponse},
    },
)
async def import_game_from_url(
    body: GameImportRequest,
    user: CurrentUser,
    db: DbSession,
    client: HttpClient,
    llm: LLMDep,
    settings: ConfigDep,
) -> JSONResponse:
    """Import a single game into the caller's (or an admin-chosen) library."""
    library_id = await resolve_target_library(db, user, body.library_id)

    try:
        result = await import_game(body, library_id, db, client, llm, settings)
    except GameImportError as exc:
        logger.info("Import rejected for %s: %s (%d)", body.url, exc.message, exc.status_code)
        return _error(exc.status_code, exc.message)

    game = ImportedGame.model_validate(result.game).model_copy(
        update={
            "mechanics": list(result.record.mechanics),
            "publisher": result.record.publisher,
        }
    )
    payload = GameImportResponse(action=result.action, game=game)
    status_code = 201 if result.action == "created" else 200
    return JSONResponse(status_code=status_code, content=payload.model_dump(mode="json"))
