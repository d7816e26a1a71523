"""
Boards API Router

HTTP endpoints for boards, cards and the AI insight operations.

Endpoints:
    POST  /boards                       — Create a board with its columns.
    POST  /boards/{id}/cards            — Create a card (201, suggestions queued).
    POST  /cards/{id}/suggestions       — Re-queue suggestions (202).
    POST  /boards/{id}/cluster          — Recompute cluster assignment.
    POST  /boards/{id}/summaries        — Generate and append a summary (201).

Pipeline errors (``InsightError``) are mapped to HTTP statuses by the
handlers in ``brainboard.api.errors``.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status

from brainboard.api.deps import get_orchestrator, get_repository
from brainboard.core.exceptions import NotFoundError
from brainboard.models.orm import SUGGESTION_PENDING
from brainboard.repositories.boards import BoardRepository
from brainboard.schemas.boards import (
    BoardCreate,
    BoardRead,
    CardCreate,
    CardRead,
    CardUpdate,
    ClusterRead,
    ClusterResponse,
    ColumnCreate,
    ColumnRead,
    SuggestionJobResponse,
    SuggestionRead,
    SuggestionUpdate,
    SummaryRead,
)
from brainboard.services.insights import InsightOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


async def _require_board(repo: BoardRepository, board_id: UUID) -> None:
    if await repo.get_board(board_id) is None:
        raise NotFoundError("Board", board_id)


# ---------------------------------------------------------------------------
# Boards and columns
# ---------------------------------------------------------------------------


@router.post("/boards", response_model=BoardRead, status_code=status.HTTP_201_CREATED)
async def create_board(
    payload: BoardCreate,
    repo: BoardRepository = Depends(get_repository),
) -> BoardRead:
    board, columns = await repo.create_board(payload.name, payload.columns)
    return BoardRead(
        id=board.id,
        name=board.name,
        created_at=board.created_at,
        columns=[ColumnRead.model_validate(c) for c in columns],
    )


@router.get("/boards", response_model=list[BoardRead])
async def list_boards(
    skip: int = 0,
    limit: int = 100,
    repo: BoardRepository = Depends(get_repository),
) -> list[BoardRead]:
    boards = await repo.list_boards(skip, limit)
    return [BoardRead(id=b.id, name=b.name, created_at=b.created_at) for b in boards]


@router.get("/boards/{board_id}", response_model=BoardRead)
async def read_board(
    board_id: UUID,
    repo: BoardRepository = Depends(get_repository),
) -> BoardRead:
    board = await repo.get_board(board_id)
    if board is None:
        raise NotFoundError("Board", board_id)
    columns = await repo.list_columns(board_id)
    return BoardRead(
        id=board.id,
        name=board.name,
        created_at=board.created_at,
        columns=[ColumnRead.model_validate(c) for c in columns],
    )


@router.post(
    "/boards/{board_id}/columns",
    response_model=ColumnRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_column(
    board_id: UUID,
    payload: ColumnCreate,
    repo: BoardRepository = Depends(get_repository),
):
    await _require_board(repo, board_id)
    return await repo.add_column(board_id, payload.name, payload.position)


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


@router.get("/boards/{board_id}/cards", response_model=list[CardRead])
async def list_cards(
    board_id: UUID,
    repo: BoardRepository = Depends(get_repository),
):
    await _require_board(repo, board_id)
    return await repo.list_cards(board_id)


@router.post(
    "/boards/{board_id}/cards",
    response_model=CardRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_card(
    board_id: UUID,
    payload: CardCreate,
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    """
    Create a card.

    Suggestion generation is queued and runs after the response is sent;
    the card comes back with ``suggestion_status="pending"``.
    """
    card, _job = await orchestrator.create_card(
        board_id,
        title=payload.title,
        description=payload.description,
        column_id=payload.column_id,
        mood=payload.mood,
    )
    return card


@router.patch("/cards/{card_id}", response_model=CardRead)
async def update_card(
    card_id: UUID,
    payload: CardUpdate,
    repo: BoardRepository = Depends(get_repository),
):
    """Partial update. Editing title or description invalidates the embedding."""
    changes = payload.model_dump(exclude_unset=True)
    if "title" in changes and changes["title"] is None:
        raise HTTPException(status_code=422, detail="title cannot be null")

    card = await repo.get_card(card_id)
    if card is None:
        raise NotFoundError("Card", card_id)
    if changes.get("column_id") is not None:
        columns = await repo.list_columns(card.board_id)
        if all(c.id != changes["column_id"] for c in columns):
            raise NotFoundError("Column", changes["column_id"])

    updated = await repo.update_card(card_id, changes)
    if updated is None:
        raise NotFoundError("Card", card_id)
    return updated


@router.delete("/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_card(
    card_id: UUID,
    repo: BoardRepository = Depends(get_repository),
) -> Response:
    if not await repo.delete_card(card_id):
        raise NotFoundError("Card", card_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------


@router.get("/cards/{card_id}/suggestions", response_model=list[SuggestionRead])
async def list_suggestions(
    card_id: UUID,
    repo: BoardRepository = Depends(get_repository),
):
    if await repo.get_card(card_id) is None:
        raise NotFoundError("Card", card_id)
    return await repo.list_suggestions(card_id)


@router.post(
    "/cards/{card_id}/suggestions",
    response_model=SuggestionJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_suggestions(
    card_id: UUID,
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
) -> SuggestionJobResponse:
    """Queue a fresh round of suggestions for the card."""
    await orchestrator.request_suggestions(card_id)
    return SuggestionJobResponse(card_id=card_id, status=SUGGESTION_PENDING)


@router.patch("/suggestions/{suggestion_id}", response_model=SuggestionRead)
async def update_suggestion(
    suggestion_id: UUID,
    payload: SuggestionUpdate,
    repo: BoardRepository = Depends(get_repository),
):
    suggestion = await repo.set_suggestion_accepted(suggestion_id, payload.accepted)
    if suggestion is None:
        raise NotFoundError("Suggestion", suggestion_id)
    return suggestion


# ---------------------------------------------------------------------------
# Clustering
# ---------------------------------------------------------------------------


@router.post(
    "/boards/{board_id}/cluster",
    response_model=ClusterResponse,
    responses={
        409: {"description": "A clustering run for this board is in flight"},
        504: {"description": "Embedding + clustering exceeded the time bound"},
    },
)
async def cluster_board(
    board_id: UUID,
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
) -> ClusterResponse:
    outcome = await orchestrator.cluster_board(board_id)
    return ClusterResponse(
        board_id=board_id,
        k=outcome.result.k,
        iterations=outcome.result.iterations,
        converged=outcome.result.converged,
        clusters=[ClusterRead.model_validate(c) for c in outcome.clusters],
        assignments=outcome.labels,
        skipped_cards=outcome.skipped,
    )


@router.get("/boards/{board_id}/clusters", response_model=list[ClusterRead])
async def list_clusters(
    board_id: UUID,
    repo: BoardRepository = Depends(get_repository),
):
    await _require_board(repo, board_id)
    return await repo.list_clusters(board_id)


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


@router.post(
    "/boards/{board_id}/summaries",
    response_model=SummaryRead,
    status_code=status.HTTP_201_CREATED,
    responses={504: {"description": "Summarization exceeded the time bound"}},
)
async def summarize_board(
    board_id: UUID,
    orchestrator: InsightOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.summarize_board(board_id)


@router.get("/boards/{board_id}/summaries", response_model=list[SummaryRead])
async def list_summaries(
    board_id: UUID,
    limit: int = 20,
    repo: BoardRepository = Depends(get_repository),
):
    """Summary history, newest first."""
    await _require_board(repo, board_id)
    return await repo.list_summaries(board_id, limit)


@router.get("/boards/{board_id}/summaries/latest", response_model=SummaryRead)
async def latest_summary(
    board_id: UUID,
    repo: BoardRepository = Depends(get_repository),
):
    await _require_board(repo, board_id)
    summary = await repo.latest_summary(board_id)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Board has no summary yet"
        )
    return summary
