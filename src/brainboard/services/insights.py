"""
Insight Orchestrator

Single entry point for the three AI-assisted board operations:

**Suggest** (``create_card`` / ``request_suggestions`` → ``run_suggestions``):
    card persisted → job queued → SuggestionGenerator → suggestions stored.
    The HTTP response never waits for the generator.

**Cluster** (``cluster_board``):
    stored embedding / EmbeddingCache / EmbeddingProvider per card →
    KMeansClusterer (worker thread) → atomic replace of the assignment.
    At most one run per board; a second request gets ``BoardBusy``.

**Summarize** (``summarize_board``):
    columns + assignment + top cards → Summarizer → summary appended.

Clustering and summarization are bounded by ``timeout_seconds``. The
single write of each operation happens only after every external call
and computation succeeded, so a failure or timeout leaves the previous
labels and summaries untouched.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import UUID

from brainboard.core.exceptions import (
    BoardBusy,
    InsightError,
    NotFoundError,
    OperationTimeout,
    ProviderError,
)
from brainboard.models.orm import (
    SUGGESTION_FAILED,
    SUGGESTION_PENDING,
    BoardRecord,
    CardRecord,
    ClusterRecord,
    ColumnRecord,
    SuggestionRecord,
    SummaryRecord,
    embedding_text,
)
from brainboard.models.schemas import CardContext, SummaryContent
from brainboard.services.clustering import ClusterResult, KMeansClusterer
from brainboard.services.embedding_cache import EmbeddingCache
from brainboard.services.embeddings import EmbeddingProvider
from brainboard.services.suggestions import MAX_SIBLINGS, SuggestionGenerator
from brainboard.services.summarizer import Summarizer, select_top_cards
from brainboard.services.tasks import SuggestionJob, SuggestionQueue

logger = logging.getLogger(__name__)

# Display names/colors for cluster indices (cycled for large boards)
CLUSTER_PALETTE: tuple[tuple[str, str], ...] = (
    ("Coral", "#FF6B6B"),
    ("Teal", "#1ABC9C"),
    ("Amber", "#F5A623"),
    ("Indigo", "#5C6BC0"),
    ("Lime", "#9CCC65"),
    ("Rose", "#EC407A"),
    ("Sky", "#29B6F6"),
    ("Slate", "#78909C"),
)


def cluster_display(index: int) -> tuple[str, str]:
    """Human-readable (name, color) for a cluster index."""
    name, color = CLUSTER_PALETTE[index % len(CLUSTER_PALETTE)]
    cycle = index // len(CLUSTER_PALETTE)
    return (f"{name} {cycle + 1}" if cycle else name), color


class BoardStore(Protocol):
    """Persistence operations the orchestrator relies on."""

    async def get_board(self, board_id: UUID) -> BoardRecord | None: ...

    async def list_columns(self, board_id: UUID) -> Sequence[ColumnRecord]: ...

    async def create_card(self, board_id: UUID, **fields: Any) -> CardRecord: ...

    async def get_card(self, card_id: UUID) -> CardRecord | None: ...

    async def list_cards(self, board_id: UUID) -> Sequence[CardRecord]: ...

    async def set_suggestion_status(
        self, card_id: UUID, status: str, error: str | None = None
    ) -> None: ...

    async def save_suggestions(
        self, card: CardRecord, contents: Sequence[str]
    ) -> list[SuggestionRecord]: ...

    async def list_suggestions(self, card_id: UUID) -> Sequence[SuggestionRecord]: ...

    async def replace_clustering(
        self,
        board_id: UUID,
        labels: dict[UUID, str | None],
        embeddings: dict[UUID, tuple[str, list[float]]],
        clusters: Sequence[ClusterRecord],
    ) -> None: ...

    async def append_summary(
        self, board_id: UUID, content: SummaryContent
    ) -> SummaryRecord: ...


@dataclass(frozen=True)
class ClusterOutcome:
    """What a clustering run stored."""

    board_id: UUID
    result: ClusterResult
    labels: dict[UUID, str | None]
    clusters: list[ClusterRecord]
    skipped: list[UUID] = field(default_factory=list)


class InsightOrchestrator:
    """
    Composes cache, providers, clustering, suggestion generation and
    summarization into the board-level insight operations.

    All collaborators are injected; ``start`` and ``close`` manage the
    suggestion queue owned by the orchestrator.

    Args:
        store: Persistence (``BoardRepository`` in production).
        embedder: Embedding provider adapter.
        cache: Embedding cache.
        clusterer: k-means engine.
        suggestion_generator: Generates ideas for a card.
        summarizer: Generates board summaries.
        timeout_seconds: Bound for clustering and summarization.
        embedding_concurrency: Parallel embedding calls per clustering run.
        skip_failed_embeddings: Degrade instead of failing when a card
            cannot be embedded (the card stays unlabelled).
        suggestion_workers: Background workers for suggestion jobs.
    """

    def __init__(
        self,
        store: BoardStore,
        embedder: EmbeddingProvider,
        cache: EmbeddingCache,
        clusterer: KMeansClusterer,
        suggestion_generator: SuggestionGenerator,
        summarizer: Summarizer,
        *,
        timeout_seconds: float = 30.0,
        embedding_concurrency: int = 8,
        skip_failed_embeddings: bool = False,
        suggestion_workers: int = 2,
        sibling_limit: int = MAX_SIBLINGS,
        summary_cards_per_cluster: int = 3,
        summary_max_cards: int = 30,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._cache = cache
        self._clusterer = clusterer
        self._suggestions = suggestion_generator
        self._summarizer = summarizer
        self._timeout = timeout_seconds
        self._embedding_concurrency = embedding_concurrency
        self._skip_failed_embeddings = skip_failed_embeddings
        self._sibling_limit = min(sibling_limit, MAX_SIBLINGS)
        self._summary_cards_per_cluster = summary_cards_per_cluster
        self._summary_max_cards = summary_max_cards
        self._clustering: set[UUID] = set()
        self.suggestion_queue = SuggestionQueue(
            self.run_suggestions, workers=suggestion_workers
        )

    async def start(self) -> None:
        await self.suggestion_queue.start()

    async def close(self) -> None:
        await self.suggestion_queue.stop()

    # ------------------------------------------------------------------
    # Suggest
    # ------------------------------------------------------------------

    async def create_card(
        self,
        board_id: UUID,
        *,
        title: str,
        description: str | None = None,
        column_id: UUID | None = None,
        mood: str | None = None,
    ) -> tuple[CardRecord, SuggestionJob]:
        """
        Persist a card and queue suggestion generation for it.

        Returns as soon as the card is stored; the returned job completes
        later, independently of the caller.
        """
        await self._require_board(board_id)
        if column_id is not None:
            columns = await self._store.list_columns(board_id)
            if all(column.id != column_id for column in columns):
                raise NotFoundError("Column", column_id)

        card = await self._store.create_card(
            board_id,
            title=title,
            description=description,
            column_id=column_id,
            mood=mood,
            suggestion_status=SUGGESTION_PENDING,
        )
        job = self.suggestion_queue.submit(card.id)
        logger.info("Card %s created on board %s, suggestions queued", card.id, board_id)
        return card, job

    async def request_suggestions(self, card_id: UUID) -> SuggestionJob:
        """Queue another suggestion run for an existing card."""
        card = await self._store.get_card(card_id)
        if card is None:
            raise NotFoundError("Card", card_id)
        await self._store.set_suggestion_status(card_id, SUGGESTION_PENDING)
        return self.suggestion_queue.submit(card_id)

    async def run_suggestions(self, card_id: UUID) -> list[SuggestionRecord]:
        """
        Job body: generate and store suggestions for one card.

        On any failure nothing but the card's ``failed`` status and error
        message is written, and the error is re-raised for the job.
        """
        card = await self._store.get_card(card_id)
        if card is None:
            raise NotFoundError("Card", card_id)

        try:
            cards = await self._store.list_cards(card.board_id)
            column_names = await self._column_names(card.board_id)
            siblings = self._pick_siblings(card, cards)
            prior = [s.content for s in await self._store.list_suggestions(card_id)]
            ideas = await self._suggestions.generate(
                self._context(card, column_names),
                [self._context(s, column_names) for s in siblings],
                prior,
            )
            records = await self._store.save_suggestions(card, ideas)
        except InsightError as e:
            await self._store.set_suggestion_status(card_id, SUGGESTION_FAILED, str(e))
            raise
        except Exception:
            await self._store.set_suggestion_status(
                card_id, SUGGESTION_FAILED, "Suggestion generation failed"
            )
            raise

        logger.info("Stored %d suggestion(s) for card %s", len(records), card_id)
        return records

    def _pick_siblings(
        self, card: CardRecord, cards: Sequence[CardRecord]
    ) -> list[CardRecord]:
        """Same-column cards first, most recent first, then the rest of the board."""
        others = sorted(
            (c for c in cards if c.id != card.id),
            key=lambda c: c.created_at,
            reverse=True,
        )
        same_column = [c for c in others if c.column_id == card.column_id]
        rest = [c for c in others if c.column_id != card.column_id]
        return (same_column + rest)[: self._sibling_limit]

    # ------------------------------------------------------------------
    # Cluster
    # ------------------------------------------------------------------

    async def cluster_board(self, board_id: UUID) -> ClusterOutcome:
        """
        Recompute the board's cluster assignment.

        Raises:
            BoardBusy: A run for this board is already in flight.
            OperationTimeout: Embedding + clustering exceeded the bound.
            ProviderError: An embedding call failed (unless degrading).
            DimensionMismatch: Vectors of different sizes were collected.
        """
        if board_id in self._clustering:
            raise BoardBusy(board_id)
        self._clustering.add(board_id)
        try:
            await self._require_board(board_id)
            try:
                async with asyncio.timeout(self._timeout):
                    outcome, fresh = await self._compute_clusters(board_id)
            except TimeoutError as e:
                raise OperationTimeout("clustering", self._timeout) from e

            await self._store.replace_clustering(
                board_id, outcome.labels, fresh, outcome.clusters
            )
            logger.info(
                "Clustered board %s: %d cards into %d clusters (%d iterations)",
                board_id,
                len(outcome.result.assignments),
                outcome.result.k,
                outcome.result.iterations,
            )
            return outcome
        finally:
            self._clustering.discard(board_id)

    async def _compute_clusters(
        self, board_id: UUID
    ) -> tuple[ClusterOutcome, dict[UUID, tuple[str, list[float]]]]:
        cards = await self._store.list_cards(board_id)
        vectors, fresh, skipped = await self._collect_embeddings(cards)

        result = await asyncio.to_thread(self._clusterer.fit, list(vectors.items()))

        labels: dict[UUID, str | None] = {card.id: None for card in cards}
        for card_id, index in result.assignments.items():
            labels[card_id] = str(index)  # type: ignore[index]

        clusters = []
        for index in range(result.k):
            name, color = cluster_display(index)
            clusters.append(
                ClusterRecord(
                    board_id=board_id,
                    cluster_index=index,
                    label=str(index),
                    name=name,
                    color=color,
                    card_count=result.sizes[index],
                    centroid=result.centroids[index],
                )
            )

        outcome = ClusterOutcome(
            board_id=board_id,
            result=result,
            labels=labels,
            clusters=clusters,
            skipped=skipped,
        )
        return outcome, fresh

    async def _collect_embeddings(
        self, cards: Sequence[CardRecord]
    ) -> tuple[
        dict[UUID, list[float]], dict[UUID, tuple[str, list[float]]], list[UUID]
    ]:
        """
        Resolve a vector for every card.

        Returns:
            (vectors by card, vectors to persist on the card rows, skipped cards)
        """
        semaphore = asyncio.Semaphore(self._embedding_concurrency)

        async def resolve(card: CardRecord) -> tuple[list[float], bool]:
            if card.has_embedding:
                return [float(x) for x in card.embedding], False

            cached = await self._cache.get(card.id, card.content_hash)
            if cached is not None:
                return cached, True

            async with semaphore:
                vector = await self._embedder.embed(
                    embedding_text(card.title, card.description)
                )
            await self._cache.put(card.id, card.content_hash, vector)
            return vector, True

        outcomes = await asyncio.gather(
            *(resolve(card) for card in cards), return_exceptions=True
        )

        vectors: dict[UUID, list[float]] = {}
        fresh: dict[UUID, tuple[str, list[float]]] = {}
        skipped: list[UUID] = []
        for card, outcome in zip(cards, outcomes):
            if isinstance(outcome, ProviderError) and self._skip_failed_embeddings:
                logger.warning("Skipping card %s in clustering: %s", card.id, outcome)
                skipped.append(card.id)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            vector, is_new = outcome
            vectors[card.id] = vector
            if is_new:
                fresh[card.id] = (card.content_hash, vector)

        if skipped and not vectors:
            raise ProviderError(self._embedder.name, "no card could be embedded")
        return vectors, fresh, skipped

    # ------------------------------------------------------------------
    # Summarize
    # ------------------------------------------------------------------

    async def summarize_board(self, board_id: UUID) -> SummaryRecord:
        """
        Generate a summary and append it to the board's history.

        Raises:
            OperationTimeout: Generation exceeded the bound.
            ProviderError: The generation call failed.
            MalformedResponse: Output invalid after the strict retry.
        """
        board = await self._require_board(board_id)
        try:
            async with asyncio.timeout(self._timeout):
                content = await self._generate_summary(board)
        except TimeoutError as e:
            raise OperationTimeout("summarization", self._timeout) from e

        record = await self._store.append_summary(board_id, content)
        logger.info(
            "Summary %s appended for board %s (%d themes)",
            record.id,
            board_id,
            len(record.themes),
        )
        return record

    async def _generate_summary(self, board: BoardRecord) -> SummaryContent:
        cards = await self._store.list_cards(board.id)
        columns = await self._store.list_columns(board.id)
        column_names = {column.id: column.name for column in columns}

        per_column = Counter(card.column_id for card in cards)
        column_counts = {column.name: per_column.get(column.id, 0) for column in columns}
        if per_column.get(None):
            column_counts["(no column)"] = per_column[None]

        cluster_sizes = Counter(
            card.cluster_label for card in cards if card.cluster_label is not None
        )
        ordered_sizes = {
            label: cluster_sizes[label]
            for label in sorted(cluster_sizes, key=lambda label: (len(label), label))
        }

        top_cards = select_top_cards(
            cards,
            per_cluster=self._summary_cards_per_cluster,
            max_cards=self._summary_max_cards,
        )
        return await self._summarizer.summarize(
            board.name,
            column_counts,
            ordered_sizes,
            [self._context(card, column_names) for card in top_cards],
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _require_board(self, board_id: UUID) -> BoardRecord:
        board = await self._store.get_board(board_id)
        if board is None:
            raise NotFoundError("Board", board_id)
        return board

    async def _column_names(self, board_id: UUID) -> dict[UUID, str]:
        return {c.id: c.name for c in await self._store.list_columns(board_id)}

    @staticmethod
    def _context(card: CardRecord, column_names: dict[UUID, str]) -> CardContext:
        return CardContext(
            title=card.title,
            description=card.description,
            column=column_names.get(card.column_id) if card.column_id else None,
            cluster_label=card.cluster_label,
        )
