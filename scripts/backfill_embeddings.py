#!/usr/bin/env python3
"""
Backfill Embeddings Script

Computes and stores embeddings for cards whose embedding is missing or
older than their content, using the configured embedding provider.
Later clustering runs then skip the provider for those cards.

Usage:
    Requires the database to be reachable (settings from env / .env):
    $ python scripts/backfill_embeddings.py
    $ python scripts/backfill_embeddings.py --board <board-uuid>
"""

import argparse
import asyncio
import uuid

from brainboard.core.config import settings
from brainboard.core.database import dispose_engine, get_session_factory
from brainboard.core.exceptions import ProviderError
from brainboard.models.orm import embedding_text
from brainboard.repositories.boards import BoardRepository
from brainboard.services.factory import build_embedder


async def main(board_id: uuid.UUID | None) -> None:
    repo = BoardRepository(get_session_factory())
    embedder = build_embedder(settings)

    try:
        cards = await repo.cards_without_embedding(board_id)
        print(f"Found {len(cards)} card(s) without a current embedding.")

        stored = failed = 0
        for card in cards:
            try:
                vector = await embedder.embed(embedding_text(card.title, card.description))
            except ProviderError as e:
                failed += 1
                print(f"  ! {card.id}: {e}")
                continue
            # Skipped when the card was edited after it was loaded
            if await repo.store_embedding(card.id, card.content_hash, vector):
                stored += 1

        print(f"Stored {stored} embedding(s), {failed} failure(s).")
    finally:
        await embedder.close()
        await dispose_engine()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--board", type=uuid.UUID, help="Restrict to one board")
    args = parser.parse_args()
    asyncio.run(main(args.board))
