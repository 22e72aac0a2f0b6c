"""RankingPolicy — deterministic quality-then-load candidate ordering."""

from __future__ import annotations

from app.domain.entities.provider import Provider


def ranking_key(provider: Provider) -> tuple:
    """Sort key: performance DESC, load ratio ASC, rating DESC, id ASC."""
    return (
        -provider.performance_score,
        provider.load_ratio,
        -provider.rating,
        provider.id if provider.id is not None else 0,
    )


def rank_candidates(candidates: list[Provider]) -> list[Provider]:
    """Order eligible providers best-first.

    Rewards quality first and spreads load among equally good providers.
    Ties are broken by rating and then by id so the order is stable.
    """
    return sorted(candidates, key=ranking_key)


def top_candidates(candidates: list[Provider], limit: int) -> list[Provider]:
    """Best *limit* candidates; a non-positive limit yields nothing."""
    if limit <= 0:
        return []
    return rank_candidates(candidates)[:limit]
