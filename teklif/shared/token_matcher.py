"""Token overlap matching of request lines against a price catalog.

The score of a candidate is the number of query tokens that also occur in
the candidate's own tokens, divided by the candidate's token count:

    score = |{q in query_tokens : q in candidate_tokens}| / max(len(candidate_tokens), 1)

The score is asymmetric: a short catalog name fully covered by the
query ("PPRC 32 Boru") beats a long descriptive one that merely shares a few
words with it.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from teklif.shared.catalog import CatalogItem
from teklif.shared.line_extractor import Request
from teklif.shared.normalize.text import tokenize


class EmptyCatalogError(LookupError):
    """Raised when a match is requested against a catalog with no items."""


def token_overlap_score(query: str, candidate: str) -> float:
    query_tokens = tokenize(query)
    candidate_tokens = tokenize(candidate)
    candidate_set = set(candidate_tokens)
    common = sum(1 for token in query_tokens if token in candidate_set)
    return common / max(len(candidate_tokens), 1)


def score_candidates(query: str, catalog: Sequence[CatalogItem]) -> List[Tuple[CatalogItem, float]]:
    """Score every catalog item for *query*, preserving catalog order."""
    return [(item, token_overlap_score(query, item.search_text)) for item in catalog]


def best_match(request: Request, catalog: Sequence[CatalogItem]) -> CatalogItem:
    """Return the highest scoring item for *request*.

    Ties keep the item seen first. When nothing scores above zero the first
    catalog item is returned, so a non-empty catalog always resolves to a
    concrete priced item.
    """
    if not catalog:
        raise EmptyCatalogError("catalog is empty")

    best: CatalogItem | None = None
    best_score = 0.0
    for item, score in score_candidates(request.query, catalog):
        if score > best_score:
            best_score = score
            best = item
    return best if best is not None else catalog[0]


def match_requests(requests: Sequence[Request], catalog: Sequence[CatalogItem]) -> List[CatalogItem]:
    """Resolve each request to one catalog item, in request order."""
    if not requests:
        return []
    if not catalog:
        raise EmptyCatalogError("catalog is empty")
    return [best_match(request, catalog) for request in requests]
