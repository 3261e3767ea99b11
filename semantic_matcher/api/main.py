"""
HTTP surface for the semantic matcher.

The matcher is built once from the environment on first use. Construction
failures are reported as 503 so the service can start before its embedding
files are in place.
"""

import threading
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse

from ..core.config import VERSION, config_from_env
from ..core.errors import SemanticMatcherError
from ..core.matcher import SemanticMatcher, build_matcher
from ..util.logging import logger
from .schemas import (
    HealthResponse,
    KeywordMatchResponse,
    KeywordsRequest,
    KeywordsResponse,
    SimilarityRequest,
    SimilarityResponse,
    StatsResponse,
)

load_dotenv()

_matcher: Optional[SemanticMatcher] = None
_matcher_lock = threading.Lock()


def get_matcher() -> SemanticMatcher:
    """Return the process-wide matcher, building it on first use."""
    global _matcher
    with _matcher_lock:
        if _matcher is None:
            try:
                _matcher = build_matcher(config_from_env(), logger)
            except (SemanticMatcherError, OSError) as e:
                logger.error("Semantic matcher unavailable: %s", e)
                raise HTTPException(status_code=503, detail=f"Semantic matcher unavailable: {e}")
        return _matcher


def reset_matcher() -> None:
    """Drop the cached matcher so the next request rebuilds it."""
    global _matcher
    with _matcher_lock:
        _matcher = None


# Initialize the FastAPI application
app = FastAPI(
    title="Semantic Matcher API",
    version=VERSION,
    description="Embedding-based keyword ranking and text similarity",
)


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint():
    """Report whether the matcher is loaded."""
    try:
        matcher = get_matcher()
    except HTTPException:
        return JSONResponse(
            status_code=503,
            content=HealthResponse(status="unavailable", version=VERSION,
                                   vocabulary_size=0, dimension=0).model_dump(),
        )

    return HealthResponse(
        status="healthy",
        version=VERSION,
        vocabulary_size=matcher.model.vocabulary_size(),
        dimension=matcher.model.dimension(),
    )


@app.post("/similarity", response_model=SimilarityResponse)
def similarity_endpoint(req: SimilarityRequest, matcher: SemanticMatcher = Depends(get_matcher)):
    """Score the similarity of two texts."""
    return SimilarityResponse(similarity=matcher.compute_similarity(req.text1, req.text2))


@app.post("/keywords", response_model=KeywordsResponse)
def keywords_endpoint(req: KeywordsRequest, matcher: SemanticMatcher = Depends(get_matcher)):
    """Rank keywords against a paragraph."""
    matches = matcher.find_top_keywords(req.paragraph, req.keywords, req.k)
    return KeywordsResponse(matches=[KeywordMatchResponse(**m.to_dict()) for m in matches])


@app.get("/stats", response_model=StatsResponse)
def stats_endpoint(matcher: SemanticMatcher = Depends(get_matcher)):
    """Report matcher and store statistics."""
    stats = matcher.get_stats()
    return StatsResponse(
        total_requests=stats.total_requests,
        average_latency_ms=stats.average_latency_ms,
        oov_rate=stats.oov_rate,
        vector_hit_rate=stats.vector_hit_rate,
        memory_usage_bytes=stats.memory_usage,
        last_updated=stats.last_updated,
    )
