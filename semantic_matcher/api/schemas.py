"""
Request and response models for the matcher HTTP API.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field, field_validator


class SimilarityRequest(BaseModel):
    text1: str
    text2: str


class SimilarityResponse(BaseModel):
    similarity: float


class KeywordsRequest(BaseModel):
    paragraph: str
    keywords: List[str]
    k: int = 0

    @field_validator('k')
    @classmethod
    def k_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError('k must be zero (all keywords) or positive')
        return v


class KeywordMatchResponse(BaseModel):
    keyword: str
    score: float
    word_count: int
    oov_count: int


class KeywordsResponse(BaseModel):
    matches: List[KeywordMatchResponse]


class StatsResponse(BaseModel):
    total_requests: int
    average_latency_ms: float
    oov_rate: float = Field(ge=0.0, le=1.0)
    vector_hit_rate: float = Field(ge=0.0, le=1.0)
    memory_usage_bytes: int
    last_updated: datetime


class HealthResponse(BaseModel):
    status: str
    version: str
    vocabulary_size: int
    dimension: int
