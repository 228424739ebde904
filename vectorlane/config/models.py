from pydantic import BaseModel, Field
from typing import Literal


class DatabaseConfig(BaseModel):
    backend: Literal["lancedb"] = "lancedb"
    uri: str = ".context/lancedb"
    distance_type: Literal["cosine", "l2", "dot"] = "cosine"


class SearchConfig(BaseModel):
    default_top_k: int = Field(default=10, gt=0)
    rrf_k: int = Field(default=60, gt=0)
    overfetch_factor: int = Field(default=2, ge=1)
    fts_column: str = "content"


class VectorlaneConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
