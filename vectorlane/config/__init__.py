from .loader import load_config
from .models import (
    DatabaseConfig,
    SearchConfig,
    VectorlaneConfig,
)

__all__ = [
    "DatabaseConfig",
    "SearchConfig",
    "VectorlaneConfig",
    "load_config",
]
