"""Document store settings loaded from .ninjastack/docstore.json."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".ninjastack/docstore.json"


class DocStoreConfig(BaseModel):
    """Repository-wide defaults.

    ``cache_enabled`` is read once here and handed to each repository at
    construction time; nothing consults the environment afterwards.
    """

    cache_enabled: bool = Field(default=False, description="Write documents through to the cache backend.")
    default_limit: int = Field(default=50, gt=0, description="Page size when a search gives none.")
    collation_locale: str = Field(default="en", min_length=2, description="Locale used for sorted searches.")
    connection_profile: str = Field(default="default", description="Connection profile holding the store.")
    cache_profile: str | None = Field(default=None, description="Connection profile holding the cache.")

    model_config = {"extra": "forbid"}

    @classmethod
    def from_file(cls, path: str | Path = DEFAULT_CONFIG_PATH) -> DocStoreConfig:
        filepath = Path(path)
        if not filepath.exists():
            logger.debug("No docstore config at %s; using defaults", filepath)
            return cls()
        return cls.model_validate(json.loads(filepath.read_text()))
