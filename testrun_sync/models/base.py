"""Base model configuration for definition and configuration structures."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Frozen model that accepts both field names and wire aliases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)
