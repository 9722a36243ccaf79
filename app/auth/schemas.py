from typing import Optional

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Acting user resolved from the bearer token. Only used to stamp recorded_by on history rows."""

    id: str
    name: Optional[str] = None
