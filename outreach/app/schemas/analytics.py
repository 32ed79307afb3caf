"""Page-view tracking payload."""
from typing import Optional

from pydantic import BaseModel, Field


class PageViewIn(BaseModel):
    path: str = Field(min_length=1, max_length=500)
    referrer: Optional[str] = Field(default=None, max_length=1000)
