from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class BookSchema(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    author: str = Field(min_length=1, max_length=200)
    year: Optional[int] = Field(default=None, ge=0, le=9999)
    published_on: Optional[date] = None
    summary: Optional[str] = None
