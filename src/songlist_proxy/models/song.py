# songlist_proxy/models/song.py
from typing import Optional
from pydantic import BaseModel


class SearchRequest(BaseModel):
    search_text: Optional[str] = None
    language: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.search_text


class SongRecord(BaseModel):
    code: str
    title: str
    artist: str


class ErrorResponse(BaseModel):
    detail: str
    error: str
    upstream_status: Optional[int] = None
