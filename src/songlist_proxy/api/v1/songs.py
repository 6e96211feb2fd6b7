# songlist_proxy/api/v1/songs.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from songlist_proxy.models.song import ErrorResponse, SearchRequest, SongRecord
from songlist_proxy.services.song_catalog import ProxyError, QueryProxyService

log = logging.getLogger(__name__)
router = APIRouter()


def get_song_service(request: Request) -> QueryProxyService:
    # created in the application lifespan
    return request.app.state.song_service


@router.get(
    "",
    response_model=List[SongRecord],
    responses={500: {"model": ErrorResponse}},
    summary="Search the karaoke song catalog",
)
async def search_songs(
    search: Optional[str] = Query(None, description="Free-text title/artist query"),
    query: Optional[str] = Query(None, description="Alias of `search`"),
    language: Optional[str] = Query(None, description="Passed to the catalog verbatim"),
    svc: QueryProxyService = Depends(get_song_service),
):
    req = SearchRequest(search_text=search or query, language=language)
    try:
        return await svc.search(req)
    except ProxyError:
        log.exception("Song search failed (search=%r, language=%r)", req.search_text, language)
        raise
