import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import quote

import httpx
from lxml import etree

from songlist_proxy.core.config import UpstreamConfig
from songlist_proxy.models.song import SearchRequest, SongRecord

log = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")

# fixed part of every upstream query, in wire order
SEARCH_METHOD = "searchSongs"
SEARCH_BY = "both"
PER_PAGE = 100
PAGE = 1

# upstream field -> SongRecord field
_SONG_FIELDS = (("number", "code"), ("title", "title"), ("artist", "artist"))


class ProxyError(Exception):
    """Base class for upstream failures surfaced to the caller."""

    code = "proxy_error"
    status_code: Optional[int] = None


class UpstreamTransportError(ProxyError):
    code = "upstream_transport"

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"Song catalog unreachable: {cause!r}")
        self.url = url
        self.cause = cause


class UpstreamStatusError(ProxyError):
    code = "upstream_status"

    def __init__(self, url: str, status_code: int):
        super().__init__(f"Song catalog returned HTTP {status_code}")
        self.url = url
        self.status_code = status_code


class UpstreamParseError(ProxyError):
    code = "upstream_parse"

    def __init__(self, cause: Exception):
        super().__init__(f"Song catalog response is not valid XML: {cause}")
        self.cause = cause


def format_search(text: str) -> str:
    """Percent-encode each word and join the words with a literal ``+``.

    >>> format_search("thank u  next")
    'thank+u+next'
    """
    return "+".join(quote(word, safe="") for word in _WHITESPACE_RE.split(text))


def query_params(api_name: str, search_text: str, language: Optional[str] = None) -> List[Tuple[str, str]]:
    params = [
        ("api", quote(api_name, safe="")),
        ("method", SEARCH_METHOD),
        ("by", SEARCH_BY),
        ("per_page", str(PER_PAGE)),
    ]
    if language is not None:
        params.append(("language", quote(language, safe="")))
    params.append(("page", str(PAGE)))
    params.append(("search", format_search(search_text)))
    return params


def build_query_string(api_name: str, search_text: str, language: Optional[str] = None) -> str:
    # hand-built: urlencode would turn the word separators into %2B
    return "&".join(f"{k}={v}" for k, v in query_params(api_name, search_text, language))


def parse_song_list(body: bytes) -> List[SongRecord]:
    """Turn an upstream ``<xml><songs><song>...`` document into records.

    Malformed XML raises :class:`UpstreamParseError`. A well-formed document
    without the expected structure yields an empty list.
    """
    parser = etree.XMLParser(
        resolve_entities=False, no_network=True, remove_comments=True, remove_pis=True
    )
    try:
        root = etree.fromstring(body, parser=parser)
    except etree.XMLSyntaxError as e:
        raise UpstreamParseError(e) from e

    songs = root.find("songs")
    if songs is None:
        log.warning("Upstream document <%s> has no <songs> element", root.tag)
        return []

    records: List[SongRecord] = []
    for position, song in enumerate(songs.iterfind("song")):
        values = {}
        for source, target in _SONG_FIELDS:
            field = song.find(source)
            if field is None:
                log.warning("Upstream song #%d lacks <%s>, discarding response", position, source)
                return []
            values[target] = "".join(field.itertext())
        records.append(SongRecord(**values))
    return records


class QueryProxyService:
    """Search proxy for the karaoke song catalog.

    One inbound search becomes at most one upstream GET. Nothing is cached
    or retried; a shared ``httpx.AsyncClient`` may be passed in and is then
    left open by :meth:`close`.
    """

    def __init__(self, config: UpstreamConfig, client: Optional[httpx.AsyncClient] = None) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(config.timeout))

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def build_url(self, search_text: str, language: Optional[str] = None) -> str:
        query = build_query_string(self.config.api_name, search_text, language)
        return f"{self.config.base_url}?{query}"

    async def search(self, request: SearchRequest) -> List[SongRecord]:
        if request.is_empty:
            return []

        url = self.build_url(request.search_text, request.language)
        log.debug("GET %s", url)
        try:
            resp = await self._client.get(url)
        except httpx.TransportError as e:
            raise UpstreamTransportError(url, e) from e

        if resp.status_code != 200:
            raise UpstreamStatusError(url, resp.status_code)

        songs = parse_song_list(resp.content)
        log.debug("search=%r language=%r -> %d songs", request.search_text, request.language, len(songs))
        return songs
