import os

import pytest

# main builds the app at import time and needs a complete configuration
os.environ.setdefault("SONGLIST_URL", "https://songlist.example/api")
os.environ.setdefault("SONGLIST_API_NAME", "testapi")

from songlist_proxy.core.config import UpstreamConfig  # noqa: E402


@pytest.fixture
def upstream_config():
    return UpstreamConfig(base_url="https://songlist.example/api", api_name="testapi", timeout=5.0)
