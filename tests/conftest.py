import io
import json
import sys
import threading
from pathlib import Path

import pytest


# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)


class FakeResponse:
    def __init__(self, status_code=200, body=b""):
        self.status_code = status_code
        self.content = body if isinstance(body, bytes) else str(body).encode("utf-8")

    @property
    def text(self):
        return self.content.decode("utf-8")


class FakeSession:
    """Serves canned responses keyed by URL and records every GET."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self._lock = threading.Lock()

    def get(self, url, headers=None, timeout=None, proxies=None):
        with self._lock:
            self.calls.append(url)
        if url not in self.routes:
            return FakeResponse(404, b"not found")
        route = self.routes[url]
        if isinstance(route, BaseException):
            raise route
        status, body = route
        return FakeResponse(status, body)


_PLAYER_ARGS = {
    "avg_rating": "4.87",
    "length_seconds": "213",
    "adaptive_fmts": ",".join(
        [
            "itag=137&type=video%2Fmp4%3B+codecs%3D%22avc1.640028%22&size=1920x1080"
            "&bitrate=4000000&fps=30&quality_label=1080p&url=https%3A%2F%2Fr1.example%2Fv137",
            "itag=140&type=audio%2Fmp4%3B+codecs%3D%22mp4a.40.2%22&bitrate=128000&clen=3400000"
            "&url=https%3A%2F%2Fr1.example%2Fa140",
        ]
    ),
}


def build_watch_page(
    video_id="abc123",
    *,
    title="Test Video/Title",
    description='First line<br>See <a href="https://example.com">https://example.com</a> now',
    player_args=None,
    category="Music",
    age_restricted=False,
    include_uploader=True,
):
    args = dict(_PLAYER_ARGS if player_args is None else player_args)
    config = json.dumps({"args": args})
    uploader = (
        '<a class="yt-uix-sessionlink       spf-link " href="/channel/UCuploader42">Uploader Name</a>'
        if include_uploader
        else ""
    )
    category_block = (
        f'<li><h4 class="title">Category</h4><ul class="content watch-info-tag-list">'
        f'<li><a href="/channel/UCcategory">{category}</a></li></ul></li>'
        if category
        else ""
    )
    notice_block = (
        '<li><h4 class="title">Notice</h4><ul class="content">'
        '<li><a href="/t/community_guidelines">Age-restricted video (based on Community Guidelines)</a></li>'
        "</ul></li>"
        if age_restricted
        else ""
    )
    return f"""<!DOCTYPE html>
<html><head>
<meta property="og:image" content="https://i.ytimg.com/vi/{video_id}/maxresdefault.jpg">
<meta property="og:video:tag" content="first tag">
<meta property="og:video:tag" content="second tag">
<meta itemprop="datePublished" content="2017-05-04">
</head><body>
<h1 class="watch-title-container"><span id="eow-title" class="watch-title">
  {title}
</span></h1>
<div class="watch-view-count">1,234,567 views</div>
<button class="yt-uix-button like-button-renderer-like-button"><span>1,024</span></button>
<button class="yt-uix-button like-button-renderer-dislike-button"><span>12</span></button>
{uploader}
<p id="eow-description">{description}</p>
<ul class="watch-extras-section">
{category_block}
<li><h4 class="title">License</h4><ul class="content"><li><a href="/t/terms">Standard YouTube License</a></li></ul></li>
{notice_block}
</ul>
<div id="player"><script>var ytplayer = ytplayer || {{}};ytplayer.config = {config};ytplayer.load = function() {{}};</script></div>
</body></html>
"""


def make_jpeg_bytes():
    from PIL import Image

    output = io.BytesIO()
    Image.new("RGB", (8, 8), (200, 30, 30)).save(output, format="JPEG")
    return output.getvalue()


@pytest.fixture
def watch_page():
    return build_watch_page


@pytest.fixture
def jpeg_bytes():
    return make_jpeg_bytes()


@pytest.fixture
def fake_session_factory():
    return FakeSession
