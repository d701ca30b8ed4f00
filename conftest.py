import pytest

from stitcher.app import create_app
from stitcher.config import Settings, VideoConfig


class FakeFetcher:
    """Writes a few bytes per URL instead of hitting the network."""

    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.calls = []

    def fetch(self, url, dest):
        from stitcher.engine.errors import FetchError

        self.calls.append((url, str(dest)))
        if self.fail_on and self.fail_on in url:
            raise FetchError(f"Failed to download {url} (HTTP 404)", url, status_code=404)
        with open(dest, "wb") as f:
            f.write(b"media:" + url.encode())
        return dest


@pytest.fixture()
def scratch_dir(tmp_path):
    d = tmp_path / "scratch"
    d.mkdir()
    return d


@pytest.fixture()
def settings(scratch_dir):
    return Settings(
        scratch_dir=str(scratch_dir),
        sweep_interval_sec=3600,
        max_workers=2,
        max_queue=4,
        video=VideoConfig(),
    )


@pytest.fixture()
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture()
def app(settings, fake_fetcher):
    app = create_app(settings, fetcher=fake_fetcher)
    app.config.update({"TESTING": True})
    yield app
    engine = app.extensions["stitcher"]
    engine.stop()
    engine.store.clear()


@pytest.fixture()
def app_client(app):
    return app.test_client()


@pytest.fixture()
def payload():
    return {
        "narrationUrl": "https://cdn.example.com/narration.mp3",
        "videos": [
            "https://cdn.example.com/a.mp4",
            "https://cdn.example.com/b.mp4",
            "https://cdn.example.com/c.mp4",
        ],
    }
