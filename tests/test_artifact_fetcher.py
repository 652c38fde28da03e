import io
import threading

import aiohttp
import pytest
from PIL import Image

from conftest import decode_data_url as read_png_data_url, make_image
from photo_style_api.app.services import artifact_fetcher
from photo_style_api.app.services.artifact_fetcher import (
    PNG_SIGNATURE, ArtifactFetcher, decode_data_url, ensure_png, to_data_url
)
from photo_style_api.app.services.output_normalizer import ArtifactRef
from photo_style_api.app.utils.errors import FetchError


async def test_fetches_remote_png(artifact_server):
    png = make_image()
    artifact_server.files["u1"] = (200, png, "image/png")

    async with ArtifactFetcher(timeout=5) as fetcher:
        data_url = await fetcher.resolve(ArtifactRef(artifact_server.url_for("u1")))

    assert read_png_data_url(data_url) == png


async def test_remote_jpeg_is_reencoded_as_png(artifact_server):
    artifact_server.files["photo.jpg"] = (200, make_image(size=(10, 4), fmt="JPEG"), "image/jpeg")

    async with ArtifactFetcher(timeout=5) as fetcher:
        data_url = await fetcher.resolve(ArtifactRef(artifact_server.url_for("photo.jpg")))

    data = read_png_data_url(data_url)
    assert data.startswith(PNG_SIGNATURE)
    with Image.open(io.BytesIO(data)) as img:
        assert img.size == (10, 4)


@pytest.mark.parametrize("status", [404, 500])
async def test_non_2xx_is_fetch_error(artifact_server, status):
    artifact_server.files["gone"] = (status, b"nope", "text/plain")

    async with ArtifactFetcher(timeout=5) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.resolve(ArtifactRef(artifact_server.url_for("gone")))

    assert exc_info.value.details["status"] == status


async def test_unreachable_host_is_fetch_error():
    async with ArtifactFetcher(timeout=5) as fetcher:
        with pytest.raises(FetchError):
            await fetcher.download("http://127.0.0.1:9/nothing.png")


async def test_inline_reference_is_decoded_without_network():
    png = make_image(color=(1, 2, 3))
    fetcher = ArtifactFetcher()

    data_url = await fetcher.resolve(ArtifactRef(to_data_url(png)))

    assert fetcher.session is None
    assert read_png_data_url(data_url) == png


async def test_inline_webp_is_reencoded():
    buf = io.BytesIO()
    Image.new("RGBA", (3, 3), (0, 255, 0, 128)).save(buf, format="WEBP")
    fetcher = ArtifactFetcher()

    data_url = await fetcher.resolve(ArtifactRef(to_data_url(buf.getvalue(), "image/webp")))

    assert read_png_data_url(data_url).startswith(PNG_SIGNATURE)


async def test_empty_artifact_is_fetch_error(artifact_server):
    artifact_server.files["empty"] = (200, b"", "image/png")

    async with ArtifactFetcher(timeout=5) as fetcher:
        with pytest.raises(FetchError):
            await fetcher.resolve(ArtifactRef(artifact_server.url_for("empty")))


@pytest.mark.parametrize("value", [
    "data:image/png;base64,not base64!!",
    "data:image/png;base64",
    "image/png;base64,AAAA",
])
def test_malformed_data_url(value):
    with pytest.raises(FetchError):
        decode_data_url(value)


def test_ensure_png_rejects_garbage():
    with pytest.raises(FetchError):
        ensure_png(b"definitely not an image")


async def test_borrowed_session_is_left_open(artifact_server):
    artifact_server.files["u1"] = (200, make_image(), "image/png")
    async with aiohttp.ClientSession() as session:
        async with ArtifactFetcher(session=session) as fetcher:
            await fetcher.download(artifact_server.url_for("u1"))
        assert not session.closed


async def test_transcoding_runs_off_the_event_loop(monkeypatch):
    loop_thread = threading.get_ident()
    seen = []

    def recording_ensure_png(data):
        seen.append(threading.get_ident())
        return ensure_png(data)

    monkeypatch.setattr(artifact_fetcher, "ensure_png", recording_ensure_png)
    fetcher = ArtifactFetcher()

    data_url = await fetcher.resolve(ArtifactRef(to_data_url(make_image(fmt="JPEG"), "image/jpeg")))

    assert read_png_data_url(data_url).startswith(PNG_SIGNATURE)
    assert seen and seen[0] != loop_thread
