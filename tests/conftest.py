import base64
import io

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from PIL import Image

from photo_style_api.app.config import Settings


def make_image(color=(200, 80, 40), size=(8, 6), fmt="PNG") -> bytes:
    """生成测试图像字节"""
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


def decode_data_url(value: str) -> bytes:
    header, _, payload = value.partition(",")
    assert header == "data:image/png;base64"
    return base64.b64decode(payload)


def make_settings(**overrides) -> Settings:
    values = {
        "REPLICATE_API_TOKEN": "test-token",
        "REPLICATE_MODEL": "google/nano-banana",
        "REPLICATE_MODEL_VERSION": None,
        "POLL_INTERVAL_SECONDS": 0.01,
        "JOB_TIMEOUT_SECONDS": 2,
        "MAX_CONCURRENT_JOBS": 4,
        "FETCH_TIMEOUT_SECONDS": 5,
    }
    values.update(overrides)
    return Settings(**values)


class FakeClock:
    """手动推进的时钟，sleep 只推进时间不真正等待"""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class FakePredictions:
    """
    按提交的图像内容返回预设的状态序列

    behaviours: {图像字节: [prediction dict 或 Exception, ...]}，
    也可以直接是一个 Exception，表示创建任务时抛出。
    最后一个状态会被重复返回。
    """

    def __init__(self, behaviours):
        self.behaviours = behaviours
        self.created = []
        self.get_calls = []
        self._jobs = {}

    async def create(self, input, version=None, model=None):
        image = input.get("image") or input["image_input"][0]
        data = base64.b64decode(image.partition(",")[2])
        behaviour = self.behaviours[data]
        if isinstance(behaviour, Exception):
            raise behaviour
        job_id = f"job-{len(self.created) + 1}"
        self.created.append({"id": job_id, "input": input, "version": version, "model": model})
        self._jobs[job_id] = list(behaviour)
        return {"id": job_id, "status": "starting"}

    async def get(self, prediction_id):
        self.get_calls.append(prediction_id)
        states = self._jobs[prediction_id]
        state = states.pop(0) if len(states) > 1 else states[0]
        if isinstance(state, Exception):
            raise state
        return {"id": prediction_id, **state}


class FakeReplicateClient:
    def __init__(self, behaviours=None):
        self.predictions = FakePredictions(behaviours or {})
        self.closed = False

    async def close(self):
        self.closed = True


@pytest.fixture
async def artifact_server():
    """
    提供 /files/{name} 的本地HTTP服务

    server.files[name] = (status, body, content_type)
    """
    files = {}

    async def handler(request):
        name = request.match_info["name"]
        if name not in files:
            return web.Response(status=404, text="not found")
        status, body, content_type = files[name]
        return web.Response(status=status, body=body, content_type=content_type)

    app = web.Application()
    app.router.add_get("/files/{name}", handler)
    server = TestServer(app)
    await server.start_server()
    server.files = files
    server.url_for = lambda name: str(server.make_url(f"/files/{name}"))
    yield server
    await server.close()
