from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..client import ReplicateClient

class BaseAPI:
    def __init__(self, client: 'ReplicateClient'):
        self._client = client

class PredictionsAPI(BaseAPI):
    """
    用于创建和查询 prediction（远程异步任务）的 API。
    """
    async def create(self, input: dict, version: Optional[str] = None, model: Optional[str] = None):
        """
        提交一个 prediction。

        :param input: 模型输入，例如 {"image": ..., "prompt": ...}。
        :param version: 模型版本 ID，走 /predictions。
        :param model: "owner/name" 形式的模型 ID，走 /models/{owner}/{name}/predictions。
        :return: API 返回的 JSON 响应，包含 id 和 status。
        """
        if bool(version) == bool(model):
            raise ValueError("必须且只能提供 version 或 model 之一")
        if version:
            data = {"version": version, "input": input}
            return await self._client._request("POST", "/predictions", json_data=data)
        owner, _, name = model.partition("/")
        if not owner or not name:
            raise ValueError(f"模型 ID 格式应为 owner/name: {model}")
        return await self._client._request("POST", f"/models/{owner}/{name}/predictions", json_data={"input": input})

    async def get(self, prediction_id: str):
        """
        获取 prediction 的当前状态。

        :param prediction_id: 创建时返回的 ID。
        :return: 包含 status、output、error 的 JSON 响应。
        """
        return await self._client._request("GET", f"/predictions/{prediction_id}")
