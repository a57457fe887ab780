import httpx

from shared.constants import DEEPSEEK_BASE_URL, DEEPSEEK_MODEL
from tokenmonitor.advisory.llm import ChatCompletionBackend


class DeepSeekBackend(ChatCompletionBackend):
    """DeepSeek chat model in JSON-object response mode"""

    name = "deepseek"
    json_mode = True

    def __init__(
        self,
        api_key: str | None,
        client: httpx.AsyncClient | None = None,
        model: str = DEEPSEEK_MODEL,
        base_url: str = DEEPSEEK_BASE_URL,
    ):
        super().__init__(api_key, base_url, model, client=client)
