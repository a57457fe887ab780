from typing import Any

import httpx

from shared.constants import MINIMAX_BASE_URL, MINIMAX_MODEL
from tokenmonitor.advisory.base import AdvisoryError
from tokenmonitor.advisory.llm import ChatCompletionBackend


class MiniMaxBackend(ChatCompletionBackend):
    """MiniMax chat model; answers may arrive inside a markdown code fence"""

    name = "minimax"
    completion_path = "/text/chatcompletion_v2"

    def __init__(
        self,
        api_key: str | None,
        client: httpx.AsyncClient | None = None,
        model: str = MINIMAX_MODEL,
        base_url: str = MINIMAX_BASE_URL,
    ):
        super().__init__(api_key, base_url, model, client=client)

    def check_response(self, data: dict[str, Any]) -> None:
        # Errors come back as HTTP 200 with a non-zero base_resp status
        base_resp = data.get("base_resp") if isinstance(data, dict) else None
        if base_resp and base_resp.get("status_code", 0) != 0:
            raise AdvisoryError(
                self.name,
                f"status {base_resp.get('status_code')}: {base_resp.get('status_msg', '')}",
            )
