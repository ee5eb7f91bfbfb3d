# sentinel/llm/client.py
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from sentinel.config import settings

SYSTEM_PROMPT = (
    "You are Sentinel, a careful on-chain trading assistant for the Cronos network. "
    "Answer briefly. When asked for JSON, reply with JSON only."
)


class OpenAIChat:
    """Text completion capability backed by the OpenAI chat API.

    ``complete`` raises whatever the client raises; retry and throttling
    live in ``LlmRequestQueue``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Any = None,
    ):
        self.model = model or settings.llm_model
        self.client = client or AsyncOpenAI(
            api_key=api_key or settings.llm_api_key,
            base_url=base_url or settings.llm_base_url,
        )

    async def complete(
        self, prompt: str, history: Optional[List[Dict[str, str]]] = None
    ) -> str:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend(history or [])
        messages.append({"role": "user", "content": prompt})
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=0,
        )
        return resp.choices[0].message.content or ""
