"""LLM client abstraction over Groq and Google AI."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator

from src.config.settings import get_settings

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    # Whether image parts must carry downloaded bytes instead of a URL
    inline_images = False

    @abstractmethod
    async def generate(
        self, messages: list[dict], model: str, *, system: str | None = None, temperature: float | None = None,
    ) -> dict:
        """Return {"content": str, "finish_reason": str, "input_tokens": int, "output_tokens": int}."""
        ...

    @abstractmethod
    async def generate_stream(
        self, messages: list[dict], model: str, *, system: str | None = None, temperature: float | None = None,
    ) -> AsyncGenerator[dict, None]:
        """Yield {"type": "delta"|"finish", "content"?: str, "finish_reason"?: str, "usage"?: dict}."""
        ...


class GroqClient(LLMClient):
    def __init__(self):
        from groq import AsyncGroq
        settings = get_settings()
        self._client = AsyncGroq(api_key=settings.GROQ_API_KEY)

    def _request(self, messages: list[dict], model: str, system: str | None, temperature: float | None) -> dict:
        payload = [{"role": "system", "content": system}] if system else []
        payload.extend(self._convert_message(m) for m in messages)
        request = {"model": model, "messages": payload}
        if temperature is not None:
            request["temperature"] = temperature
        return request

    def _convert_message(self, message: dict) -> dict:
        content = message["content"]
        if isinstance(content, str):
            return message
        parts = []
        for part in content:
            if part["type"] == "text":
                parts.append({"type": "text", "text": part["text"]})
            elif part["type"] == "image_url":
                parts.append({"type": "image_url", "image_url": {"url": part["url"]}})
            else:
                logger.warning("Groq does not accept %s parts, dropping", part.get("mime_type", part["type"]))
        return {"role": message["role"], "content": parts}

    async def generate(self, messages, model, *, system=None, temperature=None) -> dict:
        response = await self._client.chat.completions.create(**self._request(messages, model, system, temperature))
        choice = response.choices[0]
        return {
            "content": choice.message.content or "",
            "finish_reason": choice.finish_reason,
            "input_tokens": response.usage.prompt_tokens if response.usage else 0,
            "output_tokens": response.usage.completion_tokens if response.usage else 0,
        }

    async def generate_stream(self, messages, model, *, system=None, temperature=None) -> AsyncGenerator[dict, None]:
        stream = await self._client.chat.completions.create(
            **self._request(messages, model, system, temperature),
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                yield {"type": "delta", "content": delta.content}
            if chunk.choices[0].finish_reason:
                usage = chunk.x_groq.usage if getattr(chunk, "x_groq", None) and chunk.x_groq.usage else None
                yield {
                    "type": "finish",
                    "finish_reason": chunk.choices[0].finish_reason,
                    "usage": {
                        "input_tokens": usage.prompt_tokens if usage else 0,
                        "output_tokens": usage.completion_tokens if usage else 0,
                    },
                }


class GoogleAIClient(LLMClient):
    # Gemini only resolves file_uri values from its own File API
    inline_images = True

    def __init__(self):
        import google.generativeai as genai
        settings = get_settings()
        genai.configure(api_key=settings.GOOGLE_AI_API_KEY)
        self._genai = genai

    @staticmethod
    def _convert_parts(content: str | list[dict]) -> list:
        if isinstance(content, str):
            return [content]
        parts = []
        for part in content:
            if part["type"] == "text":
                parts.append(part["text"])
            elif part["type"] == "image_url":
                if "data" not in part:
                    logger.warning("Image %s was not downloaded, dropping", part["url"])
                    continue
                parts.append({"mime_type": part["media_type"], "data": part["data"]})
            elif part["type"] == "file":
                parts.append({"mime_type": part["mime_type"], "data": part["data"]})
        return parts

    def _convert_messages(self, messages: list[dict]) -> tuple[str | None, list[dict]]:
        """Convert OpenAI-style messages to Gemini format."""
        system = None
        history = []
        for msg in messages:
            if msg["role"] == "system":
                system = msg["content"]
            else:
                role = "user" if msg["role"] == "user" else "model"
                history.append({"role": role, "parts": self._convert_parts(msg["content"])})
        return system, history

    def _start(self, messages: list[dict], model: str, system: str | None, temperature: float | None):
        inline_system, history = self._convert_messages(messages)
        generation_config = {"temperature": temperature} if temperature is not None else None
        gen_model = self._genai.GenerativeModel(
            model,
            system_instruction=system or inline_system,
            generation_config=generation_config,
        )
        # Last message is the prompt; history is everything before
        last = history[-1] if history else {"parts": [""]}
        chat = gen_model.start_chat(history=history[:-1])
        return chat, last["parts"]

    async def generate(self, messages, model, *, system=None, temperature=None) -> dict:
        chat, prompt = self._start(messages, model, system, temperature)
        response = await chat.send_message_async(prompt)
        return {
            "content": response.text,
            "finish_reason": "stop",
            "input_tokens": response.usage_metadata.prompt_token_count if response.usage_metadata else 0,
            "output_tokens": response.usage_metadata.candidates_token_count if response.usage_metadata else 0,
        }

    async def generate_stream(self, messages, model, *, system=None, temperature=None) -> AsyncGenerator[dict, None]:
        chat, prompt = self._start(messages, model, system, temperature)
        response = await chat.send_message_async(prompt, stream=True)
        async for chunk in response:
            if chunk.text:
                yield {"type": "delta", "content": chunk.text}
        yield {
            "type": "finish",
            "finish_reason": "stop",
            "usage": {"input_tokens": 0, "output_tokens": 0},
        }


# Singletons
_clients: dict[str, LLMClient] = {}


def get_llm_client(provider: str = "groq") -> LLMClient:
    if provider not in _clients:
        if provider == "groq":
            _clients[provider] = GroqClient()
        elif provider == "google":
            _clients[provider] = GoogleAIClient()
        else:
            raise ValueError(f"Unknown LLM provider: {provider}")
    return _clients[provider]
