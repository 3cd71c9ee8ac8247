from typing import Optional, Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from ..core import config
from ..core.errors import VisionClientError
from ..core.types import Frame
from ..utils.imaging import frame_to_data_url
from .parsing import flatten_content


class VisionClient(Protocol):
    """What the agent stages need from a vision/language backend."""

    async def analyze(self, frame: Frame, prompt: str, system: Optional[str] = None) -> str: ...

    async def complete(self, prompt: str, system: Optional[str] = None) -> str: ...


class ChatVisionClient:
    """VisionClient backed by langchain's ChatOpenAI (any OpenAI-compatible endpoint)."""

    def __init__(
        self,
        vision_llm: Optional[ChatOpenAI] = None,
        text_llm: Optional[ChatOpenAI] = None,
    ):
        self.vision_llm = vision_llm or ChatOpenAI(
            model=config.VISION_MODEL,
            temperature=config.VISION_TEMPERATURE,
            timeout=config.MODEL_TIMEOUT,
            max_retries=config.MODEL_MAX_RETRIES,
        )
        self.text_llm = text_llm or (
            self.vision_llm
            if config.TEXT_MODEL == config.VISION_MODEL
            else ChatOpenAI(
                model=config.TEXT_MODEL,
                temperature=config.VISION_TEMPERATURE,
                timeout=config.MODEL_TIMEOUT,
                max_retries=config.MODEL_MAX_RETRIES,
            )
        )

    async def analyze(self, frame: Frame, prompt: str, system: Optional[str] = None) -> str:
        data_url = frame_to_data_url(frame)
        human_msg = HumanMessage(
            content=[
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": data_url}},
            ]
        )
        return await self._invoke(self.vision_llm, human_msg, system)

    async def complete(self, prompt: str, system: Optional[str] = None) -> str:
        return await self._invoke(self.text_llm, HumanMessage(content=prompt), system)

    async def _invoke(self, llm: ChatOpenAI, human_msg: HumanMessage, system: Optional[str]) -> str:
        messages = [SystemMessage(content=system)] if system else []
        messages.append(human_msg)
        model_name = getattr(llm, "model_name", None) or "openai"
        try:
            result = await llm.ainvoke(messages)
        except Exception as e:
            print(f"[VisionClient] Model call failed: {e}")
            raise VisionClientError(provider=model_name, message=f"Model call failed: {e}") from e
        return flatten_content(result.content)
