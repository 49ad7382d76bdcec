"""LLM provider adapters.

OllamaLLMProvider is the only implementation of ILLMProvider
(src/interfaces/llm_provider.py).  main.py builds it from settings and
stores it on FastAPI's app.state; the metadata extractor, retrieval
service and chat route all receive it by injection.
"""

from src.providers.llm.model_registry import DEFAULT_MODELS, ModelInfo, ModelKind
from src.providers.llm.ollama_provider import OllamaLLMProvider

__all__ = ["DEFAULT_MODELS", "ModelInfo", "ModelKind", "OllamaLLMProvider"]
