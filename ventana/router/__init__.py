from ventana.router.router import Router, AllModelsExhaustedError
from ventana.router.base import BaseModel
from ventana.router.models import ModelResponse, ModelConfig
from ventana.router.prompt_builder import build_translate_prompt
from ventana.router.translator import RouterTranslator

__all__ = [
    "Router",
    "AllModelsExhaustedError",
    "BaseModel",
    "ModelResponse",
    "ModelConfig",
    "build_translate_prompt",
    "RouterTranslator",
]
