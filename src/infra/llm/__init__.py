from .generate_grounded_text import generate_grounded_text
from .registry import DEFAULT_MODEL, ModelName

__all__ = [
    "generate_grounded_text",
    "DEFAULT_MODEL",
    "ModelName",
]
