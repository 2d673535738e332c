from daybook.llm.base import Completion, EmbeddingProvider, GenerationProvider, ToolCall
from daybook.llm.client import LLMClient
from daybook.llm.loader import PromptDefinition, load_prompt
from daybook.llm.parsing import strip_code_fences

__all__ = [
    "Completion",
    "EmbeddingProvider",
    "GenerationProvider",
    "ToolCall",
    "LLMClient",
    "PromptDefinition",
    "load_prompt",
    "strip_code_fences",
]
