"""
Model provider SDK for tiered answers.

Connects the answer pipeline to an LLM provider.
"""

from .openai_client import ModelResponse, OpenAIModelProvider

__all__ = ["ModelResponse", "OpenAIModelProvider"]
