"""
Prompt templates for the generation pipeline.
"""
from .templates import (
    PromptTemplate,
    PromptLibrary,
    PromptType,
)

__all__ = [
    'PromptTemplate',
    'PromptLibrary',
    'PromptType',
]
