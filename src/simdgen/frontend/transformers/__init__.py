"""
Parse-tree transformers (lark tree -> IR).
"""

from .base import KernelTransformer

__all__ = ["KernelTransformer"]
