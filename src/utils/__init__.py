"""
Utility modules for common functionality
"""

from src.utils.reasoning_steps import find_conclusion, parse_reasoning_steps

__all__ = [
    "find_conclusion",
    "parse_reasoning_steps",
]
