"""Reflection policies.

 A reflection policy reads the task ledger's recent entries and returns a
 ``Verdict``: ``continue``, ``replan`` or ``complete``. The cognitive loop
 treats it as an opaque oracle.

 - ``RuleBasedReflection``: deterministic default.
 - ``LLMReflection``: asks the language model, falling back to ``continue``.
 """

from .base import ReflectionInput, ReflectionPolicy
from .llm import LLMReflection, parse_verdict
from .rules import RuleBasedReflection

__all__ = [
    "LLMReflection",
    "ReflectionInput",
    "ReflectionPolicy",
    "RuleBasedReflection",
    "parse_verdict",
]
