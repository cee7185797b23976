"""Capability registry and capability definitions.

 A *capability* is the execution unit for action steps.

 - The planner emits ``ActionStep`` items naming a capability.
 - The dispatcher resolves that name through ``CapabilityRegistry``,
   validates the arguments against the capability's ``ParameterSchema`` and
   calls ``invoke`` with an ``InvocationContext``.

 This package exports:

 - ``Capability``: base class for async capabilities.
 - ``FunctionCapability``: capability backed by a plain async callable.
 - ``CapabilityRegistry``: name → capability mapping plus usage statistics.
 - ``InvocationContext``/``CapabilityResult``: execution input/output models.
 - ``ParameterSchema``: structural validator and JSON Schema export.
 """

from .base import Capability, CapabilityResult, FunctionCapability, InvocationContext
from .registry import CapabilityRegistry
from .schema import EMPTY_SCHEMA, ParameterSchema

__all__ = [
    "Capability",
    "CapabilityRegistry",
    "CapabilityResult",
    "EMPTY_SCHEMA",
    "FunctionCapability",
    "InvocationContext",
    "ParameterSchema",
]
