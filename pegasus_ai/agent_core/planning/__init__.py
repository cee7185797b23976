"""Planning components.

 The planning subsystem runs during the THINKING phase. It produces a *plan*
 from a task goal: a list of step dictionaries that conform to the step
 schemas defined in ``pegasus_ai.agent_core.planning.steps``.

 Output model
 ------------

 - ``ActionStep``: invokes a capability through the dispatcher. Consecutive
   steps marked ``independent`` may run concurrently.
 - ``ResponseStep``: a direct response to the user that needs no capability.

 The planner itself does not execute tools; it only emits structured steps that
 are later consumed by ``pegasus_ai.agent_core.runtime.CognitiveLoop``.
 """

from .planner import StructuredPlanner, parse_plan
from .steps import ActionStep, PlanStep, ResponseStep, normalize_plan

__all__ = [
    "ActionStep",
    "PlanStep",
    "ResponseStep",
    "StructuredPlanner",
    "normalize_plan",
    "parse_plan",
]
