"""Pegasus AI.

This package contains an autonomous agent runtime: given a task goal it
cycles through THINK, ACT and REFLECT phases until the task is judged
complete or abandoned.

High-level architecture
-----------------------

The codebase is organized around two major concepts:

- **Capabilities**: named tools (file access, web fetch, MCP server tools)
  executed through a bounded-concurrency dispatcher that validates
  parameters, enforces timeouts and reports every call as an ``Outcome``.
- **The cognitive loop**: a LangGraph state machine that plans with a
  language model, executes the plan through the dispatcher and lets a
  reflection policy decide whether to continue, replan or stop.

Core subpackages
----------------

- ``pegasus_ai.agent_core``:

  - Capability registry, built-in capabilities and the MCP adapter.
  - Invocation dispatcher, event channel and task ledger.
  - Planner, reflection policies and the cognitive loop.

- ``pegasus_ai.core``:

  - Settings (``pydantic-settings``) and logging set-up.

Typical workflow
----------------

Most integrations should use ``pegasus_ai.agent_core.factory.build_service``:

1. Build the service from ``Settings``.
2. ``await service.run(goal)`` drives a task to ``DONE`` or ``FAILED``.
3. Inspect ``service.ledger(task.id)`` for the recorded outcomes.
"""
