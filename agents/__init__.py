"""
Agents module.

Provides the tool-calling agent loop used by the /api/agent endpoint.
"""

from agents.agent_loop import AgentLoop, AgentResult, AgentState, load_system_prompt

__all__ = [
    "AgentLoop",
    "AgentResult",
    "AgentState",
    "load_system_prompt",
]
