"""Utility for resolving agent usernames to IDs."""

from shiftledger.domain.agent import AgentService
from shiftledger.domain.errors import AgentNotFoundError


def resolve_agent(agent_service: AgentService, agent: str | int) -> int:
    """Resolve an agent username or ID to an agent ID.

    Args:
        agent_service: AgentService instance
        agent: Username, or ID (int or string representation of int)

    Returns:
        Agent ID

    Raises:
        AgentNotFoundError: If no agent matches
    """
    if isinstance(agent, int):
        if agent_service.get_agent(agent) is None:
            raise AgentNotFoundError(f"Agent ID {agent} not found")
        return agent

    # Numeric strings are IDs
    if agent.strip().isdigit():
        agent_id = int(agent)
        if agent_service.get_agent(agent_id) is None:
            raise AgentNotFoundError(f"Agent ID {agent_id} not found")
        return agent_id

    found = agent_service.get_agent_by_username(agent)
    if found is None:
        raise AgentNotFoundError(f"Agent '{agent}' not found")
    return found.id
