"""Synchronous multi-agent runtime.

The runtime owns a set of agents keyed by :class:`AgentId`, with an
optional name index.  Messages are routed by type: broadcasting a message
enqueues it into every agent whose handler table includes that type.

A :meth:`Runtime.step` runs in two passes.  First every agent with pending
mail drains its mailbox; then every reply produced in that pass is routed
like a broadcast.  Replies are therefore handled in the *next* step, which
keeps one step's work bounded even when agents answer each other forever.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from arbiter.core.agent import Agent, AgentId, AgentState
from arbiter.core.handler import HandleResult
from arbiter.errors import AgentNotFoundError, DuplicateAgentError

logger = logging.getLogger(__name__)


class RuntimeStatistics(BaseModel):
    """Counts of agents per state."""

    model_config = {"frozen": True}

    total_agents: int
    running_agents: int
    paused_agents: int
    stopped_agents: int
    agents_with_pending_messages: int


class Runtime:
    """Holds agents, routes their messages, and manages their lifecycles."""

    def __init__(self) -> None:
        self._agents: dict[AgentId, Agent[Any]] = {}
        self._name_to_id: dict[str, AgentId] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_agent(self, agent: Agent[Any]) -> AgentId:
        """Add *agent*; a named agent is also indexed by its name."""
        if agent.name is not None:
            self._claim_name(agent.name)
            self._name_to_id[agent.name] = agent.id
        self._agents[agent.id] = agent
        return agent.id

    def register_named_agent(self, name: str, agent: Agent[Any]) -> AgentId:
        self._claim_name(name)
        agent.set_name(name)
        return self.register_agent(agent)

    def spawn_agent(self, agent: Agent[Any]) -> AgentId:
        """Register *agent* and start it."""
        agent_id = self.register_agent(agent)
        self.start_agent_by_id(agent_id)
        return agent_id

    def spawn_named_agent(self, name: str, agent: Agent[Any]) -> AgentId:
        agent_id = self.register_named_agent(name, agent)
        self.start_agent_by_id(agent_id)
        return agent_id

    def _claim_name(self, name: str) -> None:
        if name in self._name_to_id:
            raise DuplicateAgentError(f"Agent name '{name}' already exists")

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def agent_id_by_name(self, name: str) -> AgentId | None:
        return self._name_to_id.get(name)

    def _require_id(self, name: str) -> AgentId:
        agent_id = self._name_to_id.get(name)
        if agent_id is None:
            raise AgentNotFoundError.for_name(name)
        return agent_id

    def agent(self, agent_id: AgentId) -> Agent[Any]:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise AgentNotFoundError.for_id(agent_id) from None

    def agent_by_name(self, name: str) -> Agent[Any]:
        return self.agent(self._require_id(name))

    def agent_ids(self) -> list[AgentId]:
        return list(self._agents)

    def agent_names(self) -> list[str]:
        return list(self._name_to_id)

    @property
    def agent_count(self) -> int:
        return len(self._agents)

    def agent_state_by_id(self, agent_id: AgentId) -> AgentState | None:
        agent = self._agents.get(agent_id)
        return agent.state if agent is not None else None

    def agent_state_by_name(self, name: str) -> AgentState | None:
        agent_id = self._name_to_id.get(name)
        return self.agent_state_by_id(agent_id) if agent_id is not None else None

    def agents_by_state(self, state: AgentState) -> list[AgentId]:
        return [agent_id for agent_id, agent in self._agents.items() if agent.state is state]

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    def broadcast_message(self, message: Any) -> int:
        """Enqueue *message* into every agent that handles its type.

        Returns the number of mailboxes that accepted it.
        """
        message_type = type(message)
        delivered = 0
        for agent in self._agents.values():
            if agent.handles(message_type) and agent.enqueue(message):
                delivered += 1
        return delivered

    def send_to_agent_by_id(self, agent_id: AgentId, message: Any) -> None:
        self.agent(agent_id).enqueue(message)

    def send_to_agent_by_name(self, name: str, message: Any) -> None:
        self.send_to_agent_by_id(self._require_id(name), message)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def step(self) -> int:
        """Process every pending mailbox once, then route the replies.

        Returns the number of messages handled.
        """
        results: list[HandleResult] = []
        for agent in list(self._agents.values()):
            if agent.should_process_mailbox:
                results.extend(agent.process_pending_messages())
        self._route_results(results)
        return len(results)

    def process_all_pending_messages(self) -> int:
        return self.step()

    def run_until_idle(self, max_steps: int = 1000) -> int:
        """Step until no agent has pending work. Returns the steps taken."""
        steps = 0
        while self.has_pending_work() and steps < max_steps:
            self.step()
            steps += 1
        if self.has_pending_work():
            logger.warning("Runtime still busy after %d steps", max_steps)
        return steps

    def has_pending_work(self) -> bool:
        return self.agents_needing_processing() > 0

    def agents_needing_processing(self) -> int:
        return sum(1 for agent in self._agents.values() if agent.should_process_mailbox)

    def _route_results(self, results: list[HandleResult]) -> None:
        for result in results:
            if result.is_reply:
                self.broadcast_message(result.message)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_agent_by_id(self, agent_id: AgentId) -> None:
        self.agent(agent_id).start()

    def start_agent_by_name(self, name: str) -> None:
        self.start_agent_by_id(self._require_id(name))

    def pause_agent_by_id(self, agent_id: AgentId) -> None:
        self.agent(agent_id).pause()

    def pause_agent_by_name(self, name: str) -> None:
        self.pause_agent_by_id(self._require_id(name))

    def resume_agent_by_id(self, agent_id: AgentId) -> None:
        self._route_results(self.agent(agent_id).resume())

    def resume_agent_by_name(self, name: str) -> None:
        self.resume_agent_by_id(self._require_id(name))

    def stop_agent_by_id(self, agent_id: AgentId) -> None:
        self.agent(agent_id).stop()

    def stop_agent_by_name(self, name: str) -> None:
        self.stop_agent_by_id(self._require_id(name))

    def start_all_agents(self) -> int:
        started = 0
        for agent in self._agents.values():
            if agent.state is not AgentState.RUNNING:
                agent.start()
                started += 1
        return started

    def pause_all_agents(self) -> int:
        paused = 0
        for agent in self._agents.values():
            if agent.state is AgentState.RUNNING:
                agent.pause()
                paused += 1
        return paused

    def resume_all_agents(self) -> int:
        results: list[HandleResult] = []
        resumed = 0
        for agent in list(self._agents.values()):
            if agent.state is AgentState.PAUSED:
                results.extend(agent.resume())
                resumed += 1
        self._route_results(results)
        return resumed

    def stop_all_agents(self) -> int:
        stopped = 0
        for agent in self._agents.values():
            if agent.state is not AgentState.STOPPED:
                agent.stop()
                stopped += 1
        return stopped

    def statistics(self) -> RuntimeStatistics:
        states = [agent.state for agent in self._agents.values()]
        return RuntimeStatistics(
            total_agents=len(states),
            running_agents=states.count(AgentState.RUNNING),
            paused_agents=states.count(AgentState.PAUSED),
            stopped_agents=states.count(AgentState.STOPPED),
            agents_with_pending_messages=self.agents_needing_processing(),
        )

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def remove_agent_by_id(self, agent_id: AgentId) -> Agent[Any]:
        agent = self.agent(agent_id)
        if agent.name is not None and self._name_to_id.get(agent.name) == agent_id:
            del self._name_to_id[agent.name]
        del self._agents[agent_id]
        return agent

    def remove_agent_by_name(self, name: str) -> Agent[Any]:
        return self.remove_agent_by_id(self._require_id(name))

    def remove_all_agents(self) -> list[tuple[AgentId, Agent[Any]]]:
        removed = list(self._agents.items())
        self._agents.clear()
        self._name_to_id.clear()
        return removed

    def reinsert_agent(self, agent: Agent[Any]) -> AgentId:
        """Put back an agent previously removed, restoring its name index."""
        return self.register_agent(agent)
