"""Leader/follower simulation on the synchronous runtime.

Leaders wander around a rectangular canvas, bouncing off its walls.
Followers chase the nearest leader and stop once they are close enough.
Every agent publishes its position to a shared :class:`Board` when it
handles a :class:`Tick`; followers read leader positions from the same
board.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any

from arbiter.core.agent import Agent, LifeCycle
from arbiter.core.handler import handles
from arbiter.core.runtime import Runtime

logger = logging.getLogger(__name__)

LEADER = "leader"
FOLLOWER = "follower"

LEADER_SPEED = 1.3
FOLLOWER_SPEED = 0.8
FOLLOW_DISTANCE = 50.0
WALL_MARGIN = 10.0
MAX_HEADING_CHANGE = 0.25


@dataclass
class Position:
    x: float
    y: float

    def distance_to(self, other: Position) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def move_towards(self, target: Position, speed: float) -> None:
        """Step *speed* units along the straight line to *target*."""
        distance = self.distance_to(target)
        if distance > 0.0:
            self.x += (target.x - self.x) / distance * speed
            self.y += (target.y - self.y) / distance * speed

    def copy(self) -> Position:
        return Position(self.x, self.y)


@dataclass(frozen=True)
class Tick:
    """Advance every agent by one step."""


class Board:
    """Latest known kind and position of every agent, keyed by id."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[str, Position]] = {}

    def place(self, agent_id: str, kind: str, position: Position) -> None:
        self._entries[agent_id] = (kind, position.copy())

    def remove(self, agent_id: str) -> bool:
        return self._entries.pop(agent_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def leaders(self) -> dict[str, Position]:
        return {
            agent_id: position
            for agent_id, (kind, position) in self._entries.items()
            if kind == LEADER
        }

    def snapshot(self) -> list[dict[str, Any]]:
        return [
            {"id": agent_id, "type": kind, "x": position.x, "y": position.y}
            for agent_id, (kind, position) in sorted(self._entries.items())
        ]

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class Leader(LifeCycle):
    """Wanders with a slowly drifting heading."""

    def __init__(
        self,
        agent_id: str,
        board: Board,
        position: Position,
        *,
        width: float,
        height: float,
        rng: random.Random,
    ) -> None:
        self.id = agent_id
        self.board = board
        self.position = position
        self.width = width
        self.height = height
        self.speed = LEADER_SPEED
        self._rng = rng
        self.heading = rng.random() * math.tau
        self.steps_on_heading = 0
        self.max_steps_on_heading = self._next_heading_span()

    def _next_heading_span(self) -> int:
        return self._rng.randint(100, 199)

    def _update_heading(self) -> None:
        if self.steps_on_heading < self.max_steps_on_heading:
            return
        self.heading += (self._rng.random() - 0.5) * 2 * MAX_HEADING_CHANGE
        self.heading %= math.tau
        self.steps_on_heading = 0
        self.max_steps_on_heading = self._next_heading_span()

    def move(self) -> None:
        self._update_heading()
        x = self.position.x + math.cos(self.heading) * self.speed
        y = self.position.y + math.sin(self.heading) * self.speed

        if x < WALL_MARGIN or x > self.width - WALL_MARGIN:
            self.heading = math.pi - self.heading
            x = min(max(x, WALL_MARGIN), self.width - WALL_MARGIN)
            self.steps_on_heading = 0
        if y < WALL_MARGIN or y > self.height - WALL_MARGIN:
            self.heading = -self.heading
            y = min(max(y, WALL_MARGIN), self.height - WALL_MARGIN)
            self.steps_on_heading = 0

        self.position = Position(x, y)
        self.steps_on_heading += 1

    @handles(Tick)
    def on_tick(self, message: Tick) -> None:
        self.move()
        self.board.place(self.id, LEADER, self.position)


class Follower(LifeCycle):
    """Chases the nearest leader on the board."""

    def __init__(self, agent_id: str, board: Board, position: Position) -> None:
        self.id = agent_id
        self.board = board
        self.position = position
        self.speed = FOLLOWER_SPEED
        self.follow_distance = FOLLOW_DISTANCE
        self.target_leader_id: str | None = None

    def find_closest_leader(self, leaders: dict[str, Position]) -> str | None:
        closest: str | None = None
        closest_distance = math.inf
        for leader_id, leader_position in leaders.items():
            distance = self.position.distance_to(leader_position)
            if distance < closest_distance:
                closest, closest_distance = leader_id, distance
        return closest

    @handles(Tick)
    def on_tick(self, message: Tick) -> None:
        leaders = self.board.leaders()
        self.target_leader_id = self.find_closest_leader(leaders)
        if self.target_leader_id is None:
            logger.debug("%s has no leaders to follow", self.id)
        else:
            target = leaders[self.target_leader_id]
            if self.position.distance_to(target) > self.follow_distance:
                self.position.move_towards(target, self.speed)
        self.board.place(self.id, FOLLOWER, self.position)


class LeaderFollowerSimulation:
    """A runtime full of leaders and followers sharing one board.

    Agent ids are ``Leader N`` and ``Follower N``, counted separately and
    reset by :meth:`clear`.  Passing a *seed* makes runs reproducible.
    """

    def __init__(self, width: float = 800.0, height: float = 600.0, seed: int | None = None):
        if width <= 2 * WALL_MARGIN or height <= 2 * WALL_MARGIN:
            msg = f"Canvas must be larger than {2 * WALL_MARGIN} in both directions"
            raise ValueError(msg)
        self.width = width
        self.height = height
        self.board = Board()
        self.runtime = Runtime()
        self.rng = random.Random(seed)
        self._leader_count = 0
        self._follower_count = 0
        self.ticks = 0

    def random_position(self) -> Position:
        return Position(
            self.rng.uniform(WALL_MARGIN, self.width - WALL_MARGIN),
            self.rng.uniform(WALL_MARGIN, self.height - WALL_MARGIN),
        )

    def add_agent(self, x: float, y: float, is_leader: bool) -> str:
        """Create, register, and start an agent at ``(x, y)``; return its id."""
        position = Position(x, y)
        inner: Leader | Follower
        if is_leader:
            self._leader_count += 1
            agent_id = f"Leader {self._leader_count}"
            inner = Leader(
                agent_id,
                self.board,
                position,
                width=self.width,
                height=self.height,
                rng=self.rng,
            )
        else:
            self._follower_count += 1
            agent_id = f"Follower {self._follower_count}"
            inner = Follower(agent_id, self.board, position)

        self.runtime.spawn_named_agent(agent_id, Agent(inner).with_handler(Tick))
        self.board.place(agent_id, LEADER if is_leader else FOLLOWER, position)
        logger.info("%s created and started", agent_id)
        return agent_id

    def tick(self) -> int:
        """Broadcast one :class:`Tick` and process it; return messages handled."""
        self.runtime.broadcast_message(Tick())
        handled = self.runtime.step()
        self.ticks += 1
        return handled

    def run(self, ticks: int) -> None:
        for _ in range(ticks):
            self.tick()

    def positions(self) -> list[dict[str, Any]]:
        return self.board.snapshot()

    def remove_agent(self, agent_id: str) -> None:
        """Remove an agent from the runtime and the board.

        Raises :class:`~arbiter.errors.AgentNotFoundError` for unknown ids.
        """
        self.runtime.remove_agent_by_name(agent_id)
        self.board.remove(agent_id)
        logger.info("Removed %s", agent_id)

    def clear(self) -> None:
        self.runtime.remove_all_agents()
        self.board.clear()
        self._leader_count = 0
        self._follower_count = 0
        logger.info("Cleared all agents")
