# /riotbot/services/tutorial_service.py

"""
Tutorial sessions and their timer-driven step scheduler.

A TutorialSession walks one user through the shared TutorialFlow. Every step
is sent by an asyncio task that sleeps for the preceding delay, sends, and
then schedules the next task. A session owns at most one pending task.

Concurrency rules:
- A per-session lock serialises restarts against step advances, so a restart
  never observes a half-finished step.
- Every scheduled advance carries the session epoch it was queued under.
  Restart bumps the epoch, which turns any advance that slipped past
  cancellation into a no-op.
- The registry lock makes find-or-create atomic across concurrent commands.
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import structlog

from riotbot.config import strings
from riotbot.models.flow import StepType, TutorialFlow, TutorialStep
from riotbot.services.template_service import render_body
from riotbot.utils.metrics import (
    active_sessions_gauge,
    tutorial_commands_counter,
    tutorial_messages_counter,
    tutorials_completed_counter,
)

log = structlog.get_logger(__name__)

NOT_STARTED = -1


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TutorialSession:
    def __init__(
        self,
        room_id: str,
        user_id: str,
        flow: TutorialFlow,
        sender: Any,
        variables: Optional[Mapping[str, str]] = None,
    ):
        self.room_id = room_id
        self.user_id = user_id
        self.flow = flow
        self.sender = sender
        self.variables: Dict[str, str] = dict(flow.templates)
        if variables:
            self.variables.update(variables)
        self.current_step = NOT_STARTED
        self.epoch = 0
        self.messages_sent = 0
        self.send_failures = 0
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._completed = asyncio.Event()
        self._log = log.bind(user_id=user_id, room_id=room_id)

    @property
    def state(self) -> SessionState:
        if self._completed.is_set():
            return SessionState.COMPLETED
        if self.current_step == NOT_STARTED:
            return SessionState.NOT_STARTED
        return SessionState.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        return self._completed.is_set()

    @property
    def has_pending_step(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedules the first step after the flow's initial delay."""
        self._queue_next_step(self.flow.initial_delay_seconds)

    async def restart(self) -> None:
        """Drops any pending step and replays the flow from the top."""
        async with self._lock:
            self._cancel_pending()
            self.epoch += 1
            self.current_step = NOT_STARTED
            self._completed.clear()
            self._log.info("tutorial_restarted", epoch=self.epoch)
            self._queue_next_step(self.flow.initial_delay_seconds)

    async def cancel(self) -> None:
        """Stops the session for good; used on shutdown."""
        async with self._lock:
            self._cancel_pending()
            self.epoch += 1

    async def wait_completed(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self._completed.wait(), timeout)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "room_id": self.room_id,
            "user_id": self.user_id,
            "state": self.state.value,
            "current_step": self.current_step,
            "total_steps": len(self.flow.steps),
            "messages_sent": self.messages_sent,
            "send_failures": self.send_failures,
            "pending": self.has_pending_step,
        }

    def _cancel_pending(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _queue_next_step(self, delay: float) -> None:
        self._cancel_pending()
        self._log.info(
            "tutorial_step_queued",
            current_step=self.current_step,
            delay_ms=int(delay * 1000),
        )
        self._task = asyncio.create_task(
            self._advance_after(delay, self.epoch),
            name=f"tutorial:{self.user_id}",
        )

    async def _advance_after(self, delay: float, epoch: int) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        async with self._lock:
            if epoch != self.epoch:
                self._log.debug("tutorial_stale_step_skipped", epoch=epoch, current_epoch=self.epoch)
                return
            await self._next_step()

    async def _next_step(self) -> None:
        self.current_step += 1
        steps = self.flow.steps
        if self.current_step >= len(steps):
            self._task = None
            self._completed.set()
            tutorials_completed_counter.inc()
            active_sessions_gauge.dec()
            self._log.info("tutorial_instance_ended", steps=len(steps), failures=self.send_failures)
            return

        step = steps[self.current_step]
        self._log.info("tutorial_step_performing", step=self.current_step, message_type=step.type.value)
        await self._send_step(step)
        self._queue_next_step(step.delay_seconds)

    async def _send_step(self, step: TutorialStep) -> None:
        body = render_body(step, self.variables)
        url = self.flow.resources_base_url + step.src if step.type == StepType.IMAGE else None
        try:
            await self.sender.send_message(self.room_id, step.type, body, url=url)
        except Exception as e:
            # Best effort: a failed delivery must not stall the tutorial.
            self.send_failures += 1
            tutorial_messages_counter.labels(status="failed", message_type=step.type.value).inc()
            self._log.error(
                "tutorial_send_failed",
                message_type=step.type.value,
                body=body,
                error=str(e),
                exc_info=True,
            )
            return
        self.messages_sent += 1
        tutorial_messages_counter.labels(status="sent", message_type=step.type.value).inc()
        self._log.info("tutorial_message_sent", message_type=step.type.value, body=body)


SessionFactory = Callable[[str, str], TutorialSession]


class SessionRegistry:
    """Live tutorial sessions, matched by user ID (first match wins)."""

    def __init__(self):
        self._sessions: List[TutorialSession] = []
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    @property
    def sessions(self) -> List[TutorialSession]:
        return list(self._sessions)

    def get(self, user_id: str) -> Optional[TutorialSession]:
        for session in self._sessions:
            if session.user_id == user_id:
                return session
        return None

    def prune(self) -> int:
        """Drops sessions that have finished their flow. Returns how many were removed."""
        before = len(self._sessions)
        self._sessions = [s for s in self._sessions if not s.is_completed]
        removed = before - len(self._sessions)
        if removed:
            log.info("tutorial_sessions_pruned", removed=removed, remaining=len(self._sessions))
        active_sessions_gauge.set(len(self._sessions))
        return removed

    async def find_or_create(
        self, room_id: str, user_id: str, factory: SessionFactory
    ) -> Tuple[TutorialSession, bool]:
        async with self._lock:
            self.prune()
            existing = self.get(user_id)
            if existing is not None:
                return existing, False
            session = factory(room_id, user_id)
            self._sessions.append(session)
            active_sessions_gauge.set(len(self._sessions))
            return session, True

    async def restart(self, session: TutorialSession) -> None:
        await session.restart()

    async def cancel_all(self) -> None:
        async with self._lock:
            for session in self._sessions:
                await session.cancel()
            self._sessions = []
            active_sessions_gauge.set(0)


class TutorialService:
    """Owns the immutable flow, the outbound sender and the session registry."""

    def __init__(self, flow: TutorialFlow, sender: Any, registry: Optional[SessionRegistry] = None):
        self.flow = flow
        self.sender = sender
        self.registry = registry or SessionRegistry()

    def _new_session(self, room_id: str, user_id: str) -> TutorialSession:
        session = TutorialSession(room_id, user_id, self.flow, self.sender)
        session.start()
        return session

    async def start(self, room_id: str, user_id: str) -> str:
        """Starts a tutorial for the user, or restarts the one already running."""
        session, created = await self.registry.find_or_create(room_id, user_id, self._new_session)
        if not created:
            await self.registry.restart(session)
            tutorial_commands_counter.labels(outcome="restarted").inc()
            log.info("tutorial_restarting", user_id=user_id, room_id=session.room_id)
            return strings.TUTORIAL_RESTARTING

        tutorial_commands_counter.labels(outcome="started").inc()
        log.info("tutorial_starting", user_id=user_id, room_id=room_id, steps=len(self.flow.steps))
        return strings.TUTORIAL_STARTING

    def get_session(self, user_id: str) -> Optional[TutorialSession]:
        return self.registry.get(user_id)

    async def shutdown(self) -> None:
        await self.registry.cancel_all()
