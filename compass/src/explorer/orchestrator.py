"""
Exploration Orchestrator

Drives exploration sessions: Initialized -> Stepping -> Ended.

Each ``step`` picks an action with the session's strategy, vets it with the
safety validator, hands it to the execution collaborator, captures the
resulting page, feeds the novelty model and frontier, scores the transition
and checks the session ceilings. The novelty model and frontier are shared by
every session this orchestrator runs; everything else is per session.
"""
from __future__ import annotations

import inspect
import math
import random
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, Union

from compass.src.explorer.logger import ExplorationLogger
from compass.src.explorer.models import (
    ActionKind,
    ActionProposal,
    CapturedState,
    ExecutionOutcome,
    ExplorationConfig,
    SessionContext,
    SessionStatus,
    StepResult,
)
from compass.src.explorer.reward import RewardCalculator, compute_returns
from compass.src.explorer.safety import SafetyValidator, domain_policy_for
from compass.src.explorer.session import ExplorationSession
from compass.src.explorer.strategies import StrategyContext, get_strategy
from compass.src.rl.frontier import FrontierManager
from compass.src.rl.novelty import NoveltyModel
from compass.src.rl.option_scheduler import OptionScheduler
from compass.src.rl.options import DEFAULT_OPTIONS, OptionPolicy
from compass.src.utils.config import CONFIG, AppConfig
from compass.src.utils.urls import normalize_url

EXPORT_FRONTIER_LIMIT = 200
NOVELTY_WINDOW = 10


class StateCapture(Protocol):
    def capture_state(self, context: SessionContext) -> Union[CapturedState, Awaitable[CapturedState]]:
        ...


class ActionExecutor(Protocol):
    def execute(
        self, action: ActionProposal, context: SessionContext
    ) -> Union[ExecutionOutcome, Awaitable[ExecutionOutcome]]:
        ...


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def action_entropy(counts: Dict[str, int]) -> float:
    """Shannon entropy (bits) of the action-kind distribution."""
    total = sum(counts.values())
    if total == 0:
        return 0.0
    entropy = 0.0
    for count in counts.values():
        if count:
            p = count / total
            entropy -= p * math.log2(p)
    return entropy


class ExplorationOrchestrator:
    """Runs exploration sessions against external capture/execution collaborators."""

    def __init__(
        self,
        capture: StateCapture,
        executor: ActionExecutor,
        *,
        novelty: NoveltyModel | None = None,
        frontier: FrontierManager | None = None,
        options: Sequence[OptionPolicy] = DEFAULT_OPTIONS,
        reward_calculator: RewardCalculator | None = None,
        config: AppConfig | None = None,
        clock: Callable[[], float] = time.time,
        log_callback: Optional[Callable[[str], None]] = None,
    ):
        self.config = config or CONFIG
        self.capture = capture
        self.executor = executor
        self.novelty = novelty or NoveltyModel(self.config.novelty, self.config.rnd)
        self.frontier = frontier or FrontierManager(
            self.config.frontier, fingerprinter=self.novelty.fingerprinter, clock=clock
        )
        self.scheduler = OptionScheduler(self.novelty, options=options, config=self.config.scheduler)
        self.reward_calculator = reward_calculator or RewardCalculator()
        self._clock = clock
        self._log_callback = log_callback

        self._sessions: Dict[str, ExplorationSession] = {}
        self._validators: Dict[str, SafetyValidator] = {}

    def _log(self, message: str) -> None:
        print(f"[ExplorationOrchestrator] {message}")
        if self._log_callback:
            self._log_callback(message)

    def _require(self, session_id: str) -> ExplorationSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(f"Unknown exploration session: {session_id}")
        return session

    def get_session(self, session_id: str) -> Optional[ExplorationSession]:
        return self._sessions.get(session_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_session(self, start_url: str, config: ExplorationConfig | None = None) -> str:
        """Create a session, capture the start page and seed novelty/frontier with it."""
        config = config or ExplorationConfig()
        session_id = uuid.uuid4().hex
        session = ExplorationSession(
            session_id=session_id,
            start_url=start_url,
            config=config,
            rng=random.Random(config.seed),
            logger=ExplorationLogger(session_id, config.log_file),
            started_at=self._clock(),
        )

        context = SessionContext(
            session_id=session_id,
            start_url=start_url,
            current_url=start_url,
            step_index=0,
            navigate_to=start_url,
        )
        initial = await _resolve(self.capture.capture_state(context))

        novelty = self.novelty.score(initial, train=True)
        self.frontier.consider(initial, novelty, depth=0)
        self.novelty.observe(initial)
        self.frontier.mark_visited(initial)
        session.record_state(initial, novelty)

        session.status = SessionStatus.STEPPING
        self._sessions[session_id] = session
        self._validators[session_id] = SafetyValidator(
            self.config.safety,
            domain_policy=domain_policy_for(config.allowed_domains, config.stay_within_domain, start_url),
            clock=self._clock,
        )

        session.logger.log_session_started(start_url, config.strategy.value)
        self._log(f"Session {session_id} started at {initial.url} ({config.strategy.value})")
        return session_id

    async def step(self, session_id: str) -> StepResult:
        session = self._require(session_id)
        if session.status is SessionStatus.ENDED:
            raise RuntimeError(f"Session {session_id} has already ended")

        current = session.current_state
        step_index = len(session.actions)
        pending = session.pending_backtrack

        if pending:
            action = ActionProposal(kind=ActionKind.NAVIGATE, value=pending, source="frontier:requested")
        else:
            action = self._select_action(session, current)
        action.timestamp = self._clock()

        validator = self._validators[session_id]
        verdict = validator.validate(action, current, [a.timestamp for a in session.actions])

        if not verdict.allowed:
            action.success = False
            action.error_message = f"Blocked by safety validator: {verdict.reason}"
            new_state = current
            session.logger.log_blocked(step_index, action, verdict.reason or "")
            self._log(f"Blocked {action.kind.value} ({verdict.reason})")
        else:
            context = SessionContext(
                session_id=session_id,
                start_url=session.start_url,
                current_url=current.url,
                step_index=step_index,
            )
            outcome = await _resolve(self.executor.execute(action, context))
            action.success = outcome.success
            action.error_message = outcome.error_message
            new_state = await _resolve(
                self.capture.capture_state(context.model_copy(update={"step_index": step_index + 1}))
            )

        if pending:
            session.pending_backtrack = None
        if action.kind is ActionKind.NAVIGATE and action.source.startswith("frontier:"):
            session.logger.log_backtrack(current.url, action.value or "", action.source.split(":", 1)[1])

        novelty = self.novelty.score(new_state, train=True)
        self.frontier.consider(new_state, novelty, depth=step_index + 1)
        self.novelty.observe(new_state)
        self.frontier.mark_visited(new_state)

        reward = self.reward_calculator.calculate(current, action, new_state, session.states, session.actions)
        session.record_step(action, current.url, new_state, reward, novelty)
        session.logger.log_step(step_index, action, new_state.url, reward)

        reason = self._ceiling_reached(session)
        done = reason is not None
        if done:
            self._finish(session, reason)

        return StepResult(action=action, new_state=new_state, reward=reward, done=done)

    def request_backtrack(self, session_id: str, url: Optional[str] = None) -> Optional[str]:
        """Queue a forced navigation for the next step; picks a same-domain frontier entry if no URL is given."""
        session = self._require(session_id)
        if url is None:
            current = session.current_state
            url = self.frontier.next_candidate(current.url, session.visited_urls, domain=current.domain)
            if url is None:
                return None
        session.pending_backtrack = url
        self._log(f"Backtrack queued for {session_id}: {url}")
        return url

    def end_session(self, session_id: str) -> Dict[str, Any]:
        session = self._require(session_id)
        if session.status is not SessionStatus.ENDED:
            self._finish(session, "requested")
        return self._stats(session)

    def _finish(self, session: ExplorationSession, reason: str) -> None:
        session.status = SessionStatus.ENDED
        session.ended_at = self._clock()
        session.end_reason = reason
        session.logger.log_session_ended(reason, self._stats(session))
        saved = session.logger.save()
        self._log(
            f"Session {session.session_id} ended ({reason}): "
            f"{len(session.actions)} actions, {session.pages_explored} pages"
            + (f", log saved to {saved}" if saved else "")
        )

    def _ceiling_reached(self, session: ExplorationSession) -> Optional[str]:
        cfg = session.config
        if session.elapsed(self._clock()) >= cfg.max_duration_seconds:
            return "max_duration"
        if len(session.actions) >= cfg.max_actions:
            return "max_actions"
        if session.pages_explored >= cfg.max_pages:
            return "max_pages"
        if session.failed_actions >= cfg.max_failures:
            return "max_failures"
        return None

    def _select_action(self, session: ExplorationSession, state: CapturedState) -> ActionProposal:
        ctx = StrategyContext(
            session=session,
            novelty=self.novelty,
            frontier=self.frontier,
            scheduler=self.scheduler,
            low_threshold=self.config.novelty.low_threshold,
            log=self._log,
        )
        return get_strategy(session.config.strategy).select(state, ctx)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def _stats(self, session: ExplorationSession) -> Dict[str, Any]:
        actions = len(session.actions)
        return {
            "session_id": session.session_id,
            "status": session.status.value,
            "start_url": session.start_url,
            "current_url": session.current_url,
            "elapsed_seconds": round(session.elapsed(self._clock()), 3),
            "actions_performed": actions,
            "pages_explored": session.pages_explored,
            "success_rate": session.successful_actions / actions if actions else 0.0,
            "total_reward": session.total_reward,
            "end_reason": session.end_reason,
        }

    def get_session_stats(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self._sessions.get(session_id)
        return self._stats(session) if session else None

    def get_session_metrics(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self._sessions.get(session_id)
        if session is None:
            return None

        actions = len(session.actions)
        successes = session.successful_actions
        failures = actions - successes
        pages = session.pages_explored
        latest = session.current_state

        recent_states = session.states[-NOVELTY_WINDOW:]
        novelty_avg = (
            sum(self.novelty.count_reward(s) for s in recent_states) / len(recent_states)
            if recent_states
            else 0.0
        )
        counts = session.action_kind_counts()

        return {
            "coverage": {
                "pages": pages,
                "domains": len({s.domain for s in session.states if s.domain}),
                "forms_covered": len({normalize_url(s.url) for s in session.states if s.forms}),
                "element_types": len({e.tag for e in latest.elements if e.tag}),
            },
            "efficiency": {
                "actions_per_page": actions / pages if pages else 0.0,
                "success_rate": successes / actions if actions else 0.0,
                "error_rate": failures / actions if actions else 0.0,
                "elapsed_seconds": round(session.elapsed(self._clock()), 3),
            },
            "learning": {
                "novelty_avg": novelty_avg,
                "exploration_entropy": action_entropy(counts),
                "action_type_counts": counts,
            },
            "totals": {
                "actions": actions,
                "successes": successes,
                "failures": failures,
                "total_reward": session.total_reward,
            },
        }

    def get_session_export(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self._sessions.get(session_id)
        if session is None:
            return None

        timeline: List[Dict[str, Any]] = []
        cumulative = 0.0
        for index, (action, reward, state) in enumerate(zip(session.actions, session.rewards, session.states[1:])):
            cumulative += reward.total
            timeline.append(
                {
                    "index": index,
                    "action": action.kind.value,
                    "source": action.source,
                    "success": action.success,
                    "url": state.url,
                    "reward": reward.total,
                    "cumulative_reward": cumulative,
                }
            )

        frontier = self.frontier.snapshot(domain=session.domain)[:EXPORT_FRONTIER_LIMIT]
        return {
            "summary": self._stats(session),
            "metrics": self.get_session_metrics(session_id),
            "frontier": [entry.model_dump() for entry in frontier],
            "timeline": timeline,
            "returns": compute_returns([r.total for r in session.rewards]),
        }
