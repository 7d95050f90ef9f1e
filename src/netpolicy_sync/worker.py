"""Reconciliation pass over every configured policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from threading import Lock
from typing import Callable, Iterable, List, Optional

from .aggregator import SourceAggregator
from .clients import ClientFactory
from .config import Policy
from .errors import SyncError
from .normalizer import normalize
from .publisher import ArtifactPublisher, PublishResult
from .reconciler import FirewallGroupReconciler, ReconcileResult

LOG = logging.getLogger(__name__)

PolicyLoader = Callable[[], Iterable[Policy]]


class PassStatus(IntEnum):
    OK = 0
    ALREADY_RUNNING = 7


class PassState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class PassGuard:
    """Allow at most one pass at a time without ever blocking the caller."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._state = PassState.IDLE

    @property
    def state(self) -> PassState:
        return self._state

    def try_start(self) -> bool:
        with self._lock:
            if self._state is PassState.RUNNING:
                return False
            self._state = PassState.RUNNING
            return True

    def finish(self) -> None:
        with self._lock:
            self._state = PassState.IDLE


@dataclass
class PolicyOutcome:
    policy: str
    succeeded: bool = True
    error: Optional[str] = None
    addresses: List[str] = field(default_factory=list)
    firewall_results: List[ReconcileResult] = field(default_factory=list)
    publish_results: List[PublishResult] = field(default_factory=list)


@dataclass
class PassResult:
    status: PassStatus
    run_number: Optional[int] = None
    outcomes: List[PolicyOutcome] = field(default_factory=list)

    @property
    def failed(self) -> List[str]:
        return [o.policy for o in self.outcomes if not o.succeeded]


class SyncWorker:
    """Run aggregation, normalization, firewall reconciliation and publishing.

    Policies are processed strictly one after another.  A failure while
    processing one policy is logged and recorded, and the pass moves on to the
    next policy without rolling back what was already applied.
    """

    def __init__(
        self,
        policies: PolicyLoader,
        clients: ClientFactory,
        *,
        guard: Optional[PassGuard] = None,
    ) -> None:
        self._policies = policies
        self._clients = clients
        self._guard = guard or PassGuard()
        self._aggregator = SourceAggregator(clients)
        self._publisher = ArtifactPublisher(clients)
        self._run_count = 0

    @property
    def is_running(self) -> bool:
        return self._guard.state is PassState.RUNNING

    @property
    def run_count(self) -> int:
        return self._run_count

    def work(self) -> PassResult:
        if not self._guard.try_start():
            LOG.warning("Reconciliation pass already running; not starting another")
            return PassResult(status=PassStatus.ALREADY_RUNNING)

        try:
            LOG.debug("Reconciliation pass starting")
            outcomes = [self._process(policy) for policy in self._policies()]
            self._run_count += 1
            LOG.info(
                "Completed reconciliation pass %d (%d policies, %d failed)",
                self._run_count,
                len(outcomes),
                sum(1 for o in outcomes if not o.succeeded),
            )
            return PassResult(
                status=PassStatus.OK, run_number=self._run_count, outcomes=outcomes
            )
        finally:
            self._guard.finish()

    def _process(self, policy: Policy) -> PolicyOutcome:
        outcome = PolicyOutcome(policy=policy.name)
        try:
            self.process_policy(policy, outcome)
        except Exception as exc:
            outcome.succeeded = False
            outcome.error = str(exc)
            context = exc.context() if isinstance(exc, SyncError) else {}
            LOG.error(
                "Error processing policy %s, skipping to next policy: %s",
                policy.name,
                exc,
                extra={"context": context},
                exc_info=not isinstance(exc, SyncError),
            )
        return outcome

    def process_policy(self, policy: Policy, outcome: Optional[PolicyOutcome] = None) -> PolicyOutcome:
        outcome = outcome or PolicyOutcome(policy=policy.name)
        LOG.info("Processing policy %s", policy.name)

        raw = self._aggregator.collect(policy)
        cidrs = sorted(normalize(raw))
        outcome.addresses = [c.cidr for c in cidrs]
        LOG.debug(
            "policy %s: %d raw addresses normalized to %d CIDRs",
            policy.name,
            len(raw),
            len(cidrs),
        )

        for target in policy.firewalls:
            reconciler = FirewallGroupReconciler(self._clients.firewall(target.endpoint))
            for vdom in target.vdoms:
                outcome.firewall_results.extend(reconciler.reconcile_all(vdom, cidrs))

        outcome.publish_results.extend(self._publisher.publish(policy, cidrs))
        return outcome
