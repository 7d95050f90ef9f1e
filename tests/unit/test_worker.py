from pathlib import Path

import pytest

from netpolicy_sync.config import (
    AddressFamily,
    APIEndpoint,
    FirewallTarget,
    GitTarget,
    ManagerType,
    Policy,
)
from netpolicy_sync.errors import ConfigurationError, TransportError
from netpolicy_sync.worker import PassGuard, PassState, PassStatus, SyncWorker

from fakes import FailingFirewall, FakeClientFactory, FakeManager, tag

GM = APIEndpoint(name="gm", url="https://gm.example.org", type=ManagerType.GLOBAL)
FW1 = APIEndpoint(name="fw1", url="https://fw1.example.org", key="k")
FW2 = APIEndpoint(name="fw2", url="https://fw2.example.org", key="k")
REPO = APIEndpoint(name="policies", url="https://git.example.org/net/policies.git")
LM = APIEndpoint(name="lm", url="https://lm.example.org", type=ManagerType.LOCAL)


def build_clients(tmp_path: Path) -> FakeClientFactory:
    clients = FakeClientFactory(tmp_path)
    clients.managers[GM.url] = FakeManager(
        searches={
            ("resource_type:Group AND tags.scope:exposure", True): [
                {
                    "tags": [tag("exposure", "web")],
                    "expression": [{"ip_addresses": ["192.168.1.5", "192.168.1.10"]}],
                },
                {
                    "tags": [tag("exposure", "db")],
                    "expression": [{"ip_addresses": ["10.50.0.0/24", "169.254.0.9"]}],
                },
            ]
        }
    )
    return clients


def build_policy(name: str, group_tag: str, firewall: APIEndpoint = FW1) -> Policy:
    return Policy(
        name=name,
        scope="exposure",
        managers=(GM,),
        group_tags=(group_tag,),
        firewalls=(FirewallTarget(firewall, ("root",)),),
        git_targets=(GitTarget(REPO, "main"),),
    )


def test_web_tier_pass(tmp_path: Path):
    clients = build_clients(tmp_path)
    worker = SyncWorker(lambda: [build_policy("web-tier", "web")], clients)

    result = worker.work()

    assert result.status is PassStatus.OK
    assert result.run_number == 1
    outcome = result.outcomes[0]
    assert outcome.succeeded
    assert outcome.addresses == ["192.168.1.10/32", "192.168.1.5/32"]

    firewall = clients.firewalls[FW1.url]
    assert sorted(firewall.members(AddressFamily.IPV4)) == ["192.168.1.10/32", "192.168.1.5/32"]

    repo = clients.repositories["policies"]
    text = (repo.path / "ciliumGroups" / "web-tier.yaml").read_text()
    assert text.index("192.168.1.10/32") < text.index("192.168.1.5/32")
    assert repo.commits == ["Update web-tier.yaml"]


def test_second_pass_changes_nothing(tmp_path: Path):
    clients = build_clients(tmp_path)
    worker = SyncWorker(lambda: [build_policy("web-tier", "web")], clients)

    worker.work()
    firewall = clients.firewalls[FW1.url]
    mutations = len(firewall.mutations)
    second = worker.work()

    assert second.run_number == 2
    assert worker.run_count == 2
    assert len(firewall.mutations) == mutations
    assert all(r.mutations == 0 for r in second.outcomes[0].firewall_results)
    assert clients.repositories["policies"].commits == ["Update web-tier.yaml"]
    assert [r.committed for r in second.outcomes[0].publish_results] == [False]


def test_failing_policy_does_not_stop_the_pass(tmp_path: Path):
    clients = build_clients(tmp_path)
    clients.firewalls[FW2.url] = FailingFirewall("fw2")
    policies = [
        build_policy("broken", "web", firewall=FW2),
        build_policy("db-tier", "db"),
    ]

    result = SyncWorker(lambda: policies, clients).work()

    assert result.status is PassStatus.OK
    assert result.failed == ["broken"]
    assert "connection refused" in result.outcomes[0].error
    assert result.outcomes[1].succeeded
    assert result.outcomes[1].addresses == ["10.50.0.0/24"]
    assert clients.repositories["policies"].commits == ["Update db-tier.yaml"]


def test_pass_refused_while_another_is_running(tmp_path: Path):
    guard = PassGuard()
    assert guard.try_start()
    worker = SyncWorker(
        lambda: [build_policy("web-tier", "web")], build_clients(tmp_path), guard=guard
    )

    result = worker.work()

    assert result.status is PassStatus.ALREADY_RUNNING
    assert int(result.status) == 7
    assert worker.is_running
    assert worker.run_count == 0

    guard.finish()
    assert worker.work().status is PassStatus.OK
    assert guard.state is PassState.IDLE


def test_guard_released_when_loading_policies_fails(tmp_path: Path):
    def broken_loader():
        raise ConfigurationError("policy file unreadable")

    worker = SyncWorker(broken_loader, build_clients(tmp_path))

    with pytest.raises(ConfigurationError):
        worker.work()
    assert not worker.is_running
    assert worker.run_count == 0


def test_aggregation_failure_skips_only_that_policy(tmp_path: Path):
    clients = build_clients(tmp_path)
    clients.managers[LM.url] = FakeManager(error=TransportError("search timed out"))
    unreachable = Policy(
        name="unreachable",
        scope="exposure",
        managers=(LM,),
        group_tags=("web",),
        firewalls=(FirewallTarget(FW1, ("root",)),),
        git_targets=(GitTarget(REPO, "main"),),
    )
    policies = [unreachable, build_policy("db-tier", "db")]

    result = SyncWorker(lambda: policies, clients).work()

    assert result.failed == ["unreachable"]
    assert "search timed out" in result.outcomes[0].error
    assert result.outcomes[0].firewall_results == []
    assert result.outcomes[1].succeeded
    firewall = clients.firewalls[FW1.url]
    assert firewall.members(AddressFamily.IPV4) == ["10.50.0.0/24"]
    assert clients.repositories["policies"].commits == ["Update db-tier.yaml"]
