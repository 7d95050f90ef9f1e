from pathlib import Path

import pytest

from netpolicy_sync.aggregator import SourceAggregator
from netpolicy_sync.config import APIEndpoint, ManagerType, Policy
from netpolicy_sync.errors import TransportError

from fakes import FakeClientFactory, FakeIPAM, FakeManager, tag

GM = APIEndpoint(name="gm", url="https://gm.example.org", type=ManagerType.GLOBAL)
LM = APIEndpoint(name="lm", url="https://lm.example.org", type=ManagerType.LOCAL)
GMM = APIEndpoint(name="lm2", url="https://lm2.example.org", type=ManagerType.GLOBAL_MANAGED)
IPAM = APIEndpoint(name="ipam", url="https://ipam.example.org/api", key="token")


def build_policy(**kwargs) -> Policy:
    defaults = dict(name="web-tier", scope="exposure", group_tags=("web",))
    defaults.update(kwargs)
    return Policy(**defaults)


def test_global_manager_uses_group_expressions(tmp_path: Path):
    clients = FakeClientFactory(tmp_path)
    clients.managers[GM.url] = FakeManager(
        searches={
            ("resource_type:Group AND tags.scope:exposure", True): [
                {
                    "display_name": "web",
                    "tags": [tag("exposure", "web")],
                    "expression": [
                        {"ip_addresses": ["192.168.1.5", "192.168.1.10"]},
                        {"resource_type": "Condition"},
                    ],
                },
                {
                    "display_name": "db",
                    "tags": [tag("exposure", "db")],
                    "expression": [{"ip_addresses": ["10.9.9.9"]}],
                },
            ]
        }
    )

    addresses = SourceAggregator(clients).collect(build_policy(managers=(GM,)))

    assert addresses == {"192.168.1.5", "192.168.1.10"}


def test_local_manager_resolves_members_by_policy_path(tmp_path: Path, caplog):
    clients = FakeClientFactory(tmp_path)
    clients.managers[LM.url] = FakeManager(
        searches={
            ("resource_type:NSGroup AND tags.scope:exposure", False): [
                {
                    "display_name": "web",
                    "tags": [
                        tag("exposure", "web"),
                        tag("policyPath", "/infra/domains/default/groups/web"),
                    ],
                },
                {"display_name": "untagged", "tags": [tag("exposure", "web")]},
            ]
        },
        members={"/infra/domains/default/groups/web": ["172.16.0.4", "fe80::1"]},
    )

    addresses = SourceAggregator(clients).collect(build_policy(managers=(LM,)))

    assert addresses == {"172.16.0.4", "fe80::1"}
    assert "untagged" in caplog.text


def test_vm_tags_only_apply_to_globally_managed_managers(tmp_path: Path):
    running = "resource_type:VirtualMachine AND tags.scope:exposure AND power_state:VM_RUNNING"
    vm = {"external_id": "vm-1", "tags": [tag("exposure", "web")]}
    vifs = {
        "vm-1": [
            {"ip_address_info": [{"ip_addresses": ["10.1.0.7", "fe80::7"]}]},
            {"ip_address_info": []},
        ]
    }
    clients = FakeClientFactory(tmp_path)
    clients.managers[GMM.url] = FakeManager(searches={(running, False): [vm]}, vifs=vifs)
    clients.managers[LM.url] = FakeManager(searches={(running, False): [vm]}, vifs=vifs)

    policy = build_policy(managers=(GMM, LM), group_tags=(), vm_tags=("web",))
    addresses = SourceAggregator(clients).collect(policy)

    assert addresses == {"10.1.0.7", "fe80::7"}
    assert clients.managers[LM.url].queries == []


def test_ipam_prefixes_need_endpoint_and_query(tmp_path: Path):
    clients = FakeClientFactory(tmp_path)
    clients.ipams[IPAM.url] = FakeIPAM(["10.20.0.0/16"])
    aggregator = SourceAggregator(clients)

    query = "https://ipam.example.org/api/ipam/prefixes/?tag=web"
    assert aggregator.collect(build_policy(ipam_endpoint=IPAM, query=query)) == {
        "10.20.0.0/16"
    }
    assert aggregator.collect(build_policy(ipam_endpoint=IPAM)) == set()
    assert clients.ipams[IPAM.url].queries == [query]


def test_manager_failure_propagates(tmp_path: Path):
    clients = FakeClientFactory(tmp_path)
    clients.managers[GM.url] = FakeManager(error=TransportError("timed out"))

    with pytest.raises(TransportError):
        SourceAggregator(clients).collect(build_policy(managers=(GM,)))
