import pytest

from netpolicy_sync.config import AddressFamily, AddressKind, sorted_cidrs
from netpolicy_sync.normalizer import classify, normalize, normalize_address


@pytest.mark.parametrize(
    "raw, kind",
    [
        ("10.0.0.1", AddressKind.IPV4_ADDRESS),
        ("10.0.0.0/24", AddressKind.IPV4_CIDR),
        ("2001:db8::1", AddressKind.IPV6_ADDRESS),
        ("2001:db8::/32", AddressKind.IPV6_CIDR),
        ("10.0.0.1-10.0.0.5", None),
        ("169.254.1.1", None),
        ("fe80::1", None),
        ("2001:db8::1%eth0", None),
        ("2001:db8::/32%eth0", None),
        ("not-an-address", None),
        ("10.0.0.0/33", None),
        ("", None),
    ],
)
def test_classify(raw, kind):
    assert classify(raw) == kind


def test_bare_addresses_gain_host_prefix():
    v4 = normalize_address("10.0.0.1")
    v6 = normalize_address("2001:db8::1")

    assert v4.cidr == "10.0.0.1/32"
    assert v4.family is AddressFamily.IPV4
    assert v6.cidr == "2001:db8::1/128"
    assert v6.family is AddressFamily.IPV6


def test_cidr_text_is_kept_unchanged():
    assert normalize_address("2001:db8::/32").cidr == "2001:db8::/32"
    assert normalize_address("192.168.1.0/24").cidr == "192.168.1.0/24"


def test_normalize_drops_ranges_and_link_local():
    result = normalize(
        [
            "10.0.0.1",
            "10.0.0.1/32",
            "10.0.0.1-10.0.0.5",
            "169.254.1.1",
            "fe80::1",
            "2001:db8::/32",
        ]
    )

    assert sorted_cidrs(result) == ["10.0.0.1/32", "2001:db8::/32"]


def test_normalize_empty_input():
    assert normalize([]) == set()


def test_normalized_cidrs_sort_by_string():
    cidrs = sorted(normalize(["192.168.1.5", "192.168.1.10", "10.0.0.0/8"]))

    assert [c.cidr for c in cidrs] == ["10.0.0.0/8", "192.168.1.10/32", "192.168.1.5/32"]
