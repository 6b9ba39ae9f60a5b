import pytest
from cryptography import x509

from sigil.common.errors import ValidationError
from sigil.common.models import SanType
from sigil.crypto.san import LOOPBACK, assemble, assemble_from_names


def _triples(san_set):
    return [(e.type, e.index, e.value) for e in san_set.entries]


def test_empty_additional_list_yields_cn_and_loopback():
    san_set = assemble("host.local", "")
    assert _triples(san_set) == [
        (SanType.DNS, 1, "host.local"),
        (SanType.DNS, 2, "127.0.0.1"),
    ]


def test_additional_names_trimmed_and_deduplicated():
    san_set = assemble("host", "a.com, b.com ,a.com")
    assert san_set.names() == ["host", LOOPBACK, "a.com", "b.com"]
    assert [e.index for e in san_set.entries] == [1, 2, 3, 4]


def test_names_repeating_cn_or_loopback_are_dropped():
    san_set = assemble("host", "127.0.0.1, host, other.host")
    assert san_set.names() == ["host", LOOPBACK, "other.host"]
    assert [e.index for e in san_set.entries] == [1, 2, 3]


def test_empty_tokens_are_ignored():
    san_set = assemble("host", " , ,x.io,, ")
    assert san_set.names() == ["host", LOOPBACK, "x.io"]


def test_input_order_preserved():
    san_set = assemble_from_names("host", ["z.io", "a.io", "m.io"])
    assert san_set.names()[2:] == ["z.io", "a.io", "m.io"]


@pytest.mark.parametrize("cn", ["", "   ", None])
def test_empty_common_name_rejected(cn):
    with pytest.raises(ValidationError):
        assemble(cn, "a.com")


def test_loopback_as_ip_when_requested():
    san_set = assemble("host", "", ip_loopback=True)
    assert san_set.entries[1].type is SanType.IP
    ext = san_set.to_x509()
    assert [str(ip) for ip in ext.get_values_for_type(x509.IPAddress)] == ["127.0.0.1"]


def test_to_x509_keeps_loopback_as_dns_by_default():
    ext = assemble("host", "a.com").to_x509()
    assert ext.get_values_for_type(x509.DNSName) == ["host", "127.0.0.1", "a.com"]
    assert ext.get_values_for_type(x509.IPAddress) == []


def test_internationalised_names_become_a_labels():
    san_set = assemble("bücher.de", "münchen.example, xn--mnchen-3ya.example")
    assert san_set.names() == ["xn--bcher-kva.de", "127.0.0.1", "xn--mnchen-3ya.example"]


def test_unencodable_name_rejected():
    with pytest.raises(ValidationError, match="internationalised"):
        assemble("host", "ü" * 64 + ".de")
