import pytest

from sigil.common.models import CertificateRequestConfig
from sigil.crypto.ca import build_ca
from sigil.crypto.issuer import issue
from sigil.crypto.san import assemble


@pytest.fixture(scope="session")
def ssl_config():
    return CertificateRequestConfig(
        common_name="localhost",
        country="US",
        state="CA",
        locality="SF",
        organization="Acme",
        validity_days=3650,
    )


# 4096-bit keygen takes seconds: build the chain once per session

@pytest.fixture(scope="session")
def ca(ssl_config):
    return build_ca(ssl_config)


@pytest.fixture(scope="session")
def san_set():
    return assemble("localhost", "api.example.com")


@pytest.fixture(scope="session")
def chain(ssl_config, san_set, ca):
    return issue(ssl_config, san_set, ca)
