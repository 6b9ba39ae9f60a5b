"""
The two generation pipelines.

SSL:  SAN set -> CA -> server certificate -> ssl_dir (7 files)
JWT:  one key pair per requested algorithm -> jwt_dir

Each pipeline validates before it generates, generates before it writes,
and commits its whole output set at once. A failure is reported in the
returned PipelineResult; nothing is retried.
"""

import logging
from typing import Optional, Sequence

from cryptography.hazmat.primitives import serialization

from sigil.common.errors import SigilError, ValidationError
from sigil.common.models import (
    CertificateChain,
    CertificateRequestConfig,
    ContentKind,
    KeyGenerationRequest,
    PermissionClass,
    PipelineResult,
)
from sigil.crypto import keys
from sigil.crypto.ca import build_ca, private_key_pem
from sigil.crypto.issuer import issue
from sigil.crypto.san import assemble_from_names
from sigil.storage import writer

logger = logging.getLogger(__name__)

# ssl_dir layout
CA_KEY = "ca.key"
CA_CERT = "ca.crt"
SERVER_KEY = "server.key"
SERVER_CSR = "server.csr"
SERVER_CERT = "server.crt"
SERVER_PEM = "server.pem"
SERVER_EXT_CONFIG = "server_cert_ext.cnf"


def _write_chain(stage: writer.Stage, chain: CertificateChain, passphrase: Optional[bytes]) -> None:
    pem = serialization.Encoding.PEM
    private, public = PermissionClass.PRIVATE, PermissionClass.PUBLIC

    stage.write(CA_KEY, private_key_pem(chain.ca.private_key, passphrase), private, ContentKind.KEY)
    stage.write(CA_CERT, chain.ca.certificate.public_bytes(pem), public, ContentKind.CERTIFICATE)
    stage.write(SERVER_KEY, private_key_pem(chain.server_private_key, passphrase), private, ContentKind.KEY)
    stage.write(SERVER_CSR, chain.server_csr.public_bytes(pem), public, ContentKind.CSR)
    stage.write(SERVER_CERT, chain.server_certificate.public_bytes(pem), public, ContentKind.CERTIFICATE)
    stage.write(SERVER_PEM, chain.server_pem_export, private, ContentKind.KEY)
    stage.write(SERVER_EXT_CONFIG, chain.ext_config.encode(), public, ContentKind.CONFIG_EXTENSION)


def run_ssl(
    config: CertificateRequestConfig,
    ssl_dir,
    passphrase: Optional[bytes] = None,
) -> PipelineResult:
    """
    Build the CA and server certificate for `config` and write them to `ssl_dir`.
    ca.key / server.key are encrypted only when `passphrase` is given.
    """
    try:
        san_set = assemble_from_names(
            config.common_name,
            config.additional_dns_names,
            ip_loopback=config.ip_loopback,
        )
        ca = build_ca(config)
        chain = issue(config, san_set, ca)

        with writer.staged(ssl_dir) as stage:
            _write_chain(stage, chain, passphrase)
    except SigilError as exc:
        logger.error("SSL pipeline failed: %s", exc)
        return PipelineResult.failed("ssl", exc)

    return PipelineResult(pipeline="ssl", success=True, artifacts=stage.artifacts)


def _check_requests(requests: Sequence[KeyGenerationRequest]) -> None:
    if not requests:
        raise ValidationError("no key algorithm selected")

    seen = set()
    for request in requests:
        if request.algorithm in seen:
            raise ValidationError(f"{request.algorithm.value} requested more than once")
        seen.add(request.algorithm)
        keys.validate_request(request)


def run_jwt(requests: Sequence[KeyGenerationRequest], jwt_dir) -> PipelineResult:
    """
    Generate one key pair per request and write them to `jwt_dir`.
    Every request is validated and support-checked before the first key
    is generated, so an unsupported algorithm leaves no files behind.
    """
    try:
        _check_requests(requests)

        with writer.staged(jwt_dir) as stage:
            for request in requests:
                material = keys.generate_request(request)
                stage.write(
                    material.algorithm.private_file,
                    material.private_key_pem,
                    PermissionClass.PRIVATE,
                    ContentKind.KEY,
                )
                stage.write(
                    material.algorithm.public_file,
                    material.public_key_pem,
                    PermissionClass.PUBLIC,
                    ContentKind.KEY,
                )
                del material
    except SigilError as exc:
        logger.error("JWT pipeline failed: %s", exc)
        return PipelineResult.failed("jwt", exc)

    return PipelineResult(pipeline="jwt", success=True, artifacts=stage.artifacts)
