"""
Issue the server certificate signed by the Root CA.

Steps:
    1. generate the server key (RSA 4096)
    2. build + self-sign a CSR carrying the subjectAltName set
    3. sign the CSR with the CA, copying the CSR's SAN into the leaf
    4. export the server key as unencrypted PKCS#8 (server.pem)
    5. render server_cert_ext.cnf describing the same extensions

A failed step is never retried with the same CSR: a retry must call
issue() again so the key and CSR are regenerated together.
"""

import logging
from typing import Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID

from sigil.common.errors import CryptoError
from sigil.common.models import (
    CertificateAuthority,
    CertificateChain,
    CertificateRequestConfig,
    SubjectAltNameSet,
)
from sigil.common.utils import sha256_fingerprint, validity_window
from sigil.crypto.ca import PUBLIC_EXPONENT, build_subject
from sigil.crypto.pki import validate_issued_certificate

logger = logging.getLogger(__name__)

SERVER_KEY_SIZE = 4096


def render_ext_config(config: CertificateRequestConfig, san_set: SubjectAltNameSet) -> str:
    """
    OpenSSL request/extension config equivalent to what was put in the
    CSR and certificate (server_cert_ext.cnf).
    """
    alt_names = "\n".join(
        f"{entry.type.value}.{entry.index} = {entry.value}" for entry in san_set.entries
    )
    return (
        "[req]\n"
        "distinguished_name = req_distinguished_name\n"
        "req_extensions = req_ext\n"
        "x509_extensions = v3_req\n"
        "[req_distinguished_name]\n"
        f"countryName = {config.country}\n"
        f"countryName_default = {config.country}\n"
        f"stateOrProvinceName = {config.state}\n"
        f"stateOrProvinceName_default = {config.state}\n"
        f"localityName = {config.locality}\n"
        f"localityName_default = {config.locality}\n"
        f"organizationName = {config.organization}\n"
        f"organizationName_default = {config.organization}\n"
        f"commonName = {config.common_name}\n"
        f"commonName_default = {config.common_name}\n"
        "\n"
        "[req_ext]\n"
        "subjectAltName = @alt_names\n"
        "[v3_req]\n"
        "subjectAltName = @alt_names\n"
        "\n"
        "[alt_names]\n"
        f"{alt_names}\n"
    )


def build_csr(config: CertificateRequestConfig, san_set: SubjectAltNameSet, key) -> x509.CertificateSigningRequest:
    return (
        x509.CertificateSigningRequestBuilder()
        .subject_name(build_subject(config))
        .add_extension(san_set.to_x509(), critical=False)
        .sign(key, hashes.SHA256())
    )


def _server_key_usage() -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=True,
        content_commitment=False,
        key_encipherment=True,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=False,
        crl_sign=False,
        encipher_only=False,
        decipher_only=False,
    )


def sign_csr(
    csr: x509.CertificateSigningRequest,
    ca: CertificateAuthority,
    validity_days: int,
    serial_number: Optional[int] = None,
) -> x509.Certificate:
    """
    Sign `csr` with the CA. Every extension requested in the CSR
    (the subjectAltName set) is carried into the certificate.
    """
    if not csr.is_signature_valid:
        raise CryptoError("CSR signature does not verify against its own public key")

    not_before, not_after = validity_window(validity_days)
    builder = (
        x509.CertificateBuilder()
        .subject_name(csr.subject)
        .issuer_name(ca.certificate.subject)
        .public_key(csr.public_key())
        .serial_number(serial_number if serial_number is not None else x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
    )

    for ext in csr.extensions:
        builder = builder.add_extension(ext.value, critical=ext.critical)

    builder = (
        builder
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(_server_key_usage(), critical=True)
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(csr.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca.certificate.public_key()),
            critical=False,
        )
    )
    return builder.sign(ca.private_key, hashes.SHA256())


def issue(
    config: CertificateRequestConfig,
    san_set: SubjectAltNameSet,
    ca: CertificateAuthority,
    serial_number: Optional[int] = None,
) -> CertificateChain:
    """
    Generate the server key, CSR and CA-signed certificate.
    `serial_number` defaults to a random 159-bit serial per issuance.
    """
    try:
        key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=SERVER_KEY_SIZE,
        )
        csr = build_csr(config, san_set, key)
        cert = sign_csr(csr, ca, config.validity_days, serial_number)

        server_pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    except (ValueError, TypeError, OverflowError, UnsupportedAlgorithm) as exc:
        raise CryptoError(f"server certificate issuance failed: {exc}") from exc

    if not validate_issued_certificate(cert, ca.certificate, config.common_name):
        raise CryptoError("issued certificate failed chain validation against the CA")

    logger.info(
        "server certificate issued for %s (serial %x, %d SAN entries, SHA256 %s)",
        config.common_name,
        cert.serial_number,
        len(san_set.entries),
        sha256_fingerprint(cert.public_bytes(serialization.Encoding.DER)),
    )
    return CertificateChain(
        ca=ca,
        server_private_key=key,
        server_csr=csr,
        server_certificate=cert,
        server_pem_export=server_pem,
        ext_config=render_ext_config(config, san_set),
    )
