"""
Create the Root CA (RSA 4096 + self-signed X.509) using cryptography.

Produces (in memory):
    CA private key      -> ca.key
    CA certificate      -> ca.crt
Writing is left to the storage layer.
"""

import logging
from typing import Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from sigil.common.errors import CryptoError
from sigil.common.models import CertificateAuthority, CertificateRequestConfig
from sigil.common.utils import validity_window

logger = logging.getLogger(__name__)

CA_KEY_SIZE = 4096          # fixed floor, not user-configurable
PUBLIC_EXPONENT = 65537


def build_subject(config: CertificateRequestConfig, common_name: Optional[str] = None) -> x509.Name:
    """
    Build the C/ST/L/O/CN distinguished name.
    Empty optional fields are left out rather than encoded as empty strings.
    """
    fields = [
        (NameOID.COUNTRY_NAME, config.country),
        (NameOID.STATE_OR_PROVINCE_NAME, config.state),
        (NameOID.LOCALITY_NAME, config.locality),
        (NameOID.ORGANIZATION_NAME, config.organization),
        (NameOID.COMMON_NAME, common_name or config.common_name),
    ]
    return x509.Name([x509.NameAttribute(oid, value) for oid, value in fields if value])


def private_key_pem(key, passphrase: Optional[bytes] = None) -> bytes:
    """
    Traditional (PKCS#1) PEM for ca.key / server.key.
    Encrypted only when a real passphrase is given.
    """
    try:
        if passphrase:
            encryption = serialization.BestAvailableEncryption(passphrase)
        else:
            encryption = serialization.NoEncryption()

        return key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=encryption,
        )
    except (ValueError, TypeError) as exc:
        raise CryptoError(f"private key encoding failed: {exc}") from exc


def build_ca(config: CertificateRequestConfig) -> CertificateAuthority:
    """
    Generate a Root Certificate Authority valid for `config.validity_days`.
    """
    try:
        # 1. Generate private key
        key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=CA_KEY_SIZE,
        )

        # 2. Build X.509 certificate (self-signed CA)
        subject = issuer = build_subject(config, config.ca_subject_common_name)
        not_before, not_after = validity_window(config.validity_days)

        cert = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=True,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(key.public_key()),
                critical=False,
            )
            .sign(key, hashes.SHA256())
        )
    except (ValueError, TypeError, OverflowError, UnsupportedAlgorithm) as exc:
        raise CryptoError(f"CA generation failed: {exc}") from exc

    logger.info("CA certificate built for %s (serial %x)", subject.rfc4514_string(), cert.serial_number)
    return CertificateAuthority(private_key=key, certificate=cert)
