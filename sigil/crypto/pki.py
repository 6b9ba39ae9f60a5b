"""
X.509 checks on freshly issued material: signed-by-CA, validity window, CN/SAN.

This module is responsible for:
- Loading X.509 certificates (PEM)
- Verifying that a leaf certificate is signed by our Root CA
- Checking the validity window (not before / not after)
- Ensuring the Common Name (CN) or SAN covers the expected hostname
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509.oid import ExtensionOID, NameOID


# ---------------------------------------------------------
# Certificate Loading
# ---------------------------------------------------------

def load_pem_certificate(path) -> x509.Certificate:
    """
    Load an X.509 certificate from a PEM file.
    """
    return x509.load_pem_x509_certificate(Path(path).read_bytes())


# ---------------------------------------------------------
# CA Signature Verification
# ---------------------------------------------------------

def verify_signed_by_ca(cert: x509.Certificate, ca_cert: x509.Certificate) -> bool:
    """
    Check that `cert` names `ca_cert` as issuer and carries its RSA signature.
    """
    if cert.issuer != ca_cert.subject:
        return False

    try:
        ca_cert.public_key().verify(
            cert.signature,
            cert.tbs_certificate_bytes,
            padding.PKCS1v15(),
            cert.signature_hash_algorithm,
        )
    except InvalidSignature:
        return False
    return True


# ---------------------------------------------------------
# Validity Window (timezone-aware)
# ---------------------------------------------------------

def verify_validity_window(cert: x509.Certificate, now: Optional[datetime] = None) -> bool:
    """
    Check that the certificate is currently valid.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    return cert.not_valid_before_utc <= now <= cert.not_valid_after_utc


# ---------------------------------------------------------
# CN / SAN Validation
# ---------------------------------------------------------

def extract_common_name(cert: x509.Certificate) -> Optional[str]:
    attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return None
    return attrs[0].value


def extract_dns_san_names(cert: x509.Certificate) -> list[str]:
    """
    Extract DNS names from the Subject Alternative Name (SAN), if present.
    """
    try:
        san = cert.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
    except x509.ExtensionNotFound:
        return []
    return list(san.value.get_values_for_type(x509.DNSName))


def verify_name_matches(cert: x509.Certificate, expected_hostname: str) -> bool:
    """
    Ensure certificate CN or SAN DNS contains expected hostname.
    """
    if extract_common_name(cert) == expected_hostname:
        return True
    return expected_hostname in extract_dns_san_names(cert)


# ---------------------------------------------------------
# Main Validation Entry Point
# ---------------------------------------------------------

def validate_issued_certificate(
    cert: x509.Certificate,
    ca_cert: x509.Certificate,
    expected_hostname: str,
) -> bool:
    """
    Validate that the certificate is:
    - Signed by our CA
    - Within the validity period
    - CN/SAN matches expected hostname
    """
    # 1) Signature chain
    if not verify_signed_by_ca(cert, ca_cert):
        return False

    # 2) Validity window
    if not verify_validity_window(cert):
        return False

    # 3) CN or SAN must match expected hostname
    return verify_name_matches(cert, expected_hostname)
