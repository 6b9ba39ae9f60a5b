"""
JWT signing key pairs: RSA, RSA-PSS, Ed25519, ECDSA P-256/P-384/P-521.

Every private key is exported as unencrypted PKCS#8 PEM and every public
key as SubjectPublicKeyInfo PEM. The public key is always derived from
the private key object generated in the same call.

RSA-PSS key files (rsa_pss_private.pem / rsa_pss_public.pem) hold a plain
rsaEncryption key, not an id-RSASSA-PSS restricted one. The PSS padding
is selected by the JWT alg (PS256) at signing time.

Functions:
- validate_request(request)   -> key size + runtime support, no keygen
- generate(algorithm, size)   -> KeyMaterial
- generate_request(request)   -> KeyMaterial
"""

import logging
from functools import lru_cache
from typing import Optional, Union

import cryptography
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from sigil.common.errors import CryptoError, UnsupportedAlgorithmError, ValidationError
from sigil.common.models import Algorithm, KeyFamily, KeyGenerationRequest, KeyMaterial

logger = logging.getLogger(__name__)

RSA_KEY_SIZES = (2048, 3072, 4096)
DEFAULT_RSA_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537

CURVES = {
    Algorithm.ECDSA_P256: ec.SECP256R1,
    Algorithm.ECDSA_P384: ec.SECP384R1,
    Algorithm.ECDSA_P521: ec.SECP521R1,
}

# What the linked OpenSSL must provide for each non-RSA algorithm.
REQUIRED_BACKEND_SUPPORT = {
    Algorithm.ED25519: "Ed25519 (OpenSSL 1.1.1 or newer)",
    Algorithm.ECDSA_P256: "the secp256r1 curve",
    Algorithm.ECDSA_P384: "the secp384r1 curve",
    Algorithm.ECDSA_P521: "the secp521r1 curve",
}


# ---------------------------------------------------------
# Support + parameter checks
# ---------------------------------------------------------

def as_algorithm(value: Union[Algorithm, str]) -> Algorithm:
    try:
        return Algorithm(value)
    except ValueError:
        choices = ", ".join(a.value for a in Algorithm)
        raise ValidationError(f"unknown algorithm {value!r} (choose from {choices})") from None


@lru_cache(maxsize=None)
def algorithm_supported(algorithm: Algorithm) -> bool:
    """Try a throwaway keygen to see whether the OpenSSL backend handles `algorithm`."""
    if algorithm not in REQUIRED_BACKEND_SUPPORT:
        return True
    try:
        if algorithm is Algorithm.ED25519:
            ed25519.Ed25519PrivateKey.generate()
        else:
            ec.generate_private_key(CURVES[algorithm]())
    except UnsupportedAlgorithm:
        return False
    return True


def check_support(algorithm: Algorithm) -> None:
    if algorithm_supported(algorithm):
        return
    raise UnsupportedAlgorithmError(
        f"{algorithm.jwt_alg} keys are not supported by this runtime "
        f"(cryptography {cryptography.__version__}); "
        f"requires an OpenSSL backend with {REQUIRED_BACKEND_SUPPORT[algorithm]}"
    )


def resolve_key_size(algorithm: Algorithm, key_size_bits: Optional[int]) -> Optional[int]:
    if algorithm.family is not KeyFamily.RSA:
        return None
    if key_size_bits is None:
        return DEFAULT_RSA_KEY_SIZE
    if key_size_bits not in RSA_KEY_SIZES:
        allowed = ", ".join(str(s) for s in RSA_KEY_SIZES)
        raise ValidationError(f"RSA key size must be one of {allowed}, got {key_size_bits}")
    return key_size_bits


def validate_request(request: KeyGenerationRequest) -> None:
    """Run every check `generate` would run, without generating anything."""
    resolve_key_size(request.algorithm, request.key_size_bits)
    check_support(request.algorithm)


# ---------------------------------------------------------
# Generation
# ---------------------------------------------------------

def _new_private_key(algorithm: Algorithm, key_size_bits: Optional[int]):
    if algorithm.family is KeyFamily.RSA:
        # RSA-PSS shares the RSA key; the PSS constraint lives in the JWT alg (PS256).
        return rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size_bits)
    if algorithm is Algorithm.ED25519:
        return ed25519.Ed25519PrivateKey.generate()
    return ec.generate_private_key(CURVES[algorithm]())


def generate(algorithm: Union[Algorithm, str], key_size_bits: Optional[int] = None) -> KeyMaterial:
    """
    Generate one key pair in memory. Nothing is written to disk.
    """
    algorithm = as_algorithm(algorithm)
    key_size_bits = resolve_key_size(algorithm, key_size_bits)
    check_support(algorithm)

    try:
        private_key = _new_private_key(algorithm, key_size_bits)
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CryptoError(f"{algorithm.jwt_alg} key generation failed: {exc}") from exc

    curve_name = CURVES[algorithm].name if algorithm in CURVES else None
    logger.info("generated %s key pair (%s)", algorithm.jwt_alg, key_size_bits or curve_name or "256-bit")

    return KeyMaterial(
        algorithm=algorithm,
        private_key_pem=private_pem,
        public_key_pem=public_pem,
        key_size_bits=key_size_bits,
        curve_name=curve_name,
    )


def generate_request(request: KeyGenerationRequest) -> KeyMaterial:
    return generate(request.algorithm, request.key_size_bits)
