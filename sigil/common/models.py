"""
Pydantic models for every value that flows through the generation core.

Models include:
- CertificateRequestConfig  (subject fields + validity + extra DNS names)
- SanEntry / SubjectAltNameSet
- Algorithm / KeyGenerationRequest / KeyMaterial
- OutputArtifact / PermissionClass / ContentKind
- CertificateAuthority / CertificateChain  (live cryptography objects)
- ErrorInfo / PipelineResult  (what the front-end renders)

Value records are frozen: a configuration is built once per invocation
and handed down the pipeline unchanged.
"""

import ipaddress
from enum import Enum
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, ConfigDict, Field, field_validator

from sigil.common.utils import max_validity_days, split_csv, to_a_label

CN_MAX_LENGTH = 64     # ub-common-name


# ---------------------------------------------------------
# 1. Certificate request configuration
# ---------------------------------------------------------

class CertificateRequestConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    common_name: str
    country: str
    state: str = ""
    locality: str = ""
    organization: str = ""
    validity_days: int = Field(default=3650, gt=0)
    additional_dns_names: tuple[str, ...] = ()
    ip_loopback: bool = False     # encode 127.0.0.1 as an IP SAN instead of DNS
    ca_common_name: Optional[str] = None

    @field_validator("common_name")
    @classmethod
    def _common_name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("common name must not be empty")
        # the CN is also the first DNS subjectAltName
        value = to_a_label(value)
        if len(value) > CN_MAX_LENGTH:
            raise ValueError(f"common name must be at most {CN_MAX_LENGTH} characters, got {len(value)}")
        return value

    @field_validator("ca_common_name")
    @classmethod
    def _ca_common_name_length(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        value = value.strip()
        if len(value) > CN_MAX_LENGTH:
            raise ValueError(f"CA common name must be at most {CN_MAX_LENGTH} characters, got {len(value)}")
        return value

    @field_validator("validity_days")
    @classmethod
    def _validity_fits_x509(cls, value: int) -> int:
        limit = max_validity_days()
        if value > limit:
            raise ValueError(f"validity must be at most {limit} days (notAfter 9999-12-31)")
        return value

    @field_validator("country")
    @classmethod
    def _two_letter_country(cls, value: str) -> str:
        value = value.strip()
        if len(value) != 2 or not value.isascii() or not value.isalpha():
            raise ValueError("country must be a two-letter code, e.g. US")
        return value.upper()

    @field_validator("additional_dns_names", mode="before")
    @classmethod
    def _split_names(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            value = split_csv(value)
        return tuple(to_a_label(name.strip()) for name in value if name and name.strip())

    @property
    def ca_subject_common_name(self) -> str:
        return self.ca_common_name or self.common_name


# ---------------------------------------------------------
# 2. Subject Alternative Names
# ---------------------------------------------------------

class SanType(str, Enum):
    DNS = "DNS"
    IP = "IP"


class SanEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: SanType
    value: str
    index: int = Field(ge=1)

    def to_general_name(self) -> x509.GeneralName:
        if self.type is SanType.IP:
            return x509.IPAddress(ipaddress.ip_address(self.value))
        return x509.DNSName(self.value)


class SubjectAltNameSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    entries: tuple[SanEntry, ...]

    def names(self) -> list[str]:
        return [entry.value for entry in self.entries]

    def to_x509(self) -> x509.SubjectAlternativeName:
        """Build the X.509 extension value, keeping entry order."""
        return x509.SubjectAlternativeName(
            [entry.to_general_name() for entry in self.entries]
        )


# ---------------------------------------------------------
# 3. Signing keys
# ---------------------------------------------------------

class KeyFamily(str, Enum):
    RSA = "RSA"
    EDDSA = "EdDSA"
    ECDSA = "ECDSA"


class Algorithm(str, Enum):
    RSA = "rsa"
    RSA_PSS = "rsa-pss"
    ED25519 = "ed25519"
    ECDSA_P256 = "ec256"
    ECDSA_P384 = "ec384"
    ECDSA_P521 = "ec521"

    @property
    def family(self) -> KeyFamily:
        return _FAMILIES[self]

    @property
    def file_stem(self) -> str:
        """Prefix of the <stem>_private.pem / <stem>_public.pem pair."""
        return _FILE_STEMS[self]

    @property
    def jwt_alg(self) -> str:
        return _JWT_ALGS[self]

    @property
    def private_file(self) -> str:
        return f"{self.file_stem}_private.pem"

    @property
    def public_file(self) -> str:
        return f"{self.file_stem}_public.pem"


_FAMILIES = {
    Algorithm.RSA: KeyFamily.RSA,
    Algorithm.RSA_PSS: KeyFamily.RSA,
    Algorithm.ED25519: KeyFamily.EDDSA,
    Algorithm.ECDSA_P256: KeyFamily.ECDSA,
    Algorithm.ECDSA_P384: KeyFamily.ECDSA,
    Algorithm.ECDSA_P521: KeyFamily.ECDSA,
}

_FILE_STEMS = {
    Algorithm.RSA: "rsa",
    Algorithm.RSA_PSS: "rsa_pss",
    Algorithm.ED25519: "ed25519",
    Algorithm.ECDSA_P256: "ec256",
    Algorithm.ECDSA_P384: "ec384",
    Algorithm.ECDSA_P521: "ec521",
}

_JWT_ALGS = {
    Algorithm.RSA: "RS256",
    Algorithm.RSA_PSS: "PS256",
    Algorithm.ED25519: "EdDSA",
    Algorithm.ECDSA_P256: "ES256",
    Algorithm.ECDSA_P384: "ES384",
    Algorithm.ECDSA_P521: "ES512",
}


class KeyGenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    algorithm: Algorithm
    key_size_bits: Optional[int] = None   # RSA family only


class KeyMaterial(BaseModel):
    model_config = ConfigDict(frozen=True)

    algorithm: Algorithm
    private_key_pem: bytes
    public_key_pem: bytes
    key_size_bits: Optional[int] = None   # RSA family only
    curve_name: Optional[str] = None      # ECDSA family only


# ---------------------------------------------------------
# 4. Output artifacts
# ---------------------------------------------------------

class PermissionClass(int, Enum):
    PRIVATE = 0o600
    PUBLIC = 0o644


class ContentKind(str, Enum):
    KEY = "key"
    CERTIFICATE = "certificate"
    CSR = "csr"
    CONFIG_EXTENSION = "config_extension"


class OutputArtifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path
    permission: PermissionClass
    kind: ContentKind


# ---------------------------------------------------------
# 5. Certificate chain (in-memory only)
# ---------------------------------------------------------

class CertificateAuthority(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate


class CertificateChain(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ca: CertificateAuthority
    server_private_key: rsa.RSAPrivateKey
    server_csr: x509.CertificateSigningRequest
    server_certificate: x509.Certificate
    server_pem_export: bytes    # PKCS#8, unencrypted
    ext_config: str             # server_cert_ext.cnf text


# ---------------------------------------------------------
# 6. Pipeline outcome
# ---------------------------------------------------------

class ErrorInfo(BaseModel):
    kind: str
    message: str


class PipelineResult(BaseModel):
    pipeline: str                 # "ssl" | "jwt"
    success: bool
    artifacts: list[OutputArtifact] = []
    error: Optional[ErrorInfo] = None

    @classmethod
    def failed(cls, pipeline: str, exc: Exception) -> "PipelineResult":
        kind = getattr(exc, "kind", type(exc).__name__)
        return cls(
            pipeline=pipeline,
            success=False,
            error=ErrorInfo(kind=kind, message=str(exc)),
        )
