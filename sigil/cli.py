"""
SIGIL CLI: SSL certificates for gRPC/HTTPS + JWT signing keys.

Usage:
    python -m sigil.cli                       # both, from defaults
    python -m sigil.cli --ssl --cn api.local --dns "api.example.com, grpc.local"
    python -m sigil.cli --jwt --alg rsa --alg ed25519 --alg ec256 --key-size 3072
    python -m sigil.cli -i                    # prompt for every value
"""

import argparse
import logging
import sys
from typing import Optional

from sigil.common.config import (
    PASSPHRASE_ENV,
    build_request_config,
    key_size_default,
    load_defaults,
    read_passphrase,
    save_defaults,
)
from sigil.common.errors import SigilError
from sigil.common.models import Algorithm, KeyFamily, KeyGenerationRequest, PipelineResult
from sigil.pipeline import run_jwt, run_ssl

# CLI flag -> defaults key
OVERRIDES = {
    "ssl_dir": "SSL_DIR",
    "jwt_dir": "JWT_DIR",
    "cn": "SERVER_CN",
    "country": "COUNTRY",
    "state": "STATE",
    "locality": "LOCALITY",
    "organization": "ORGANIZATION",
    "days": "VALIDITY_DAYS",
    "key_size": "KEY_SIZE",
}

SSL_PROMPTS = [
    ("SSL_DIR", "Where do you want to store the generated SSL certificates?"),
    ("SERVER_CN", "The server Common Name (CN), matching the server's hostname"),
    ("COUNTRY", "Two-letter country code (e.g., US, UK, IN)"),
    ("STATE", "State or province of your organization"),
    ("LOCALITY", "City of your organization"),
    ("ORGANIZATION", "Organization or company name"),
    ("VALIDITY_DAYS", "Certificate validity in days"),
]

JWT_PROMPTS = [
    ("JWT_DIR", "Where do you want to store the JWT keys?"),
    ("KEY_SIZE", "RSA key size (2048, 3072 or 4096)"),
]


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sigil",
        description="Generate a CA + server certificate chain and JWT signing keys",
    )
    parser.add_argument("--ssl", action="store_true", help="Generate SSL certificates")
    parser.add_argument("--jwt", action="store_true", help="Generate JWT signing keys")
    parser.add_argument("-i", "--interactive", action="store_true", help="Prompt for each value")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    ssl = parser.add_argument_group("SSL certificates")
    ssl.add_argument("--ssl-dir", help="Output directory (default: ssl)")
    ssl.add_argument("--cn", help="Server Common Name / hostname")
    ssl.add_argument("--country")
    ssl.add_argument("--state")
    ssl.add_argument("--locality")
    ssl.add_argument("--organization")
    ssl.add_argument("--days", type=int, help="Validity in days (default: 3650)")
    ssl.add_argument("--dns", default="", help="Additional DNS names, comma-separated")
    ssl.add_argument("--ip-loopback", action="store_true", help="Encode 127.0.0.1 as an IP SAN")
    ssl.add_argument(
        "--passphrase-env",
        default=PASSPHRASE_ENV,
        help=f"Environment variable holding the ca.key/server.key passphrase (default: {PASSPHRASE_ENV})",
    )
    ssl.add_argument("--save-defaults", action="store_true", help="Save subject fields as defaults")

    jwt = parser.add_argument_group("JWT keys")
    jwt.add_argument("--jwt-dir", help="Output directory (default: keys)")
    jwt.add_argument(
        "--alg",
        action="append",
        choices=[a.value for a in Algorithm],
        help="Key algorithm, repeatable (default: rsa)",
    )
    jwt.add_argument("--key-size", type=int, help="RSA key size (default: 2048)")

    parser.add_argument("--defaults-file", help="KEY=VALUE defaults file (default: defaults.conf)")
    return parser.parse_args(argv)


def prompt_or_default(prompt: str, default: str, interactive: bool) -> str:
    if not interactive:
        return default
    answer = input(f"{prompt} (default: {default})\n> ").strip()
    return answer or default


def print_result(result: PipelineResult) -> None:
    title = result.pipeline.upper()
    if not result.success:
        print(f"[ERR] {title} generation failed ({result.error.kind}): {result.error.message}")
        return

    print(f"[OK] {title} generation completed")
    for artifact in result.artifacts:
        print(f"     - {artifact.path} ({artifact.kind.value}, {int(artifact.permission):o})")


def _ssl(args: argparse.Namespace, values: dict) -> PipelineResult:
    for key, prompt in SSL_PROMPTS:
        values[key] = prompt_or_default(prompt, values[key], args.interactive)
    dns = prompt_or_default("Additional DNS names, comma-separated", args.dns, args.interactive)

    try:
        config = build_request_config(values, additional_dns_names=dns, ip_loopback=args.ip_loopback)
    except SigilError as exc:
        return PipelineResult.failed("ssl", exc)

    if args.save_defaults:
        path = save_defaults(config, args.defaults_file)
        print(f"[OK] Default values saved to {path}")

    return run_ssl(config, values["SSL_DIR"], passphrase=read_passphrase(args.passphrase_env))


def _jwt(args: argparse.Namespace, values: dict) -> PipelineResult:
    for key, prompt in JWT_PROMPTS:
        values[key] = prompt_or_default(prompt, values[key], args.interactive)

    algorithms = [Algorithm(name) for name in args.alg or [Algorithm.RSA.value]]

    # KEY_SIZE only matters to RSA; a bad value must not block Ed25519/EC runs
    key_size = None
    if any(a.family is KeyFamily.RSA for a in algorithms):
        try:
            key_size = key_size_default(values)
        except SigilError as exc:
            return PipelineResult.failed("jwt", exc)

    requests = [
        KeyGenerationRequest(
            algorithm=algorithm,
            key_size_bits=key_size if algorithm.family is KeyFamily.RSA else None,
        )
        for algorithm in algorithms
    ]

    return run_jwt(requests, values["JWT_DIR"])


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    values = load_defaults(args.defaults_file)
    for attr, key in OVERRIDES.items():
        if getattr(args, attr) is not None:
            values[key] = str(getattr(args, attr))

    want_ssl = args.ssl or not args.jwt
    want_jwt = args.jwt or not args.ssl

    # pipelines are independent: a failed SSL run does not stop JWT
    results = []
    if want_ssl:
        results.append(_ssl(args, values))
        print_result(results[-1])
    if want_jwt:
        results.append(_jwt(args, values))
        print_result(results[-1])

    return 0 if all(r.success for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
