"""
Submission validation.

Runs before anything is written so the store never sees a batch it would
reject halfway through.
"""
import ipaddress
import re
from typing import Iterable, List, Optional, Tuple

from ...errors import DuplicateEvidence, InvalidEnvelope
from ...models.evidence import Evidence, EvidenceItem, ProbeConfig, ReportEnvelope

MAX_DOMAIN_LENGTH = 255
MAX_ADDRESS_LENGTH = 39
MAX_VERSION_LENGTH = 32
MAX_PATH_LENGTH = 255
MAX_INT = 2**31 - 1

_DOMAIN_PATTERN = re.compile(r"^[^\s,\"]+$")


def _validate_address(value: Optional[str], field_name: str, required: bool) -> Optional[str]:
    if value is None or value == "":
        if required:
            raise InvalidEnvelope(f"{field_name} is required")
        return None
    if not isinstance(value, str) or len(value) > MAX_ADDRESS_LENGTH:
        raise InvalidEnvelope(f"{field_name} must be an IP address of at most {MAX_ADDRESS_LENGTH} chars")
    try:
        ipaddress.ip_address(value)
    except ValueError:
        raise InvalidEnvelope(f"{field_name} is not a valid IPv4/IPv6 address: {value!r}")
    return value


def _validate_count(value, field_name: str) -> Optional[int]:
    if value is None:
        return None
    # bool is an int subclass; a flag in a counter slot is a client bug
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_INT:
        raise InvalidEnvelope(f"{field_name} must be a non-negative integer")
    return value


def _validate_flag(value, field_name: str) -> Optional[bool]:
    if value is not None and not isinstance(value, bool):
        raise InvalidEnvelope(f"{field_name} must be a boolean")
    return value


def validate_envelope(envelope: ReportEnvelope) -> ReportEnvelope:
    """Check envelope presence and bounds. Raises InvalidEnvelope."""
    if envelope is None:
        raise InvalidEnvelope("Report envelope is missing")

    _validate_address(envelope.reporter_ip, "reporter_ip", required=True)

    version = envelope.version
    if not isinstance(version, str) or not version.strip():
        raise InvalidEnvelope("version must be a non-empty string")
    if len(version) > MAX_VERSION_LENGTH:
        raise InvalidEnvelope(f"version exceeds {MAX_VERSION_LENGTH} chars")

    config = envelope.config or ProbeConfig()
    _validate_flag(config.http, "config.http")
    _validate_flag(config.tx_junk, "config.tx_junk")
    _validate_address(config.ip, "config.ip", required=False)
    if config.path is not None and (not isinstance(config.path, str) or len(config.path) > MAX_PATH_LENGTH):
        raise InvalidEnvelope(f"config.path must be a string of at most {MAX_PATH_LENGTH} chars")
    _validate_count(config.retry_count, "config.retry_count")
    _validate_count(config.timeout_secs, "config.timeout_secs")
    _validate_count(config.probe_count, "config.probe_count")

    if envelope.config is None:
        return ReportEnvelope(reporter_ip=envelope.reporter_ip, version=version, config=config)
    return envelope


def validate_domain(domain) -> str:
    if not isinstance(domain, str) or not domain:
        raise InvalidEnvelope("domain must be a non-empty string")
    if len(domain) > MAX_DOMAIN_LENGTH:
        raise InvalidEnvelope(f"domain exceeds {MAX_DOMAIN_LENGTH} chars: {domain[:32]}...")
    if not _DOMAIN_PATTERN.match(domain):
        raise InvalidEnvelope(f"domain contains whitespace or separators: {domain!r}")
    return domain


def validate_evidence(items: Iterable[EvidenceItem]) -> List[Tuple[str, Evidence]]:
    """
    Coerce and check a batch of evidence items.

    Raises:
        InvalidEnvelope: malformed domain or unknown outcome
        DuplicateEvidence: empty batch, or a domain reported more than once
    """
    rows: List[Tuple[str, Evidence]] = []
    for item in items or []:
        domain = validate_domain(item.domain)
        try:
            outcome = Evidence.parse(item.outcome)
        except ValueError as e:
            raise InvalidEnvelope(str(e))
        rows.append((domain, outcome))

    if not rows:
        raise DuplicateEvidence("Report carries no evidence rows")

    # One outcome per domain per report
    seen = set()
    for domain, outcome in rows:
        if domain in seen:
            raise DuplicateEvidence(f"Duplicate evidence for {domain}: {outcome.value}")
        seen.add(domain)

    return rows
