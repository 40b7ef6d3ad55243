"""
Cheburcheck - Agency API Router

Report upload endpoint for authenticated probe reporters.
Accepts MessagePack (what the probe client sends) or JSON bodies.
"""
import ipaddress
import json
import logging
from typing import Dict, List, Optional, Tuple, Union

import msgpack
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..auth import get_reporter_token
from ..database import get_db
from ..errors import IntakeError, InvalidEnvelope
from ..models.evidence import EvidenceItem, ProbeConfig, ReportEnvelope
from ..services.intake import ReportIntakeService
from ..services.registry import ReporterRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agency", tags=["agency"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class ProbeConfigPayload(BaseModel):
    http: Optional[bool] = None
    tx_junk: Optional[bool] = None
    ip: Optional[str] = None
    path: Optional[str] = None
    retry_count: Optional[int] = None
    timeout_secs: Optional[int] = None
    probe_count: Optional[int] = None


class AgencyReportPayload(BaseModel):
    version: str
    config: ProbeConfigPayload = Field(default_factory=ProbeConfigPayload)
    # {domain: outcome} from the probe client, or [[domain, outcome], ...]
    data: Union[Dict[str, str], List[Tuple[str, str]]]

    def to_envelope(self, reporter_ip: str) -> ReportEnvelope:
        return ReportEnvelope(
            reporter_ip=reporter_ip,
            version=self.version,
            config=ProbeConfig(**self.config.model_dump()),
        )

    def evidence_items(self) -> List[EvidenceItem]:
        pairs = self.data.items() if isinstance(self.data, dict) else self.data
        return [EvidenceItem(domain=domain, outcome=outcome) for domain, outcome in pairs]


class UploadResponse(BaseModel):
    ok: bool = True
    id: int


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def client_address(request: Request) -> str:
    """Real client address behind a reverse proxy."""
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


# Field order of the probe client's structs, which its compact msgpack encoding writes as arrays
REPORT_FIELDS = ("version", "config", "data")
CONFIG_FIELDS = ("http", "tx_junk", "ip", "path", "retry_count", "timeout_secs", "probe_count")
EVIDENCE_VARIANTS = ("Ok", "Blocked", "ConnectError", "Error")
ADDRESS_VARIANTS = ("V4", "V6")


def _named_fields(value, fields):
    if isinstance(value, (list, tuple)):
        if len(value) != len(fields):
            raise ValueError(f"Expected {len(fields)} fields, got {len(value)}")
        return dict(zip(fields, value))
    return value


def _variant(value, names):
    """Enum variant name from a name, an index or a single-key {variant: payload} map."""
    payload = None
    if isinstance(value, dict) and len(value) == 1:
        value, payload = next(iter(value.items()))
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(names):
        value = names[value]
    return value, payload


def _address(value):
    """IpAddr as text, from either "1.2.3.4" or {"V4": [1, 2, 3, 4]}."""
    if isinstance(value, dict):
        variant, octets = _variant(value, ADDRESS_VARIANTS)
        if variant not in ADDRESS_VARIANTS:
            raise ValueError(f"Unknown address variant: {variant!r}")
        value = octets
    if isinstance(value, (list, tuple, bytes)):
        return str(ipaddress.ip_address(bytes(value)))
    return value


def _outcome(value):
    if isinstance(value, str):
        return value
    return _variant(value, EVIDENCE_VARIANTS)[0]


def expand_compact_report(raw):
    """
    Map a positionally encoded report onto named fields.

    [version, [http, tx_junk, ip, path, retry_count, timeout_secs, probe_count], {domain: outcome}]
    """
    report = _named_fields(raw, REPORT_FIELDS)
    if not isinstance(report, dict):
        return report

    config = _named_fields(report.get("config"), CONFIG_FIELDS)
    if isinstance(config, dict) and "ip" in config:
        config = {**config, "ip": _address(config["ip"])}

    data = report.get("data")
    if isinstance(data, dict):
        data = {domain: _outcome(outcome) for domain, outcome in data.items()}

    expanded = dict(report)
    if config is not None:
        expanded["config"] = config
    if data is not None:
        expanded["data"] = data
    return expanded


def decode_report_body(body: bytes, content_type: str) -> AgencyReportPayload:
    if "msgpack" in content_type:
        raw = msgpack.unpackb(body, raw=False, strict_map_key=False)
    else:
        raw = json.loads(body)
    return AgencyReportPayload.model_validate(expand_compact_report(raw))


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/report", response_model=UploadResponse)
async def upload_report(
    request: Request,
    token: Optional[str] = Depends(get_reporter_token),
    db: Session = Depends(get_db),
):
    """
    Store one probe report.

    The whitelist is not refreshed by uploads; it is recomputed on schedule.
    """
    body = await request.body()
    reporter_ip = client_address(request)

    try:
        try:
            payload = decode_report_body(body, request.headers.get("content-type", ""))
        except (ValueError, TypeError, msgpack.UnpackException) as e:
            # Unknown tokens get 401 even when the body is garbage
            await run_in_threadpool(ReporterRegistry(db).authenticate, token)
            raise InvalidEnvelope(f"Malformed report body: {e.__class__.__name__}")

        intake = ReportIntakeService(db)
        report_id = await run_in_threadpool(
            intake.submit,
            token,
            payload.to_envelope(reporter_ip),
            payload.evidence_items(),
        )
    except IntakeError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    return UploadResponse(id=report_id)
