"""
Report Intake Service

Authenticates a reporter, validates its submission and persists the
report together with every evidence row in one transaction.

Steps:
1. Token → reporter id (Unauthorized)
2. Envelope bounds (InvalidEnvelope)
3. Evidence batch: non-empty, each domain at most once (DuplicateEvidence)
4. Atomic write (StorageError / IntakeTimeout, nothing left behind)

The whitelist is NOT refreshed here; recomputation runs on its own schedule.
"""
import logging
import time
from datetime import datetime
from typing import Callable, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import INTAKE_TIMEOUT_SECONDS
from ...errors import IntakeError, IntakeTimeout, StorageError
from ...models.db_models import utcnow
from ...models.evidence import EvidenceItem, ReportEnvelope
from ..evidence_store import EvidenceStore
from ..registry.reporters import ReporterRegistry
from .validation import validate_envelope, validate_evidence

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for "canceling statement due to statement timeout"
QUERY_CANCELED = "57014"


class ReportIntakeService:
    """
    Usage:
        intake = ReportIntakeService(db)
        report_id = intake.submit(token, envelope, evidence)
    """

    def __init__(
        self,
        db: Session,
        registry: Optional[ReporterRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
        timeout_seconds: float = INTAKE_TIMEOUT_SECONDS,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.db = db
        self.registry = registry or ReporterRegistry(db)
        self.store = EvidenceStore(db)
        self.clock = clock
        self.timeout_seconds = timeout_seconds
        self.timer = timer

    def submit(
        self,
        token: Optional[str],
        envelope: ReportEnvelope,
        evidence: Sequence[EvidenceItem],
    ) -> int:
        """
        Persist one report.

        Returns:
            The freshly minted report id. Retried submissions are stored as
            distinct reports.

        Raises:
            IntakeError subclasses; see cheburcheck.errors
        """
        try:
            return self._submit(token, envelope, evidence)
        except IntakeError as e:
            logger.warning(f"Report rejected ({e.__class__.__name__}): {e.message}")
            raise

    def _submit(self, token, envelope, evidence) -> int:
        started = self.timer()

        reporter_id = self.registry.authenticate(token)
        envelope = validate_envelope(envelope)
        rows = validate_evidence(evidence)

        try:
            self._apply_statement_timeout()
            report_id = self.store.add_report(reporter_id, envelope, rows, submitted_at=self.clock()).id
            self._check_deadline(started)
            self.db.commit()
        except IntakeTimeout:
            self.db.rollback()
            raise
        except OperationalError as e:
            self.db.rollback()
            if getattr(e.orig, "pgcode", None) == QUERY_CANCELED:
                raise IntakeTimeout("Report write exceeded the time budget") from e
            raise StorageError(f"Database unavailable: {e.__class__.__name__}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError(f"Report could not be stored: {e.__class__.__name__}") from e

        logger.info(f"Stored report {report_id} from reporter {reporter_id} with {len(rows)} evidence rows")
        return report_id

    def _check_deadline(self, started: float) -> None:
        elapsed = self.timer() - started
        if elapsed > self.timeout_seconds:
            raise IntakeTimeout(
                f"Report took {elapsed:.1f}s, budget is {self.timeout_seconds:.1f}s"
            )

    def _apply_statement_timeout(self) -> None:
        """Bound the database work of this transaction where the backend supports it."""
        if self.db.get_bind().dialect.name != "postgresql":
            return
        timeout_ms = max(int(self.timeout_seconds * 1000), 1)
        self.db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
