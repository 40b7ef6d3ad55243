"""
Evidence Store

Append-only persistence of agency reports and their evidence rows.
A report owns its rows: they are written together and deleted together.
"""
import logging
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..models.db_models import ReportDB, ReportRowDB
from ..models.evidence import Evidence, Observation, ReportEnvelope

logger = logging.getLogger(__name__)


class EvidenceStore:
    """
    Thin repository over the reports / report_row tables.

    add_report only flushes: callers own the transaction so that a report
    and all of its rows become visible atomically. delete_report is a
    standalone admin operation and commits its own hard delete.
    """

    def __init__(self, db: Session):
        self.db = db

    def add_report(
        self,
        reporter_id: int,
        envelope: ReportEnvelope,
        evidence: Sequence[tuple],
        submitted_at: Optional[datetime] = None,
    ) -> ReportDB:
        """
        Stage a report with its evidence rows in the current transaction.

        Args:
            reporter_id: Authenticated reporter
            envelope: Validated envelope
            evidence: (domain, Evidence) pairs, already de-duplicated
            submitted_at: Report timestamp; database default when None

        Returns:
            The flushed ReportDB (id assigned)
        """
        config = envelope.config
        report = ReportDB(
            reporter_id=reporter_id,
            reporter_ip=envelope.reporter_ip,
            version=envelope.version,
            http=config.http,
            tx_junk=config.tx_junk,
            ip=config.ip,
            path=config.path,
            retry_count=config.retry_count,
            timeout_secs=config.timeout_secs,
            probe_count=config.probe_count,
        )
        if submitted_at is not None:
            report.date = submitted_at

        report.rows = [
            ReportRowDB(domain=domain, evidence=outcome)
            for domain, outcome in evidence
        ]

        self.db.add(report)
        self.db.flush()
        return report

    def get_report(self, report_id: int) -> Optional[ReportDB]:
        return self.db.query(ReportDB).filter(ReportDB.id == report_id).first()

    def rows_for_report(self, report_id: int) -> List[ReportRowDB]:
        return (
            self.db.query(ReportRowDB)
            .filter(ReportRowDB.report_id == report_id)
            .order_by(ReportRowDB.id)
            .all()
        )

    def count_rows(self) -> int:
        return self.db.query(ReportRowDB).count()

    def delete_report(self, report_id: int) -> Optional[Dict[str, int]]:
        """
        Hard delete a report and every evidence row it owns.

        Returns cascade counts for confirmation, or None when the report
        does not exist. Commits before returning.
        """
        report = self.get_report(report_id)
        if not report:
            return None

        cascade = {
            "reports": 1,
            "report_rows": self.db.query(ReportRowDB).filter(
                ReportRowDB.report_id == report_id
            ).count(),
        }

        self.db.delete(report)
        self.db.commit()

        logger.info(f"Deleted report {report_id} with {cascade['report_rows']} evidence rows")
        return cascade

    def iter_observations(self, reporter_ids: Optional[Sequence[int]] = None) -> Iterator[tuple]:
        """
        Stream (reporter_id, Observation) pairs for consensus.

        Args:
            reporter_ids: Restrict to these reporters; all reporters when None
        """
        query = (
            self.db.query(
                ReportDB.reporter_id,
                ReportRowDB.id,
                ReportRowDB.report_id,
                ReportRowDB.domain,
                ReportRowDB.evidence,
                ReportDB.date,
            )
            .join(ReportDB, ReportRowDB.report_id == ReportDB.id)
        )
        if reporter_ids is not None:
            query = query.filter(ReportDB.reporter_id.in_(list(reporter_ids)))

        for reporter_id, row_id, report_id, domain, evidence, date in query.yield_per(10_000):
            yield reporter_id, Observation(
                domain=domain,
                outcome=Evidence(evidence),
                observed_at=date,
                report_id=report_id,
                row_id=row_id,
            )
