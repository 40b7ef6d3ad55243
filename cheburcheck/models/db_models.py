"""
Cheburcheck - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, BigInteger, DateTime, Boolean, ForeignKey, JSON,
    Index, UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from ..database import Base
from .evidence import Evidence


def utcnow() -> datetime:
    """Naive UTC timestamp, matching TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# AGENCY REPORTERS
# =============================================================================

class ReporterDB(Base):
    """Authenticated measurement source. Created administratively, never deleted while referenced."""
    __tablename__ = "reporters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # No cascade - reporters outlive their reports
    reports = relationship("ReportDB", back_populates="reporter")


class ReportDB(Base):
    """One measurement session submitted by a reporter."""
    __tablename__ = "reports"
    __table_args__ = (
        Index("reports_reporter_date_id_idx", "reporter_id", "date", "id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    reporter_id = Column(Integer, ForeignKey("reporters.id"), nullable=False)
    reporter_ip = Column(String(39), nullable=False)
    date = Column(DateTime, default=utcnow, nullable=False)

    version = Column(String(32), nullable=False)
    http = Column(Boolean, nullable=True)
    tx_junk = Column(Boolean, nullable=True)
    ip = Column(String(39), nullable=True)
    path = Column(String(255), nullable=True)
    retry_count = Column(Integer, nullable=True)
    timeout_secs = Column(Integer, nullable=True)
    probe_count = Column(Integer, nullable=True)

    # Relationships
    reporter = relationship("ReporterDB", back_populates="reports")
    rows = relationship("ReportRowDB", back_populates="report", cascade="all, delete-orphan")


class ReportRowDB(Base):
    """Single (domain, evidence) observation. Immutable once written."""
    __tablename__ = "report_row"
    __table_args__ = (
        UniqueConstraint("report_id", "domain", "evidence", name="report_row_id_domain_evidence_idx"),
    )

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)
    domain = Column(String(255), nullable=False)
    evidence = Column(
        SQLEnum(Evidence, name="evidence", values_callable=lambda kinds: [k.value for k in kinds]),
        nullable=False,
    )

    report = relationship("ReportDB", back_populates="rows")


# =============================================================================
# DOMAIN RANKINGS
# =============================================================================

class DomainRankDB(Base):
    """Popularity ranking fed by an external list (lower = more popular)."""
    __tablename__ = "domains"

    domain = Column(String(255), primary_key=True)
    rank = Column(Integer, nullable=True)


# =============================================================================
# END-USER QUERIES (never read by the consensus engine)
# =============================================================================

class QueryDB(Base):
    """Ad-hoc lookup made through the public site."""
    __tablename__ = "queries"
    __table_args__ = (
        Index("queries_query_date_idx", "query", "date"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    query = Column(String(255), nullable=False)
    source_ip = Column(String(39), nullable=False)
    source_country_code = Column(String(5), nullable=True)
    source_city_geo_name_id = Column(Integer, nullable=True)

    target_country_code = Column(String(5), nullable=True)
    target_asn = Column(String(32), nullable=True)
    target_provider = Column(String(255), nullable=True)

    # Lists stored as JSON so the table works on SQLite as well as PostgreSQL
    resolved_ips = Column(JSON, nullable=True)
    cdn_networks = Column(JSON, nullable=True)
    cdn_providers = Column(JSON, nullable=True)

    rkn_domain = Column(String(255), nullable=True)

    date = Column(DateTime, default=utcnow)

    human_report = relationship("HumanReportDB", back_populates="query", uselist=False)


class HumanReportDB(Base):
    """Visitor feedback on whether a looked-up resource works for them."""
    __tablename__ = "human_reports"

    id = Column(String(36), ForeignKey("queries.id"), primary_key=True)
    source_ip = Column(String(39), nullable=False)
    date = Column(DateTime, default=utcnow, index=True)
    works = Column(Boolean, nullable=True, index=True)

    query = relationship("QueryDB", back_populates="human_report")
