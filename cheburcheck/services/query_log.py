"""
Query Logger

Records end-user lookups and the "works for me / doesn't work" feedback
attached to them. Enrichment (DNS, GeoIP, CDN) happens upstream; this
service only stores what it is given. The consensus engine never reads
these tables.
"""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..errors import UnknownQuery
from ..models.db_models import HumanReportDB, QueryDB

logger = logging.getLogger(__name__)


class QueryLogService:

    def __init__(self, db: Session):
        self.db = db

    def record_query(
        self,
        query: str,
        source_ip: str,
        source_country_code: Optional[str] = None,
        source_city_geo_name_id: Optional[int] = None,
        target_country_code: Optional[str] = None,
        target_asn: Optional[str] = None,
        target_provider: Optional[str] = None,
        resolved_ips: Optional[List[str]] = None,
        cdn_networks: Optional[List[str]] = None,
        cdn_providers: Optional[List[str]] = None,
        rkn_domain: Optional[str] = None,
    ) -> str:
        """Store a lookup and return its id."""
        entry = QueryDB(
            query=query[:255],
            source_ip=source_ip,
            source_country_code=source_country_code,
            source_city_geo_name_id=source_city_geo_name_id,
            target_country_code=target_country_code,
            target_asn=target_asn,
            target_provider=target_provider,
            resolved_ips=resolved_ips or [],
            cdn_networks=cdn_networks or [],
            cdn_providers=cdn_providers or [],
            rkn_domain=rkn_domain,
        )
        self.db.add(entry)
        self.db.flush()
        query_id = entry.id
        self.db.commit()
        return query_id

    def record_feedback(self, query_id: str, source_ip: str, works: bool) -> HumanReportDB:
        """
        Attach human feedback to a logged query (one per query, last wins).

        Raises:
            ValueError: query_id is not a UUID
            UnknownQuery: no such query was logged
        """
        query_id = str(UUID(query_id))

        if self.db.get(QueryDB, query_id) is None:
            raise UnknownQuery(f"Query {query_id} not found")

        report = self.db.get(HumanReportDB, query_id)
        if report is None:
            report = HumanReportDB(id=query_id, source_ip=source_ip, works=works)
            self.db.add(report)
        else:
            report.source_ip = source_ip
            report.works = works

        self.db.commit()
        logger.info(f"Feedback for query {query_id}: works={works}")
        return report
