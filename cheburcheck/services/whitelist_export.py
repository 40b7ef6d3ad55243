"""
Whitelist exports: CSV downloads and the rank histogram.

All functions read a published WhitelistSnapshot; none touch the database.
"""
import csv
import io
from dataclasses import dataclass
from typing import List

from .consensus.snapshot import WhitelistSnapshot

HISTOGRAM_BINS = 50
DEFAULT_HISTOGRAM_LIMIT = 100_000
MAX_HISTOGRAM_LIMIT = 1_000_000


def export_full_csv(snapshot: WhitelistSnapshot) -> str:
    """domain,rank,last_ok with a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["domain", "rank", "last_ok"])
    for entry in snapshot.entries:
        writer.writerow([
            entry.domain,
            "" if entry.rank is None else entry.rank,
            entry.last_ok.isoformat(sep=" ") if entry.last_ok else "",
        ])
    return buffer.getvalue()


def export_domains_csv(snapshot: WhitelistSnapshot) -> str:
    """Bare domain list, no header."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for entry in snapshot.entries:
        writer.writerow([entry.domain])
    return buffer.getvalue()


@dataclass
class HistogramBin:
    bin_id: int
    bin_min_rank: int
    bin_max_rank: int
    count: int

    def to_dict(self) -> dict:
        return {
            "bin_id": self.bin_id,
            "bin_min_rank": self.bin_min_rank,
            "bin_max_rank": self.bin_max_rank,
            "count": self.count,
        }


def rank_histogram(
    snapshot: WhitelistSnapshot,
    limit: int = DEFAULT_HISTOGRAM_LIMIT,
    exclude_co_uk: bool = False,
    bins: int = HISTOGRAM_BINS,
) -> List[HistogramBin]:
    """
    Count whitelisted domains per rank bucket.

    The top `limit` ranks are split into `bins` equal buckets; a domain
    lands in bucket `rank // width`. Unranked domains and ranks beyond the
    last bucket are not counted.
    """
    limit = max(0, min(limit, MAX_HISTOGRAM_LIMIT))
    width = max(limit // bins, 1)

    counts = [0] * bins
    for entry in snapshot.entries:
        if entry.rank is None:
            continue
        if exclude_co_uk and entry.domain.endswith(".co.uk"):
            continue
        index = entry.rank // width
        if 0 <= index < bins:
            counts[index] += 1

    return [
        HistogramBin(
            bin_id=index,
            bin_min_rank=index * width + 1,
            bin_max_rank=(index + 1) * width,
            count=count,
        )
        for index, count in enumerate(counts)
    ]
