# src/models/source_report.py

"""Per-source provenance record for a single gather run."""

from dataclasses import asdict, dataclass
from typing import Any

KIND_DIRECT = "direct"
KIND_SERPAPI = "serpapi"
KIND_FAILED = "failed"


@dataclass(frozen=True)
class SourceReport:
    """Outcome of one source during one query."""

    name: str
    count: int
    kind: str  # "direct", "serpapi", "failed"
    direct_links: int | None = None
    redirect_links: int | None = None
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != ""}
