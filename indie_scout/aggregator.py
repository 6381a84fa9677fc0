# File: indie_scout/aggregator.py
"""indie_scout.aggregator: итоговый отчёт одного прогона очереди обхода."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, TypedDict

from indie_scout.scoring.quality import QualityScore


class ScoreRecord(TypedDict):
    """Оценка одного URL в рамках прогона."""

    url: str
    total_score: int
    should_auto_submit: bool
    category: str
    indexing_purpose: str


@dataclass(slots=True)
class BatchReport:
    """Счётчики и ошибки прогона; ``skipped`` означает «перенесён на повтор»."""

    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    auto_submitted: int = 0
    updated: int = 0
    discovered: int = 0
    duration_ms: int = 0
    started_at: Optional[datetime] = None
    aborted: bool = False
    errors: List[str] = field(default_factory=list)
    scores: List[ScoreRecord] = field(default_factory=list)

    def record_score(self, url: str, score: QualityScore) -> None:
        self.scores.append(
            {
                "url": url,
                "total_score": score.total_score,
                "should_auto_submit": score.should_auto_submit,
                "category": score.category.value,
                "indexing_purpose": score.indexing_purpose.value,
            }
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat() if self.started_at else None
        return data

    def json(self, *, pretty: bool = False) -> str:
        """Возвращает JSON-представление отчёта."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)

    def summary(self) -> str:
        return (
            f"processed={self.processed} successful={self.successful} failed={self.failed} "
            f"rescheduled={self.skipped} auto_submitted={self.auto_submitted} "
            f"discovered={self.discovered} duration={self.duration_ms}ms"
        )
