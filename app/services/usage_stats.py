from collections import Counter
from typing import Dict, List, Sequence

from app.db.interfaces import UsageRow

TOP_GUIDELINES = 5


def compute_usage_statistics(rows: Sequence[UsageRow]) -> Dict:
    """Agrega los registros de uso de guidelines (de una conversación o globales)."""
    if not rows:
        return {
            "total_usages": 0,
            "unique_guidelines": 0,
            "average_score": 0,
            "applied_count": 0,
            "application_rate": 0,
            "top_guidelines": [],
            "usages_by_category": {},
        }

    total = len(rows)
    applied_count = sum(1 for r in rows if r.applied)
    average_score = sum(r.score for r in rows) / total

    per_guideline = Counter(r.guideline_id for r in rows)
    per_category = Counter(r.category or "uncategorized" for r in rows)
    first_row = {}
    for r in rows:
        first_row.setdefault(r.guideline_id, r)

    top: List[Dict] = []
    for guideline_id, count in per_guideline.most_common(TOP_GUIDELINES):
        row = first_row[guideline_id]
        top.append({
            "guideline_id": guideline_id,
            "count": count,
            "guideline": {
                "condition": row.condition,
                "action": row.action,
                "category": row.category,
            } if row.condition is not None else None,
        })

    return {
        "total_usages": total,
        "unique_guidelines": len(per_guideline),
        "average_score": round(average_score, 2),
        "applied_count": applied_count,
        "application_rate": round(applied_count / total, 2),
        "top_guidelines": top,
        "usages_by_category": dict(per_category),
    }
