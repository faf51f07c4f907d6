"""Plain-text export of the result set, grouped into success and failure sections."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

from shared.models.domain import ResultRecord
from shared.models.enums import ResultStatus
from shared.utils.logging import get_logger

from batch_verify.exceptions import ExportError

logger = get_logger(__name__)

NOTHING_TO_EXPORT = "暂无结果可导出"


def report_filename(now: datetime) -> str:
    return f"验证结果_{now.strftime('%Y-%m-%d')}.txt"


def render_report(records: Sequence[ResultRecord], now: datetime) -> str:
    """
    Render the report body.

    Records still processing count toward the total but appear in neither section.
    """
    success = [r for r in records if r.status == ResultStatus.SUCCESS]
    failed = [r for r in records if r.status == ResultStatus.ERROR]

    parts = [
        "=== 批量验证结果 ===\n",
        f"时间: {now.strftime('%Y-%m-%d %H:%M:%S')}\n",
        f"总计: {len(records)} | 成功: {len(success)} | 失败: {len(failed)}\n\n",
    ]
    if success:
        parts.append("--- 成功 ---\n")
        parts.extend(f"{r.id}\t{r.message}\n" for r in success)
        parts.append("\n")
    if failed:
        parts.append("--- 失败 ---\n")
        parts.extend(f"{r.id}\t{r.message}\n" for r in failed)
    return "".join(parts)


def export_results(
    records: Sequence[ResultRecord],
    directory: Path,
    now: Optional[datetime] = None,
) -> Path:
    """Write the report into ``directory`` and return its path."""
    if not records:
        raise ExportError(NOTHING_TO_EXPORT)
    now = now or datetime.now()
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / report_filename(now)
    path.write_text(render_report(records, now), encoding="utf-8")
    logger.info("results_exported", path=str(path), count=len(records))
    return path
