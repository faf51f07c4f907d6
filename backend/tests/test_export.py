"""Tests for the plain-text result report."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from shared.models.domain import ResultRecord
from shared.models.enums import ResultStatus

from batch_verify.exceptions import ExportError
from batch_verify.export import export_results, render_report, report_filename

NOW = datetime(2026, 3, 14, 9, 26, 53)


def _record(rid: str, status: ResultStatus, message: str) -> ResultRecord:
    return ResultRecord(id=rid, status=status, message=message)


def test_report_sections_and_counts() -> None:
    records = [
        _record("A", ResultStatus.SUCCESS, "ok"),
        _record("B", ResultStatus.ERROR, "expired"),
        _record("C", ResultStatus.PROCESSING, "处理中..."),
        _record("D", ResultStatus.SUCCESS, "ok too"),
    ]
    assert render_report(records, NOW) == (
        "=== 批量验证结果 ===\n"
        "时间: 2026-03-14 09:26:53\n"
        "总计: 4 | 成功: 2 | 失败: 1\n"
        "\n"
        "--- 成功 ---\n"
        "A\tok\n"
        "D\tok too\n"
        "\n"
        "--- 失败 ---\n"
        "B\texpired\n"
    )


def test_empty_sections_omitted() -> None:
    report = render_report([_record("A", ResultStatus.ERROR, "bad")], NOW)
    assert "--- 成功 ---" not in report
    assert report.endswith("--- 失败 ---\nA\tbad\n")


def test_report_filename() -> None:
    assert report_filename(NOW) == "验证结果_2026-03-14.txt"


def test_export_writes_file(tmp_path: Path) -> None:
    path = export_results([_record("A", ResultStatus.SUCCESS, "ok")], tmp_path / "out", now=NOW)
    assert path == tmp_path / "out" / "验证结果_2026-03-14.txt"
    assert "A\tok" in path.read_text(encoding="utf-8")


def test_export_refuses_empty(tmp_path: Path) -> None:
    with pytest.raises(ExportError, match="暂无结果可导出"):
        export_results([], tmp_path)
    assert list(tmp_path.iterdir()) == []
