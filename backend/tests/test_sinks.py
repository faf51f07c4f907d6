"""Terminal sink rendering."""
from __future__ import annotations

import io

from rich.console import Console

from shared.models.domain import ResultRecord
from shared.models.enums import DisplayStatus, ResultStatus

from batch_verify.sinks import ConsoleSink, build_results_table


def _console() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, width=120, color_system=None), buf


def test_results_table_rows_follow_record_order() -> None:
    records = [
        ResultRecord(id="B", status=ResultStatus.ERROR, message="bad"),
        ResultRecord(id="A", status=ResultStatus.SUCCESS, message="ok"),
    ]
    table = build_results_table(records)
    assert table.row_count == 2
    assert list(table.columns[0].cells) == ["B", "A"]


def test_sink_keeps_latest_state_and_prints_errors() -> None:
    console, buf = _console()
    sink = ConsoleSink(console)
    sink.render([ResultRecord(id="A", status=ResultStatus.PROCESSING, message="处理中...")])
    sink.set_status(DisplayStatus.PROCESSING, "验证中...")
    sink.set_quota("配额: 5")
    sink.error("验证请求失败: HTTP 500: Internal Server Error")

    assert [r.id for r in sink.records] == ["A"]
    assert sink.status_text == "验证中..."
    assert sink.quota_text == "配额: 5"
    assert "HTTP 500" in buf.getvalue()


def test_live_context_renders_final_table() -> None:
    console, buf = _console()
    with ConsoleSink(console) as sink:
        sink.render([ResultRecord(id="XYZ", status=ResultStatus.SUCCESS, message="done")])
        sink.set_status(DisplayStatus.READY, "完成")
    output = buf.getvalue()
    assert "XYZ" in output
    assert "完成" in output
