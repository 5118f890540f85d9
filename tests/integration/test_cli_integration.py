from __future__ import annotations

import json
from pathlib import Path

from autoplan.cli import main


def _write(path: Path, payload: dict) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


def _run(workspace: Path, *args: str) -> int:
    return main(["--workspace", str(workspace), *args])


def test_quickadd_plan_and_complete_end_to_end(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"

    assert _run(workspace, "quickadd", "Draft", "proposal", "90m", "high", "#work") == 0
    assert _run(workspace, "quickadd", "Review PRs 30m") == 0
    capsys.readouterr()

    assert _run(workspace, "plan", "--date", "2026-01-05", "--event", "10:00-11:00=Standup", "--json") == 0
    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "ok"
    assert [(a["start"], a["end"]) for a in report["allocations"]] == [
        ("2026-01-05T09:00:00", "2026-01-05T10:00:00"),
        ("2026-01-05T11:00:00", "2026-01-05T11:30:00"),
        ("2026-01-05T11:30:00", "2026-01-05T12:00:00"),
    ]
    assert report["unscheduled"] == []
    assert report["metrics"]["planned_minutes"] == 120
    assert [item["action"] for item in report["decision_trace"]] == ["split", "placed", "placed"]

    stored = json.loads(workspace.read_text(encoding="utf-8"))
    draft = next(t for t in stored["tasks"] if t["title"] == "Draft proposal")
    assert draft["scheduled_start"] == "2026-01-05T09:00:00"
    assert draft["scheduled_end"] == "2026-01-05T11:30:00"
    assert draft["tags"] == ["work"]

    assert _run(workspace, "done", draft["task_id"][:8]) == 0
    assert "Done" in capsys.readouterr().out

    assert _run(workspace, "timeline", "--date", "2026-01-05", "--event", "10:00-11:00=Standup") == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines == ["10:00-11:00 event Standup", "11:30-12:00 task  Review PRs"]


def test_plan_text_output_lists_unscheduled(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"
    _run(workspace, "quickadd", "Marathon", "10h")
    capsys.readouterr()

    assert _run(workspace, "plan", "--date", "2026-01-05") == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "09:00-17:00 Marathon (split)"
    assert "unscheduled: Marathon" in out
    assert out[-1] == "480 of 480 work minutes planned"


def test_settings_file_changes_work_hours(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"
    settings = tmp_path / "settings.json"
    _write(settings, {"work_start": "07:00", "work_end": "08:00", "scheduling_days": ["sat"]})

    _run(workspace, "quickadd", "Weekend chores 45m")
    capsys.readouterr()
    assert main(["--workspace", str(workspace), "--settings", str(settings), "plan", "--date", "2026-01-10", "--json"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert [(a["start"], a["end"]) for a in report["allocations"]] == [("2026-01-10T07:00:00", "2026-01-10T07:45:00")]

    stored = json.loads(workspace.read_text(encoding="utf-8"))
    assert stored["settings"]["scheduling_days"] == ["sat"]


def test_invalid_inputs_exit_with_code_two(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"

    assert _run(workspace, "plan", "--date", "05/01/2026", "--json") == 2
    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "error"
    assert report["error"]["details"][0]["code"] == "INVALID_DATE_FORMAT"

    assert _run(workspace, "plan", "--event", "lunch") == 2
    assert "Invalid event" in capsys.readouterr().err

    assert _run(workspace, "done", "nope") == 2

    settings = tmp_path / "settings.json"
    _write(settings, {"work_start": "late"})
    assert main(["--workspace", str(workspace), "--settings", str(settings), "tasks"]) == 2
    assert "work_start" in capsys.readouterr().err


def test_corrupt_workspace_reports_validation_errors(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"
    _write(workspace, {"tasks": [{"task_id": "a"}, {"task_id": "a"}]})

    assert _run(workspace, "plan", "--json") == 2
    report = json.loads(capsys.readouterr().out)
    assert report["error"]["code"] == "workspace_error"
    assert report["validation_report"]["errors"][0]["code"] == "DUPLICATE_TASK_ID"


def test_search_and_insights_commands(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"
    _run(workspace, "quickadd", "Budget review #finance")
    _run(workspace, "quickadd", "Walk dog")
    capsys.readouterr()

    assert _run(workspace, "search", "budget") == 0
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 1 and out[0].endswith("Budget review")

    assert _run(workspace, "insights", "--date", "2026-01-07") == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "Week of 2026-01-05"


def test_mixed_timezone_workspace_is_rejected(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"
    _write(
        workspace,
        {
            "tasks": [
                {
                    "task_id": "a",
                    "title": "Call",
                    "created_at": "2026-01-05T09:00:00Z",
                    "updated_at": "2026-01-05T09:00:00",
                }
            ]
        },
    )

    assert _run(workspace, "plan", "--date", "2026-01-05", "--json") == 2
    report = json.loads(capsys.readouterr().out)
    assert report["error"]["code"] == "workspace_error"
    assert [e["code"] for e in report["validation_report"]["errors"]] == ["INCONSISTENT_TIMEZONE"]
    assert report["validation_report"]["errors"][0]["field_path"] == "$.tasks[0].updated_at"


def test_offset_only_workspace_loads_for_insights_and_timeline(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"
    _write(
        workspace,
        {
            "tasks": [
                {
                    "task_id": "a",
                    "title": "Shipped",
                    "status": "done",
                    "estimate_minutes": 60,
                    "scheduled_start": "2026-01-07T11:00:00Z",
                    "scheduled_end": "2026-01-07T12:00:00Z",
                    "created_at": "2026-01-07T12:00:00Z",
                    "updated_at": "2026-01-07T12:00:00Z",
                }
            ],
            "allocations": {
                "a": [
                    {
                        "allocation_id": "x",
                        "task_id": "a",
                        "start": "2026-01-07T11:00:00Z",
                        "end": "2026-01-07T12:00:00Z",
                        "is_split": False,
                    }
                ]
            },
        },
    )

    assert _run(workspace, "insights", "--date", "2026-01-07") == 0
    out = capsys.readouterr().out.splitlines()
    assert "Completed: 1" in out
    assert "Planned minutes: 60 (0 still open)" in out

    assert _run(workspace, "timeline", "--date", "2026-01-07") == 0


def test_read_only_command_does_not_persist_settings(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"
    settings = tmp_path / "settings.json"
    _write(settings, {"work_start": "07:00", "work_end": "08:00"})
    _run(workspace, "quickadd", "Inbox zero 20m")
    before = json.loads(workspace.read_text(encoding="utf-8"))["settings"]

    assert main(["--workspace", str(workspace), "--settings", str(settings), "tasks"]) == 0
    assert main(["--workspace", str(workspace), "--settings", str(settings), "timeline", "--date", "2026-01-05"]) == 0
    capsys.readouterr()

    assert json.loads(workspace.read_text(encoding="utf-8"))["settings"] == before
    assert before["work_start"] == "09:00"


def test_habit_focus_and_note_commands(tmp_path: Path, capsys) -> None:
    workspace = tmp_path / "ws.json"

    assert _run(workspace, "habit", "add", "Stretch", "--at", "07:30", "--target", "10") == 0
    habit_id = capsys.readouterr().out.split()[2]
    assert _run(workspace, "habit", "done", habit_id, "--date", "2026-01-05") == 0
    assert capsys.readouterr().out.strip() == "Done habit Stretch: 1 day streak"

    assert _run(workspace, "focus", "start", "--date", "2026-01-05", "--at", "14:00") == 0
    session_id = capsys.readouterr().out.split()[1]
    assert _run(workspace, "focus", "stop", session_id, "--date", "2026-01-05", "--at", "14:40") == 0
    assert capsys.readouterr().out.strip().endswith("ended after 40m")

    assert _run(workspace, "note", "add", "Stretch", "ideas", "--body", "hamstrings", "--pin") == 0
    capsys.readouterr()

    assert _run(workspace, "timeline", "--date", "2026-01-05") == 0
    assert capsys.readouterr().out.splitlines() == [
        "07:30-07:45 habit Stretch",
        "14:00-14:40 focus Focus Session",
    ]

    assert _run(workspace, "insights", "--date", "2026-01-05") == 0
    out = capsys.readouterr().out.splitlines()
    assert "Focus minutes: 40 over 1 session(s)" in out
    assert "  Stretch: 1 day streak" in out

    assert _run(workspace, "search", "stretch") == 0
    kinds = [line.split()[1] for line in capsys.readouterr().out.splitlines()]
    assert sorted(kinds) == ["habit", "note"]

    assert _run(workspace, "focus", "stop", "missing") == 2
    assert _run(workspace, "habit", "add", "Gym", "--cadence", "custom") == 2
