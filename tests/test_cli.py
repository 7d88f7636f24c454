"""
Tests for the Typer CLI using the bundled mock calendar data.
"""

from typer.testing import CliRunner

from freepick.cli.app import app

runner = CliRunner()


def _write_config(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "timezone: Asia/Tokyo\n"
        "exclude_days: [0, 6]\n"
        "calendars:\n"
        "  - name: team\n"
        "    calendar_id: team@group.calendar.google.com\n",
        encoding="utf-8",
    )
    return path


def test_find_with_mock_data(tmp_path):
    config_path = _write_config(tmp_path)

    result = runner.invoke(
        app,
        ["find", "--mock", "--config", str(config_path), "--start", "2025-01-06", "--end", "2025-01-06", "--merge"],
    )

    assert result.exit_code == 0, result.output
    assert "■ 2025/01/06(月)" in result.output
    assert "  09:00 - 10:00" in result.output
    assert "  11:00 - 12:00" in result.output
    assert "  13:30 - 18:00" in result.output


def test_find_across_calendars_with_trace(tmp_path):
    config_path = _write_config(tmp_path)

    result = runner.invoke(
        app,
        [
            "find", "--mock", "--config", str(config_path),
            "--start", "2025-01-07", "--end", "2025-01-08",
            "-C", "primary", "-C", "team", "--merge", "--trace", "--locale", "en",
        ],
    )

    assert result.exit_code == 0, result.output
    # Birthday ignored, design review 14:00-16:00 JST blocks Tuesday
    assert "■ Tue, 2025-01-07" in result.output
    assert "  09:00 - 14:00" in result.output
    assert "  16:00 - 18:00" in result.output
    # Team sprint planning blocks Wednesday morning
    assert "  11:00 - 18:00" in result.output
    assert "Trace" in result.output


def test_find_rejects_inverted_range(tmp_path):
    config_path = _write_config(tmp_path)

    result = runner.invoke(
        app,
        ["find", "--mock", "--config", str(config_path), "--start", "2025-01-10", "--end", "2025-01-06"],
    )

    assert result.exit_code == 1
    assert "after end date" in result.output


def test_find_only_excluded_days(tmp_path):
    config_path = _write_config(tmp_path)

    result = runner.invoke(
        app,
        ["find", "--mock", "--config", str(config_path), "--start", "2025-01-05", "--end", "2025-01-05"],
    )

    assert result.exit_code == 0, result.output
    assert "指定期間内に空き時間はありません。" in result.output


def test_find_no_exclude_overrides_config(tmp_path):
    config_path = _write_config(tmp_path)

    result = runner.invoke(
        app,
        [
            "find", "--mock", "--config", str(config_path),
            "--start", "2025-01-05", "--end", "2025-01-05", "--merge", "--no-exclude",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "■ 2025/01/05(日)" in result.output
    assert "  09:00 - 18:00" in result.output


def test_find_no_exclude_conflicts_with_exclude_day(tmp_path):
    config_path = _write_config(tmp_path)

    result = runner.invoke(
        app,
        [
            "find", "--mock", "--config", str(config_path),
            "--start", "2025-01-05", "--end", "2025-01-05", "--no-exclude", "-x", "0",
        ],
    )

    assert result.exit_code == 1
    assert "cannot be combined" in result.output


def test_list_calendars_mock():
    result = runner.invoke(app, ["list-calendars", "--mock"])

    assert result.exit_code == 0, result.output
    assert "primary" in result.output
