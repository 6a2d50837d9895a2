"""Unit tests for team analytics over tracked hunts."""

import json
import pytest
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from leokit.analytics import HuntAnalytics
from leokit.hunts import HuntTracker
from leokit.models import STATUS_COMPLETED, STATUS_IN_PROGRESS, Hunt, PhaseEntry
from leokit.roles import ROLE_SEQUENCER
from leokit.workflow import WorkflowManager

NOW = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)
SEQUENCE = ROLE_SEQUENCER.get_sequence()


def _hunt(hunt_id, durations, days_ago=1):
    """A hunt whose phases took ``durations`` minutes, finished ``days_ago`` before NOW."""
    cursor = NOW - timedelta(days=days_ago, minutes=sum(durations))
    started_at = cursor.isoformat()
    history = []
    for phase, minutes in zip(SEQUENCE, durations):
        end = cursor + timedelta(minutes=minutes)
        history.append(PhaseEntry(phase, f"{phase}-dev", cursor.isoformat(), end.isoformat(), minutes))
        cursor = end
    return Hunt(
        id=hunt_id,
        feature_name=hunt_id.title(),
        current_phase=history[-1].phase,
        current_assignee=history[-1].assignee,
        status=STATUS_COMPLETED,
        phase_history=history,
        started_at=started_at,
        completed_at=cursor.isoformat(),
    )


@pytest.fixture
def project_dir():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def tracker(project_dir):
    return HuntTracker(project_dir)


def _analytics(tracker, *hunts):
    tracker.hunts = list(hunts)
    return HuntAnalytics(tracker)


class TestQualityMetrics:
    """Test cases for hunt duration figures."""

    def test_no_completed_hunts(self, tracker):
        quality = _analytics(tracker).get_quality_metrics()

        assert quality == {
            "hunts_completed": 0,
            "average_duration": 0,
            "fastest_hunt": None,
            "slowest_hunt": None,
            "median_duration": 0,
        }

    def test_odd_number_of_hunts(self, tracker):
        analytics = _analytics(
            tracker,
            _hunt("a", [10, 10, 10]),
            _hunt("b", [20, 20, 10]),
            _hunt("c", [50, 50]),
        )

        quality = analytics.get_quality_metrics()

        assert quality["hunts_completed"] == 3
        assert quality["fastest_hunt"] == 30
        assert quality["slowest_hunt"] == 100
        assert quality["median_duration"] == 50
        assert quality["average_duration"] == 60

    def test_even_number_of_hunts_averages_the_middle(self, tracker):
        analytics = _analytics(
            tracker,
            _hunt("a", [30]),
            _hunt("b", [50]),
            _hunt("c", [70]),
            _hunt("d", [100]),
        )

        assert analytics.get_quality_metrics()["median_duration"] == 60

    def test_in_progress_hunts_are_left_out(self, tracker):
        running = _hunt("running", [10, 20])
        running.status = STATUS_IN_PROGRESS
        running.completed_at = None

        quality = _analytics(tracker, running, _hunt("done", [40])).get_quality_metrics()

        assert quality["hunts_completed"] == 1
        assert quality["fastest_hunt"] == quality["slowest_hunt"] == 40


class TestPhaseAnalysis:
    """Test cases for per-phase durations and bottlenecks."""

    def test_min_max_average(self, tracker):
        analysis = _analytics(
            tracker,
            _hunt("a", [10, 40]),
            _hunt("b", [30, 60]),
        ).get_phase_analysis()

        assert list(analysis) == SEQUENCE
        assert analysis["requirements"]["min_time"] == 10
        assert analysis["requirements"]["max_time"] == 30
        assert analysis["requirements"]["average_time"] == 20
        assert analysis["spec"]["count"] == 2
        assert analysis["spec"]["total_time"] == 100
        assert analysis["deploy"] == {
            "phase": ROLE_SEQUENCER.get_role("deploy").name,
            "count": 0,
            "total_time": 0,
            "average_time": 0,
            "min_time": 0,
            "max_time": 0,
        }

    def test_open_phase_has_no_duration_yet(self, tracker):
        hunt = _hunt("a", [10])
        hunt.enter_phase("spec", "bob")

        analysis = _analytics(tracker, hunt).get_phase_analysis()

        assert analysis["requirements"]["count"] == 1
        assert analysis["spec"]["count"] == 0

    def test_slow_phase_is_a_bottleneck(self, tracker):
        analytics = _analytics(
            tracker,
            _hunt("a", [10, 10, 60, 10, 10]),
            _hunt("b", [10, 10, 60, 10, 10]),
        )

        bottlenecks = analytics.identify_bottlenecks()

        assert [item["role_id"] for item in bottlenecks] == ["implementation"]
        assert bottlenecks[0]["average_time"] == 60
        assert bottlenecks[0]["severity"] == "high"
        assert "200% slower than average" in bottlenecks[0]["recommendation"]

    def test_even_phases_have_no_bottleneck(self, tracker):
        analytics = _analytics(tracker, _hunt("a", [20, 20, 20, 20, 20]))

        assert analytics.identify_bottlenecks() == []

    def test_threshold_is_exclusive(self, tracker):
        # averages 10 and 30 give a mean of 20; 30 is exactly 1.5 times that
        analytics = _analytics(tracker, _hunt("a", [10, 30]))

        assert analytics.identify_bottlenecks() == []

    def test_unmeasured_phases_do_not_lower_the_mean(self, tracker):
        analytics = _analytics(tracker, _hunt("a", [45]))

        assert analytics.identify_bottlenecks() == []

    def test_no_hunts(self, tracker):
        assert _analytics(tracker).identify_bottlenecks() == []


class TestRoleUtilization:
    """Test cases for role utilization."""

    def test_counts_finished_stays(self, tracker):
        open_hunt = _hunt("open", [15])
        open_hunt.enter_phase("spec", "bob")

        utilization = _analytics(
            tracker,
            _hunt("a", [10, 20]),
            _hunt("b", [30, 40]),
            open_hunt,
        ).get_role_utilization()

        assert utilization["requirements"]["tasks_completed"] == 3
        assert utilization["requirements"]["total_time"] == 55
        assert utilization["requirements"]["average_time"] == 18
        assert utilization["requirements"]["assignees"] == ["requirements-dev"]
        assert utilization["spec"]["tasks_completed"] == 2
        assert utilization["spec"]["average_time"] == 30
        assert utilization["testing"]["tasks_completed"] == 0
        assert utilization["testing"]["average_time"] == 0


class TestVelocity:
    """Test cases for velocity and trend."""

    def test_counts_hunts_inside_the_period(self, tracker):
        analytics = _analytics(
            tracker,
            _hunt("old", [20], days_ago=40),
            _hunt("slow", [100], days_ago=2),
            _hunt("fast", [50], days_ago=1),
        )

        velocity = analytics.get_velocity(1, now=NOW)

        assert velocity["period"] == "1 month(s)"
        assert velocity["hunts_completed"] == 2
        assert velocity["hunts_per_day"] == 0.07
        assert velocity["hunts_per_week"] == 0.47
        assert velocity["hunts_per_month"] == 2.0
        assert velocity["average_duration"] == 75
        assert velocity["trend"] == "improving"

    def test_trend_needs_two_hunts(self, tracker):
        velocity = _analytics(tracker, _hunt("a", [20])).get_velocity(now=NOW)

        assert velocity["trend"] == "insufficient data"

    def test_declining_trend(self, tracker):
        analytics = _analytics(tracker, _hunt("a", [20], days_ago=3), _hunt("b", [60], days_ago=1))

        assert analytics.get_velocity(now=NOW)["trend"] == "declining"

    def test_period_must_be_positive(self, tracker):
        with pytest.raises(ValueError, match="at least one month"):
            _analytics(tracker).get_velocity(0)


class TestTeamReport:
    """Test cases for the combined report."""

    def test_report_sections(self, tracker):
        analytics = _analytics(
            tracker,
            _hunt("a", [10, 10, 60, 10, 10]),
            _hunt("b", [10, 10, 60, 10, 10]),
        )

        report = analytics.generate_team_report("Shop", now=NOW)

        assert report["timestamp"] == NOW.isoformat()
        assert report["team_name"] == "Shop"
        assert report["summary"] == {"total_hunts": 2, "completed_hunts": 2}
        assert report["quality"]["median_duration"] == 100
        assert [item["role_id"] for item in report["bottlenecks"]] == ["implementation"]
        assert any(item.startswith("Velocity is low") for item in report["recommendations"])
        assert any(item.startswith("Bottlenecks found") for item in report["recommendations"])

    def test_markdown(self, tracker):
        analytics = _analytics(tracker, _hunt("a", [10, 10, 60, 10, 10]))
        markdown = analytics.format_report_as_markdown(analytics.generate_team_report("Shop", now=NOW))

        assert markdown.startswith("# 🦁 Leo Kit Team Report")
        assert "**Team:** Shop" in markdown
        assert "- Fastest: 100 min" in markdown
        assert "## ⚠️ Bottlenecks" in markdown
        assert f"| {ROLE_SEQUENCER.get_role('implementation').name} | 1 | 60m | 60m |" in markdown

    def test_markdown_without_hunts(self, tracker):
        analytics = _analytics(tracker)
        markdown = analytics.format_report_as_markdown(analytics.generate_team_report(now=NOW))

        assert "- Fastest: n/a" in markdown
        assert "- Median: 0 min" in markdown
        assert "Bottlenecks" not in markdown.split("## 💡 Recommendations")[0]

    def test_save(self, tracker, project_dir):
        analytics = _analytics(tracker, _hunt("a", [10]))
        report = analytics.generate_team_report("Shop", now=NOW)

        path = analytics.save(report)

        assert path == project_dir / ".leo" / "analytics.json"
        assert json.loads(path.read_text(encoding="utf-8")) == report


class TestTeamReportOperation:
    """Test cases for WorkflowManager.team_report."""

    def test_empty_project(self, project_dir):
        result = WorkflowManager(project_dir).team_report()

        assert result["report"]["team_name"] == "My Project"
        assert result["report"]["quality"]["median_duration"] == 0
        assert result["next_suggested_step"] == "start_hunt"
        assert "path" not in result

    def test_uses_team_name_and_saves(self, project_dir):
        manager = WorkflowManager(project_dir)
        manager.init_team(1, [{"username": "solo", "role": "implementation"}], name="Shop")
        tracker = HuntTracker(project_dir)
        tracker.hunts = [_hunt("a", [10, 20])]
        tracker.save()

        result = WorkflowManager(project_dir).team_report(save=True)

        assert result["report"]["team_name"] == "Shop"
        assert result["report"]["summary"]["completed_hunts"] == 1
        assert result["next_suggested_step"] == "list_hunts"
        assert Path(result["path"]).exists()
        assert "# 🦁 Leo Kit Team Report" in result["markdown"]
