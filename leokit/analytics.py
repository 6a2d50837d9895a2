"""Team analytics computed from tracked hunts.

All figures are derived from the phase history in ``.leo/hunts.json``;
durations are whole minutes. A saved report goes to ``.leo/analytics.json``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .hunts import STATE_DIR, HuntTracker
from .leokit_logging import log_operation
from .models import Hunt, parse_iso, utc_now_iso
from .roles import ROLE_SEQUENCER, RoleSequencer

logger = logging.getLogger("leokit.analytics")

ANALYTICS_FILE = "analytics.json"
DAYS_PER_MONTH = 30
BOTTLENECK_FACTOR = 1.5
LOW_VELOCITY_PER_MONTH = 5
OVERUTILIZED_TASKS = 10


def _average(numbers: Sequence[float]) -> int:
    if not numbers:
        return 0
    return round(sum(numbers) / len(numbers))


def _median(numbers: Sequence[float]) -> float:
    if not numbers:
        return 0
    ordered = sorted(numbers)
    middle = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[middle]
    return (ordered[middle - 1] + ordered[middle]) / 2


class HuntAnalytics:
    """Velocity, utilization, quality and bottleneck figures for one project."""

    def __init__(self, tracker: HuntTracker, sequencer: RoleSequencer = ROLE_SEQUENCER):
        self.tracker = tracker
        self.sequencer = sequencer

    @property
    def report_path(self) -> Path:
        return self.tracker.root / STATE_DIR / ANALYTICS_FILE

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def get_velocity(self, months: int = 1, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Completed hunts per day, week and month over the last ``months``."""
        if months < 1:
            raise ValueError("Velocity period must be at least one month")
        now = now or datetime.now(timezone.utc)
        days = months * DAYS_PER_MONTH
        cutoff = now - timedelta(days=days)

        recent = [
            hunt for hunt in self.tracker.completed_hunts()
            if hunt.completed_at and parse_iso(hunt.completed_at) >= cutoff
        ]
        recent.sort(key=lambda hunt: parse_iso(hunt.completed_at))
        per_day = len(recent) / days

        return {
            "period": f"{months} month(s)",
            "hunts_completed": len(recent),
            "hunts_per_day": round(per_day, 2),
            "hunts_per_week": round(per_day * 7, 2),
            "hunts_per_month": round(per_day * DAYS_PER_MONTH, 2),
            "average_duration": _average([hunt.total_duration() for hunt in recent]),
            "trend": self._trend(recent),
        }

    def get_role_utilization(self) -> Dict[str, Dict[str, Any]]:
        """Finished phase stays per role, with their total and average minutes."""
        stats = {
            role.id: {"role": role.name, "tasks_completed": 0, "total_time": 0, "average_time": 0, "assignees": []}
            for role in self.sequencer.get_all_roles()
        }
        for hunt in self.tracker.hunts:
            for entry in hunt.phase_history:
                stat = stats.get(entry.phase)
                if stat is None or entry.exited_at is None:
                    continue
                stat["tasks_completed"] += 1
                stat["total_time"] += entry.duration or 0
                if entry.assignee and entry.assignee not in stat["assignees"]:
                    stat["assignees"].append(entry.assignee)

        for stat in stats.values():
            if stat["tasks_completed"]:
                stat["average_time"] = round(stat["total_time"] / stat["tasks_completed"])
        return stats

    def get_quality_metrics(self) -> Dict[str, Any]:
        durations = [hunt.total_duration() for hunt in self.tracker.completed_hunts()]
        return {
            "hunts_completed": len(durations),
            "average_duration": _average(durations),
            "fastest_hunt": min(durations) if durations else None,
            "slowest_hunt": max(durations) if durations else None,
            "median_duration": _median(durations),
        }

    def get_phase_analysis(self) -> Dict[str, Dict[str, Any]]:
        """Minimum, maximum and average minutes spent in each phase."""
        durations: Dict[str, List[int]] = {role.id: [] for role in self.sequencer.get_all_roles()}
        for hunt in self.tracker.hunts:
            for entry in hunt.phase_history:
                if entry.phase in durations and entry.duration is not None:
                    durations[entry.phase].append(entry.duration)

        analysis = {}
        for role in self.sequencer.get_all_roles():
            values = durations[role.id]
            analysis[role.id] = {
                "phase": role.name,
                "count": len(values),
                "total_time": sum(values),
                "average_time": _average(values),
                "min_time": min(values) if values else 0,
                "max_time": max(values) if values else 0,
            }
        return analysis

    def identify_bottlenecks(self) -> List[Dict[str, Any]]:
        """Phases averaging more than 1.5 times the mean of the measured phases."""
        analysis = self.get_phase_analysis()
        measured = {role_id: data for role_id, data in analysis.items() if data["count"]}
        overall = _average([data["average_time"] for data in measured.values()])
        if not overall:
            return []

        bottlenecks = []
        for role_id, data in measured.items():
            if data["average_time"] <= overall * BOTTLENECK_FACTOR:
                continue
            slower = round(data["average_time"] / overall * 100 - 100)
            bottlenecks.append({
                "role_id": role_id,
                "role": data["phase"],
                "average_time": data["average_time"],
                "severity": "high",
                "recommendation": (
                    f"{data['phase']} is {slower}% slower than average. "
                    "Consider pairing or additional resources."
                ),
            })
        if bottlenecks:
            logger.info(f"Found {len(bottlenecks)} bottleneck phase(s): {[b['role_id'] for b in bottlenecks]}")
        return bottlenecks

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def generate_team_report(self, team_name: str = "My Project", now: Optional[datetime] = None) -> Dict[str, Any]:
        with log_operation("generate_team_report", team_name=team_name, hunts=len(self.tracker.hunts)):
            velocity = self.get_velocity(1, now=now)
            utilization = self.get_role_utilization()
            bottlenecks = self.identify_bottlenecks()
            return {
                "timestamp": now.isoformat() if now else utc_now_iso(),
                "team_name": team_name,
                "summary": {
                    "total_hunts": len(self.tracker.hunts),
                    "completed_hunts": len(self.tracker.completed_hunts()),
                },
                "velocity": velocity,
                "utilization": utilization,
                "quality": self.get_quality_metrics(),
                "phase_analysis": self.get_phase_analysis(),
                "bottlenecks": bottlenecks,
                "recommendations": self._recommendations(velocity, utilization, bottlenecks),
            }

    def format_report_as_markdown(self, report: Dict[str, Any]) -> str:
        quality = report["quality"]
        velocity = report["velocity"]

        def minutes(value: Optional[float]) -> str:
            return "n/a" if value is None else f"{value} min"

        lines = [
            "# 🦁 Leo Kit Team Report",
            "",
            f"**Team:** {report['team_name']}",
            f"**Generated:** {report['timestamp']}",
            "",
            "## 📊 Summary",
            "",
            f"- Total Hunts: {report['summary']['total_hunts']}",
            f"- Completed: {report['summary']['completed_hunts']}",
            "",
            "## 🚀 Velocity",
            "",
            f"- Hunts/Month: **{velocity['hunts_per_month']}**",
            f"- Avg Duration: {minutes(velocity['average_duration'])}",
            f"- Trend: {velocity['trend']}",
            "",
            "## ✨ Quality",
            "",
            f"- Avg Duration: {minutes(quality['average_duration'])}",
            f"- Median: {minutes(quality['median_duration'])}",
            f"- Fastest: {minutes(quality['fastest_hunt'])}",
            f"- Slowest: {minutes(quality['slowest_hunt'])}",
            "",
            "## 👥 Role Utilization",
            "",
            "| Role | Tasks | Avg Time | Total Time |",
            "|------|-------|----------|------------|",
        ]
        for stat in report["utilization"].values():
            lines.append(
                f"| {stat['role']} | {stat['tasks_completed']} | {stat['average_time']}m | {stat['total_time']}m |"
            )
        lines.append("")

        if report["bottlenecks"]:
            lines.extend(["## ⚠️ Bottlenecks", ""])
            lines.extend(
                f"- **{item['role']}** ({item['severity']}): {item['recommendation']}"
                for item in report["bottlenecks"]
            )
            lines.append("")

        if report["recommendations"]:
            lines.extend(["## 💡 Recommendations", ""])
            lines.extend(f"- {item}" for item in report["recommendations"])
            lines.append("")

        return "\n".join(lines)

    def save(self, report: Dict[str, Any]) -> Path:
        path = self.report_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        logger.debug(f"Saved team report to {path}")
        return path

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _trend(self, hunts: List[Hunt]) -> str:
        if len(hunts) < 2:
            return "insufficient data"
        half = len(hunts) // 2
        first = _average([hunt.total_duration() for hunt in hunts[:half]])
        second = _average([hunt.total_duration() for hunt in hunts[half:]])
        if second < first * 0.9:
            return "improving"
        if second > first * 1.1:
            return "declining"
        return "stable"

    def _recommendations(
        self,
        velocity: Dict[str, Any],
        utilization: Dict[str, Dict[str, Any]],
        bottlenecks: List[Dict[str, Any]],
    ) -> List[str]:
        recommendations = []
        if velocity["hunts_per_month"] < LOW_VELOCITY_PER_MONTH:
            recommendations.append("Velocity is low. Analyze blockers and shorten handoffs.")
        if bottlenecks:
            recommendations.append("Bottlenecks found. See the bottleneck section for the slow phases.")
        if any(stat["tasks_completed"] > OVERUTILIZED_TASKS for stat in utilization.values()):
            recommendations.append("Some roles are overutilized. Consider role rotation or team expansion.")
        return recommendations
