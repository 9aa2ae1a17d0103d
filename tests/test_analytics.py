"""Tests for analytics.py using synthetic snapshots."""

from datetime import date, datetime

import pytest

from analytics import (
    DISCORD_HOUR_LABELS,
    NOT_FOUND_MESSAGE,
    TELEGRAM_HOUR_LABELS,
    build_dashboard_payload,
    compute_comparison,
    display_message,
    merge_hourly_counts,
    percent_change,
    print_summary_report,
    snapshot_blocks,
    top_entries,
)
from dashboard_state import DashboardView, SelectionState
from helpers import make_discord_raw, make_telegram_raw
from snapshots import CumulativeSnapshot, LeaderboardEntry, Platform, parse_snapshot


def _telegram(day=date(2026, 3, 3), **kwargs):
    return parse_snapshot(Platform.TELEGRAM, day, make_telegram_raw(**kwargs))


def _discord(day=date(2026, 3, 3), **kwargs):
    return parse_snapshot(Platform.DISCORD, day, make_discord_raw(**kwargs))


# ── Hour labels ─────────────────────────────


class TestHourLabels:
    def test_telegram_labels(self):
        assert len(TELEGRAM_HOUR_LABELS) == 24
        assert TELEGRAM_HOUR_LABELS[0] == "12 AM"
        assert TELEGRAM_HOUR_LABELS[1] == "01 AM"
        assert TELEGRAM_HOUR_LABELS[11] == "11 AM"
        assert TELEGRAM_HOUR_LABELS[12] == "12 PM"
        assert TELEGRAM_HOUR_LABELS[23] == "11 PM"

    def test_discord_labels(self):
        assert DISCORD_HOUR_LABELS[0] == "00:00"
        assert DISCORD_HOUR_LABELS[23] == "23:00"
        assert len(set(DISCORD_HOUR_LABELS)) == 24


# ── merge_hourly_counts ─────────────────────


class TestMergeHourlyCounts:
    def test_sums_per_hour(self):
        result = merge_hourly_counts(
            [{"09 AM": 2, "10 AM": 1}, {"09 AM": 3}], Platform.TELEGRAM,
        )
        counts = {p["hour"]: p["count"] for p in result}
        assert counts["09 AM"] == 5
        assert counts["10 AM"] == 1

    def test_always_24_buckets_in_order(self):
        result = merge_hourly_counts([{"23:00": 1}], Platform.DISCORD)
        assert [p["hour"] for p in result] == list(DISCORD_HOUR_LABELS)

    def test_no_days_is_zero(self):
        result = merge_hourly_counts([], Platform.TELEGRAM)
        assert len(result) == 24
        assert all(p["count"] == 0 for p in result)

    def test_unknown_labels_ignored(self):
        result = merge_hourly_counts([{"25:00": 9, "00:00": 1}], Platform.DISCORD)
        assert sum(p["count"] for p in result) == 1


# ── Comparison ──────────────────────────────


class TestComparison:
    def test_percent_change(self):
        assert percent_change(150, 100) == pytest.approx(50.0)
        assert percent_change(50, 100) == pytest.approx(-50.0)

    def test_percent_change_zero_baseline(self):
        assert percent_change(5, 0) == 100.0
        assert percent_change(0, 0) == 0.0

    def test_increase(self):
        result = compute_comparison(150, 120)
        assert result == {"previous": 120, "change": 30, "change_pct": 25.0, "positive": True}

    def test_decrease(self):
        result = compute_comparison(90, 120)
        assert result["change"] == -30
        assert result["change_pct"] == -25.0
        assert result["positive"] is False

    def test_rounds_to_one_decimal(self):
        assert compute_comparison(10, 3)["change_pct"] == 233.3

    @pytest.mark.parametrize("previous", [None, 0])
    def test_no_baseline(self, previous):
        assert compute_comparison(100, previous) is None


# ── Leaderboards and blocks ─────────────────


class TestSnapshotBlocks:
    def test_top_entries_limit_and_rank(self):
        entries = [LeaderboardEntry(f"u{i}", 100 - i) for i in range(15)]
        rows = top_entries(entries, 10)
        assert len(rows) == 10
        assert rows[0] == {"rank": 1, "name": "u0", "count": 100}
        assert rows[-1]["rank"] == 10

    def test_top_entries_without_limit(self):
        assert len(top_entries([LeaderboardEntry("a", 1)] * 3, None)) == 3

    def test_sosovalue_shows_five_sections(self):
        sections = [{"name": f"s{i}", "msgs": i} for i in range(8)]
        blocks = snapshot_blocks(_telegram(sections=sections), "SOSOVALUE")
        assert len(blocks["sections"]) == 5

    def test_other_communities_show_all_sections(self):
        sections = [{"name": f"s{i}", "msgs": i} for i in range(8)]
        blocks = snapshot_blocks(_telegram(sections=sections), "SODEX")
        assert len(blocks["sections"]) == 8

    def test_telegram_leaderboards(self):
        blocks = snapshot_blocks(_telegram(), "SOSOVALUE")
        assert set(blocks["leaderboards"]) == {"moderators", "community_users"}
        assert blocks["leaderboards"]["moderators"][0]["count"] == 7

    def test_discord_leaderboards(self):
        blocks = snapshot_blocks(_discord(), "SOSOVALUE")
        assert set(blocks["leaderboards"]) == {"moderators", "chatters"}
        assert blocks["sections"] == []

    def test_questions_capped_at_three(self):
        blocks = snapshot_blocks(_discord(questions=["a", "b", "c", "d"]), "SOSOVALUE")
        assert blocks["analysis"]["questions"] == ["a", "b", "c"]

    def test_question_numbering_stripped(self):
        blocks = snapshot_blocks(_discord(questions=["1. Why X?", "2.How Y?", "Plain?"]), "SOSOVALUE")
        assert blocks["analysis"]["questions"] == ["Why X?", "How Y?", "Plain?"]

    def test_numbers_inside_question_kept(self):
        blocks = snapshot_blocks(_discord(questions=["Is 2.5 the new fee?"]), "SOSOVALUE")
        assert blocks["analysis"]["questions"] == ["Is 2.5 the new fee?"]

    def test_hourly_keeps_publication_order(self):
        blocks = snapshot_blocks(_telegram(hours={"08 PM": 1, "09 AM": 2}), "SOSOVALUE")
        assert [p["hour"] for p in blocks["hourly"]] == ["08 PM", "09 AM"]


class TestDisplayMessage:
    def test_not_found_is_friendly(self):
        assert display_message("HTTP 404: Data not found for Tue Mar 03 2026") == NOT_FOUND_MESSAGE

    def test_other_messages_pass_through(self):
        assert display_message("Failed to fetch data") == "Failed to fetch data"

    def test_none(self):
        assert display_message(None) is None


# ── build_dashboard_payload ─────────────────


class TestBuildDashboardPayload:
    def _selection(self, **kwargs):
        return SelectionState(day=date(2026, 3, 3), **kwargs)

    def test_empty_view(self):
        payload = build_dashboard_payload(self._selection(), DashboardView())
        assert payload["vitals"] is None
        assert payload["snapshot"] is None
        assert payload["weekly_hourly"] == []
        assert payload["cumulative"] is None
        assert payload["selection"]["community_label"] == "SoSoValue"

    def test_vitals_with_baseline(self):
        view = DashboardView(
            snapshot=_telegram(messages=150, users=30),
            baseline=_telegram(day=date(2026, 3, 2), messages=100, users=30),
            last_updated=datetime(2026, 3, 4, 12, 0),
        )
        payload = build_dashboard_payload(self._selection(), view)

        assert payload["vitals"]["messages"]["value"] == 150
        assert payload["vitals"]["messages"]["comparison"]["change_pct"] == 50.0
        assert payload["vitals"]["users"]["comparison"]["change"] == 0
        assert payload["status"]["last_updated"] == "2026-03-04T12:00:00"
        assert payload["status"]["displayed_date"] == "2026-03-03"

    def test_fallback_status(self):
        view = DashboardView(
            snapshot=_telegram(day=date(2026, 3, 2)),
            is_fallback=True,
            error="Showing data from Mon Mar 02 2026 (today's data not available yet)",
        )
        payload = build_dashboard_payload(self._selection(), view, polling=True)

        assert payload["status"]["is_fallback"] is True
        assert payload["status"]["message"].startswith("Showing data from")
        assert payload["status"]["polling_for_today"] is True

    def test_cumulative_block(self):
        view = DashboardView(
            cumulative=CumulativeSnapshot(
                platform=Platform.DISCORD,
                cumulative_until="2026-03-02",
                total_active_hours={"05:00": 12},
                top_moderators=(LeaderboardEntry("m", 3),),
            ),
        )
        payload = build_dashboard_payload(self._selection(platform=Platform.DISCORD), view)

        cumulative = payload["cumulative"]
        assert cumulative["until"] == "2026-03-02"
        assert len(cumulative["hourly"]) == 24
        assert cumulative["hourly"][5] == {"hour": "05:00", "count": 12}
        assert cumulative["top_moderators"][0]["name"] == "m"
        assert payload["selection"]["platform"] == "discord"


# ── print_summary_report ────────────────────


class TestPrintSummaryReport:
    def test_prints_vitals_and_questions(self, capsys):
        view = DashboardView(
            snapshot=_telegram(messages=1500),
            baseline=_telegram(day=date(2026, 3, 2), messages=1000),
            weekly_hours=merge_hourly_counts([{"08 PM": 25}], Platform.TELEGRAM),
        )
        print_summary_report(build_dashboard_payload(SelectionState(day=date(2026, 3, 3)), view))
        out = capsys.readouterr().out

        assert "Community Insights: SoSoValue (telegram)" in out
        assert "Messages: 1,500 (+500 / +50.0%)" in out
        assert "1. When listing?" in out
        assert "Busiest Hour (last 7 days): 08 PM" in out

    def test_numbered_questions_printed_once(self, capsys):
        view = DashboardView(snapshot=_discord(questions=["1. Why X?"]))
        print_summary_report(build_dashboard_payload(SelectionState(day=date(2026, 3, 3)), view))
        out = capsys.readouterr().out

        assert "1. Why X?" in out
        assert "1. 1." not in out

    def test_prints_not_found_message(self, capsys):
        view = DashboardView(error="HTTP 404: Data not found for Tue Mar 03 2026")
        print_summary_report(build_dashboard_payload(SelectionState(day=date(2026, 3, 3)), view))
        out = capsys.readouterr().out

        assert NOT_FOUND_MESSAGE in out
        assert "Messages:" not in out
