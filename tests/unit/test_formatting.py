"""Tests for Slack message rendering."""

from __future__ import annotations

from pabridge.slack.formatting import (
    MAX_MESSAGE_CHARS,
    render_ops_error,
    render_proposal,
    render_saved,
    render_summary,
)


def test_proposal_numbering_and_details(proposed_tasks):
    text = render_proposal(proposed_tasks)
    lines = text.splitlines()
    assert lines[0] == "*Proposed tasks*"
    assert lines[1] == "1. Send linesheet (high)"
    assert lines[2] == "2. Book venue (due 2025-11-14, project: Launch)"
    assert lines[3] == "    _for launch_"
    assert lines[4] == "3. Reply to supplier (low)"
    assert lines[-1] == "Reply `keep all` or `keep: 1,3` to save tasks."


def test_saved_wording():
    assert render_saved(1) == "Saved 1 task."
    assert render_saved(4) == "Saved 4 tasks."


def test_long_summary_truncated():
    text = render_summary("x" * 10_000)
    assert len(text) == MAX_MESSAGE_CHARS
    assert text.endswith("…")


def test_ops_error():
    assert render_ops_error("create_tasks", ValueError("boom")) == ":warning: `create_tasks` failed: boom"
