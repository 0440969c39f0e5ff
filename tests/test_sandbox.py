"""
Test: Isolation boundary. Embedding, injected globals, the frame iframe and
validation of messages coming out of the frame.
"""
import json

import pytest

from classhub.services.sandbox import (
    SAVE_WORKSHEET_DATA, VIEW_INTERACTIVE, VIEW_READ_ONLY, VIEW_SUBMITTED,
    SandboxedFrame, build_embed, content_security_policy, inject_globals, parse_message,
    read_injected_globals, render_frame, rewrite_asset_urls, script_json, view_mode_for,
)

SAVED = {"inputs": {"q1": "RAM"}, "interactiveStates": {"choice-organelle": {"selected": 1}}}


class TestEmbedding:
    def test_globals_round_trip(self, worksheet_html):
        srcdoc = build_embed(worksheet_html, SAVED, VIEW_SUBMITTED)
        assert read_injected_globals(srcdoc) == (SAVED, VIEW_SUBMITTED)

    def test_globals_come_before_worksheet_scripts(self, worksheet_html):
        srcdoc = build_embed(worksheet_html, SAVED, VIEW_INTERACTIVE)
        assert srcdoc.index("window.CLASSHUB_SAVED_STATE") < srcdoc.index("function reveal()")
        assert srcdoc.index("<head>") < srcdoc.index("Content-Security-Policy")

    def test_no_head(self):
        srcdoc = inject_globals("<p>fragment</p>", {}, VIEW_INTERACTIVE)
        assert srcdoc.endswith("<p>fragment</p>")
        assert read_injected_globals(srcdoc) == ({}, VIEW_INTERACTIVE)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            inject_globals("<head></head>", {}, "edit")

    def test_state_cannot_close_the_script(self):
        hostile = {"inputs": {"q1": "</script><script>alert(1)</script>"}}
        encoded = script_json(hostile)
        assert "</script>" not in encoded
        assert json.loads(encoded) == hostile

    def test_asset_urls(self):
        html = '<img src="images/cell.png"><link href="https://cdn.example.com/x.css"><img src="other.png">'
        rewritten = rewrite_asset_urls(html, {"cell.png": "https://files.example.com/cell.png"})
        assert 'src="https://files.example.com/cell.png"' in rewritten
        assert 'href="https://cdn.example.com/x.css"' in rewritten
        assert 'src="other.png"' in rewritten

    def test_csp_allows_file_hosts(self):
        policy = content_security_policy({"cell.png": "https://files.example.com/ws/cell.png"})
        assert "https://files.example.com" in policy
        assert "connect-src 'none'" in policy

    def test_frame_is_sandboxed(self, worksheet_html):
        frame = render_frame(build_embed(worksheet_html, SAVED), title="Cells")
        assert 'sandbox="allow-scripts allow-forms"' in frame
        assert "allow-same-origin" not in frame
        assert "<script>" not in frame

    def test_view_modes(self):
        assert view_mode_for("In Progress") == VIEW_INTERACTIVE
        assert view_mode_for("Handed In") == VIEW_SUBMITTED
        assert view_mode_for("In Progress", reviewer=True) == VIEW_READ_ONLY


class TestParseMessage:
    def test_valid(self):
        message = parse_message({"type": SAVE_WORKSHEET_DATA, "payload": SAVED})
        assert message == {"type": SAVE_WORKSHEET_DATA, "payload": SAVED}

    def test_json_text_and_bytes(self):
        raw = json.dumps({"type": SAVE_WORKSHEET_DATA, "payload": SAVED})
        assert parse_message(raw)["payload"] == SAVED
        assert parse_message(raw.encode("utf-8"))["payload"] == SAVED

    @pytest.mark.parametrize("raw", [
        None,
        b"\xff\xfe",
        "not json",
        "[1, 2]",
        {"type": "RESIZE", "payload": {}},
        {"type": SAVE_WORKSHEET_DATA, "payload": "inputs"},
        {"payload": SAVED},
    ])
    def test_rejected(self, raw):
        assert parse_message(raw) is None

    def test_oversized(self):
        big = {"type": SAVE_WORKSHEET_DATA, "payload": {"inputs": {"q1": "x" * 2000}}}
        assert parse_message(big, max_bytes=1000) is None
        assert parse_message(json.dumps(big), max_bytes=1000) is None
        assert parse_message(big, max_bytes=10000) is not None

    def test_oversized_logs_encoded_size(self, caplog):
        # Two bytes per character in UTF-8
        raw = json.dumps({"type": SAVE_WORKSHEET_DATA, "payload": {"inputs": {"q1": "\u00e9" * 600}}},
                         ensure_ascii=False)
        with caplog.at_level("WARNING", logger="classhub.services.sandbox"):
            assert parse_message(raw, max_bytes=1000) is None
        assert f"{len(raw.encode('utf-8'))} bytes exceeds 1000" in caplog.text

    def test_payload_is_sanitized(self):
        message = parse_message({"type": SAVE_WORKSHEET_DATA,
                                 "payload": {"inputs": {"q1": "a"}, "cookies": "x"}})
        assert message["payload"] == {"inputs": {"q1": "a"}, "interactiveStates": {}}


class TestSandboxedFrame:
    def test_resume_from_srcdoc(self, worksheet_html):
        frame = SandboxedFrame.from_srcdoc(build_embed(worksheet_html, SAVED, VIEW_INTERACTIVE))
        assert frame.field("q1").value == "RAM"
        assert frame.post_state() == {"type": SAVE_WORKSHEET_DATA, "payload": SAVED}

    def test_read_only_frame_posts_nothing(self, worksheet_html):
        frame = SandboxedFrame(worksheet_html, SAVED, VIEW_READ_ONLY)
        assert not frame.interactive
        assert frame.post_state() is None
        assert frame.extractor.extract() == SAVED
        assert frame.field("q1").has_attr("readonly")

    def test_teardown(self, worksheet_html):
        frame = SandboxedFrame(worksheet_html)
        frame.teardown()
        assert frame.post_state() is None

    def test_task_lookup(self, worksheet_html):
        element, handler = SandboxedFrame(worksheet_html).task("dnd-diagram")
        assert handler.kind == "drag-drop-label"
        assert SandboxedFrame(worksheet_html).task("dnd-missing") == (None, None)

    def test_engagement_is_posted(self, worksheet_html):
        frame = SandboxedFrame(worksheet_html)
        frame.view_section("intro", 12)
        frame.view_section("intro", 3)
        frame.click("tasks")
        frame.click("no-such-section")
        payload = frame.post_state()["payload"]
        assert payload["engagementMetrics"] == {"timeOnSection": {"intro": 15}, "clicks": {"tasks": 1}}

    def test_read_only_frame_records_no_engagement(self, worksheet_html):
        frame = SandboxedFrame(worksheet_html, SAVED, VIEW_READ_ONLY)
        frame.click("tasks")
        assert "engagementMetrics" not in frame.extractor.extract()
