from spincoach.memory.caption_buffer import CaptionBuffer, caption_id
from tests.conftest import ManualClock


def test_duplicate_caption_is_dropped():
    buf = CaptionBuffer(clock=ManualClock())
    assert buf.add("Ahoj", ts=100.0, speaker="Jana") is not None
    assert buf.add("Ahoj", ts=100.0, speaker="Jana") is None
    assert buf.accepted_count == 1
    assert len(buf) == 1


def test_same_text_at_another_time_is_kept():
    clock = ManualClock()
    buf = CaptionBuffer(clock=clock)
    buf.add("Ano", ts=clock.now)
    buf.add("Ano", ts=clock.now + 1)
    assert len(buf) == 2


def test_blank_text_is_ignored():
    buf = CaptionBuffer(clock=ManualClock())
    assert buf.add("   ") is None
    assert buf.add("") is None
    assert buf.accepted_count == 0
    assert buf.last_caption_at is None


def test_ts_defaults_to_clock():
    clock = ManualClock(5000.0)
    line = CaptionBuffer(clock=clock).add("  text  ")
    assert line.ts == 5000.0
    assert line.text == "text"
    assert line.speaker is None


def test_capacity_keeps_newest_lines():
    clock = ManualClock()
    buf = CaptionBuffer(capacity=50, clock=clock)
    for i in range(60):
        buf.add(f"line {i}", ts=clock.now)
    lines = buf.lines()
    assert len(lines) == 50
    assert lines[0].text == "line 10"
    assert lines[-1].text == "line 59"


def test_retention_drops_old_lines():
    clock = ManualClock(1000.0)
    buf = CaptionBuffer(retention_seconds=90, clock=clock)
    buf.add("stará", ts=1000.0)
    clock.advance(95)
    buf.add("nová")
    assert [l.text for l in buf.lines()] == ["nová"]


def test_window_filters_by_timestamp():
    clock = ManualClock(1000.0)
    buf = CaptionBuffer(clock=clock)
    buf.add("a", ts=1000.0)
    clock.advance(50)
    buf.add("b", ts=1050.0)
    clock.advance(10)
    assert [l.text for l in buf.window(clock.now, 40)] == ["b"]


def test_dedupe_memory_is_bounded():
    clock = ManualClock()
    buf = CaptionBuffer(dedupe_memory=50, clock=clock)
    for i in range(51):
        buf.add(f"line {i}", ts=1.0)
    # the first id has been forgotten
    assert buf.add("line 0", ts=1.0) is not None
    assert buf.add("line 50", ts=1.0) is None


def test_caption_id_depends_on_all_fields():
    base = caption_id(1.0, "text", "A")
    assert base.startswith("cap_")
    assert base == caption_id(1.0, "text", "A")
    assert base != caption_id(1.0, "text", "B")
    assert base != caption_id(2.0, "text", "A")
    assert caption_id(1.0, "text", None) == caption_id(1.0, "text", "")


def test_liveness():
    clock = ManualClock(1000.0)
    buf = CaptionBuffer(clock=clock)
    status = buf.liveness()
    assert status["captions"] == "waiting"
    assert status["bridge_ok"] is False

    buf.add("ahoj")
    buf.mark_bridge_ready()
    assert buf.liveness()["captions"] == "connected"

    clock.advance(11)
    status = buf.liveness()
    assert status["captions"] == "stale"
    assert status["bridge_ok"] is True

    clock.advance(50)
    assert buf.liveness()["bridge_ok"] is False


def test_clear():
    buf = CaptionBuffer(clock=ManualClock())
    buf.add("x", ts=1.0)
    buf.clear()
    assert len(buf) == 0
    assert buf.add("x", ts=1.0) is not None
