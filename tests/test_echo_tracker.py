from replyclaw.monitor.echo import EchoTracker


def test_check_and_consume_removes_entry_once() -> None:
    echo = EchoTracker()
    key = echo.build_combined_key("agent:default:main", "hello")
    echo.remember_text("reply", combined_body="hello", combined_body_session_key="agent:default:main")

    assert echo.check_and_consume(key) is True
    assert echo.check_and_consume(key) is False
    assert echo.has("reply") is True


def test_absent_key_is_not_an_echo() -> None:
    echo = EchoTracker()
    assert echo.check_and_consume("combined:s:nothing") is False
    assert len(echo) == 0


def test_combined_key_depends_on_session_and_body() -> None:
    a = EchoTracker.build_combined_key("s1", "body")
    assert a == "combined:s1:body"
    assert a != EchoTracker.build_combined_key("s2", "body")
    assert a != EchoTracker.build_combined_key("s1", "other body")


def test_tool_style_remember_only_tracks_text() -> None:
    echo = EchoTracker()
    echo.remember_text("tool output")
    assert echo.has("tool output")
    assert len(echo) == 1
    echo.remember_text(None)
    assert len(echo) == 1


def test_oldest_entries_evicted_past_capacity() -> None:
    echo = EchoTracker(max_items=3)
    for text in ("a", "b", "c", "d"):
        echo.remember_text(text)
    assert not echo.has("a")
    assert all(echo.has(t) for t in ("b", "c", "d"))

    echo.remember_text("b")
    echo.remember_text("e")
    assert echo.has("b")
    assert not echo.has("c")


def test_forget_is_idempotent() -> None:
    echo = EchoTracker()
    echo.remember_text("x")
    echo.forget("x")
    echo.forget("x")
    assert not echo.has("x")
