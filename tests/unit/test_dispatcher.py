"""Unit tests for the action dispatcher."""

from webpilot.drivers.mock_browser import MOCK_PNG, MockBrowserSession
from webpilot.scenario.models import (
    ClickStep,
    ExecuteScriptStep,
    FillFormStep,
    NavigateStep,
    ScreenshotStep,
    SelectOptionStep,
    TypeStep,
    WaitForPageChangeStep,
    WaitStep,
    parse_step,
)


class TestBasicActions:
    """Test one-call actions."""

    def test_navigate(self, dispatcher):
        session = MockBrowserSession()

        result = dispatcher.dispatch(session, NavigateStep(url="https://x.test"))

        assert result.success
        assert result.message == "Navigated successfully"
        assert session.current_url == "https://x.test"

    def test_click_and_type_pass_selector_strategy(self, dispatcher):
        session = MockBrowserSession()

        dispatcher.dispatch(session, ClickStep(selector="//button", by="xpath"))
        dispatcher.dispatch(session, TypeStep(selector="q", text="hi", by="name"))

        assert session.calls == [("click", "//button", "xpath"), ("type", "q", "hi", "name")]

    def test_missing_element_becomes_failed_result(self, dispatcher):
        session = MockBrowserSession()
        session.missing_selectors.add("#nope")

        result = dispatcher.dispatch(session, ClickStep(selector="#nope"))

        assert not result.success
        assert "#nope" in result.message

    def test_execute_script_returns_value(self, dispatcher):
        session = MockBrowserSession()
        session.script_handler = lambda script, args: sum(args)

        result = dispatcher.dispatch(session, ExecuteScriptStep(script="return a+b", args=[1, 2]))

        assert result.success
        assert result.value == 3

    def test_screenshot_returns_image(self, dispatcher):
        result = dispatcher.dispatch(MockBrowserSession(), ScreenshotStep())

        assert result.success
        assert result.value == MOCK_PNG

    def test_wait_is_a_successful_no_op(self, dispatcher):
        session = MockBrowserSession()

        result = dispatcher.dispatch(session, WaitStep(duration_ms=500))

        assert result.success
        assert session.calls == []

    def test_unknown_action_fails(self, dispatcher):
        result = dispatcher.dispatch(MockBrowserSession(), parse_step({"action": "hover"}))

        assert not result.success
        assert result.message == "Unknown action: hover"

    def test_closed_session_fails_without_raising(self, dispatcher):
        session = MockBrowserSession()
        session.close()

        result = dispatcher.dispatch(session, NavigateStep(url="https://x.test"))

        assert not result.success
        assert "closed" in result.message

    def test_unexpected_exception_is_normalized(self, dispatcher):
        session = MockBrowserSession()

        def broken(script, args):
            raise KeyError("boom")

        session.script_handler = broken

        result = dispatcher.dispatch(session, ExecuteScriptStep(script="x"))

        assert not result.success
        assert result.message.startswith("KeyError")


class TestCompositeActions:
    """Test fill_form, select_option and wait_for_page_change."""

    def test_fill_form_types_each_field_then_submits(self, dispatcher):
        session = MockBrowserSession()
        step = FillFormStep(
            fields={
                "email": {"selector": "#email", "value": "a@x.com"},
                "pass": {"selector": "#pass", "value": "secret"},
            },
            submit_after=True,
            submit_selector="#login",
        )

        result = dispatcher.dispatch(session, step)

        assert result.success
        assert result.message == "Form filled: 2 fields"
        assert session.dispatched_actions() == ["type", "type", "submit"]
        assert session.values == {"#email": "a@x.com", "#pass": "secret"}

    def test_fill_form_reports_field_errors(self, dispatcher):
        session = MockBrowserSession()
        session.missing_selectors.add("#pass")
        step = FillFormStep(fields={
            "email": {"selector": "#email", "value": "a"},
            "pass": {"selector": "#pass", "value": "b"},
        })

        result = dispatcher.dispatch(session, step)

        assert not result.success
        assert result.value["filled_fields"] == 1
        assert result.value["errors"][0]["field"] == "pass"

    def test_select_option(self, dispatcher):
        session = MockBrowserSession()
        session.select_options["#country"] = [("Norway", "no"), ("Sweden", "se")]

        result = dispatcher.dispatch(
            session, SelectOptionStep(selector="#country", option={"by": "value", "value": "se"})
        )

        assert result.success
        assert result.value["selected_option"] == {"text": "Sweden", "value": "se", "index": 1}

    def test_wait_for_page_change_matches_pattern(self, dispatcher, clock):
        session = MockBrowserSession(start_url="https://x.test/login")
        polls = iter(["https://x.test/login", "https://x.test/login", "https://x.test/home"])

        def advance(seconds):
            clock.now += seconds
            session.set_url(next(polls))

        dispatcher._sleep = advance

        result = dispatcher.dispatch(session, WaitForPageChangeStep(pattern=r"/home$"))

        assert result.success
        assert result.value["old_url"] == "https://x.test/login"
        assert result.value["new_url"] == "https://x.test/home"

    def test_wait_for_page_change_without_pattern_detects_any_change(self, dispatcher, clock):
        session = MockBrowserSession(start_url="https://x.test/a")

        def advance(seconds):
            clock.now += seconds
            session.set_url("https://x.test/b")

        dispatcher._sleep = advance

        result = dispatcher.dispatch(session, WaitForPageChangeStep())

        assert result.success
        assert result.value["new_url"] == "https://x.test/b"

    def test_wait_for_page_change_times_out(self, dispatcher, clock):
        session = MockBrowserSession(start_url="https://x.test/a")

        result = dispatcher.dispatch(session, WaitForPageChangeStep(pattern="/never", timeout=500))

        assert not result.success
        assert "Timeout waiting for page change after 500ms" in result.message
        assert clock.now >= 0.5

    def test_zero_timeout_checks_once_without_waiting(self, dispatcher, clock):
        session = MockBrowserSession(start_url="https://x.test/a")

        result = dispatcher.dispatch(session, WaitForPageChangeStep(pattern="/never", timeout=0))

        assert not result.success
        assert "after 0ms" in result.message
        assert clock.sleeps == []
        assert clock.now == 0

    def test_invalid_pattern_fails(self, dispatcher):
        result = dispatcher.dispatch(MockBrowserSession(), WaitForPageChangeStep(pattern="("))

        assert not result.success
        assert "Invalid URL pattern" in result.message
