"""Integration tests for the browser tool surface against mock sessions."""

from webpilot.drivers.mock_browser import MOCK_PNG
from webpilot.scenario.errors import ErrorKind


class TestSessionLifecycle:
    """Test opening and closing browsers through the tools."""

    def test_open_browser_with_url(self, tools, browser_factory, registry):
        result = tools.open_browser("chrome-a", headless=True, url="https://x.test/start")

        assert result.success
        assert result.data["browser_id"] == "chrome-a"
        assert result.data["url"] == "https://x.test/start"
        assert registry.get(result.data["session_id"]) is browser_factory.last
        assert browser_factory.last.headless is True

    def test_open_browser_failure(self, tools, browser_factory):
        browser_factory.fail_with = "chrome not installed"

        result = tools.open_browser()

        assert not result.success
        assert result.error_kind is ErrorKind.STEP_FAILURE
        assert "chrome not installed" in result.message

    def test_close_browser(self, tools, browser, registry):
        result = tools.close_browser(browser.session_id)

        assert result.success
        assert browser.close_count == 1
        assert registry.get(browser.session_id) is None

    def test_close_unknown_browser(self, tools):
        result = tools.close_browser("missing")

        assert not result.success
        assert result.error_kind is ErrorKind.NOT_FOUND


class TestActions:
    """Test each tool's effect on the session and its result shape."""

    def test_unknown_session(self, tools):
        result = tools.click_element("missing", "#a")

        assert not result.success
        assert result.error_kind is ErrorKind.NOT_FOUND

    def test_navigate_and_click(self, tools, browser):
        browser.click_targets["#next"] = "https://x.test/page-2"

        assert tools.navigate_to(browser.session_id, "https://x.test").success
        assert tools.click_element(browser.session_id, "#next").success

        assert browser.current_url == "https://x.test/page-2"
        assert browser.dispatched_actions() == ["navigate", "click"]

    def test_missing_element_is_step_failure(self, tools, browser):
        browser.missing_selectors.add("#ghost")

        result = tools.type_text(browser.session_id, "#ghost", "hello")

        assert not result.success
        assert result.error_kind is ErrorKind.STEP_FAILURE
        assert "#ghost" in result.message

    def test_execute_script_returns_value(self, tools, browser):
        browser.script_handler = lambda script, args: sum(args)

        result = tools.execute_script(browser.session_id, "return a + b", [2, 3])

        assert result.success
        assert result.data["result"] == 5

    def test_take_screenshot_saves_file(self, tools, browser, artifacts):
        result = tools.take_screenshot(browser.session_id, "page")

        assert result.success
        assert result.data["size"] == len(MOCK_PNG)
        assert result.data["path"].endswith("page.png")
        assert artifacts.list_screenshots()[0].read_bytes() == MOCK_PNG

    def test_fill_form_reports_field_errors(self, tools, browser):
        browser.missing_selectors.add("#phone")

        result = tools.fill_form(
            browser.session_id,
            {
                "email": {"selector": "#email", "value": "a@x.com"},
                "phone": {"selector": "#phone", "value": "555"},
            },
        )

        assert not result.success
        assert result.data["filled_fields"] == 1
        assert result.data["errors"][0]["field"] == "phone"
        assert browser.values["#email"] == "a@x.com"

    def test_fill_form_and_submit(self, tools, browser):
        browser.click_targets["#send"] = "https://x.test/thanks"

        result = tools.fill_form(
            browser.session_id,
            {"name": {"selector": "#name", "value": "Ada"}},
            submit_after=True,
            submit_selector="#send",
        )

        assert result.success
        assert browser.calls[-1] == ("submit", "#send")
        assert browser.current_url == "https://x.test/thanks"

    def test_select_option_by_value(self, tools, browser):
        browser.select_options["#country"] = [("Denmark", "dk"), ("Sweden", "se")]

        result = tools.select_option(browser.session_id, "#country", {"by": "value", "value": "se"})

        assert result.success
        assert result.data["selected_option"] == {"text": "Sweden", "value": "se", "index": 1}

    def test_wait_for_page_change_times_out(self, tools, browser, clock):
        browser.set_url("https://x.test/static")

        result = tools.wait_for_page_change(browser.session_id, timeout=500)

        assert not result.success
        assert result.error_kind is ErrorKind.STEP_FAILURE
        assert "500ms" in result.message
        assert clock.now >= 0.5

    def test_wait_for_page_change_matches_pattern(self, tools, browser):
        browser.set_url("https://x.test/dashboard")

        result = tools.wait_for_page_change(browser.session_id, pattern=r"/dashboard$")

        assert result.success
        assert result.data["new_url"] == "https://x.test/dashboard"


class TestRecordingThroughTools:
    """Test that tool calls land in an active recording."""

    def test_every_tool_call_is_recorded_in_order(self, manager, tools, browser):
        browser.select_options["#size"] = [("Small", "s"), ("Large", "l")]
        manager.record_scenario(browser.session_id, "everything")

        tools.navigate_to(browser.session_id, "https://x.test")
        tools.fill_form(browser.session_id, {"q": {"selector": "#q", "value": "{{term}}"}})
        tools.select_option(browser.session_id, "#size", {"by": "text", "text": "large"})
        tools.execute_script(browser.session_id, "return 1")
        tools.take_screenshot(browser.session_id)

        manager.stop_recording_scenario("everything")
        scenario = manager.get_scenario("everything").data["scenario"]

        assert [s["action"] for s in scenario["steps"]] == [
            "navigate",
            "fill_form",
            "select_option",
            "execute_script",
            "screenshot",
        ]
        assert scenario["metadata"]["variables_used"] == ["term"]

    def test_open_browser_is_not_recorded(self, manager, tools, browser):
        manager.record_scenario(browser.session_id, "nothing")

        tools.open_browser("another", url="https://x.test")
        result = manager.stop_recording_scenario("nothing")

        assert result.data["total_steps"] == 0


class TestBrowserFailures:
    """Test driver-level failures surfacing as step failures."""

    def test_unreachable_url(self, tools, browser):
        browser.unreachable_urls.add("https://down.test")

        result = tools.navigate_to(browser.session_id, "https://down.test")

        assert not result.success
        assert result.error_kind is ErrorKind.STEP_FAILURE
        assert "ERR_NAME_NOT_RESOLVED" in result.message

    def test_script_error(self, tools, browser):
        browser.failing_scripts.add("throw new Error()")

        result = tools.execute_script(browser.session_id, "throw new Error()")

        assert not result.success
        assert "javascript error" in result.message
