"""
End-to-end tests for recording browser actions and replaying them.

Recording goes through the browser tools exactly as a client would drive
them; replay goes through the scenario manager.
"""

import pytest

from webpilot.scenario.errors import ErrorKind
from webpilot.scenario.models import Scenario
from webpilot.scenario.store import ScenarioStore


@pytest.fixture
def recorded_login(manager, tools, browser):
    """Record the login flow with placeholders in place of credentials."""
    result = manager.record_scenario(browser.session_id, "login", "Log into the test site")
    assert result.success

    tools.navigate_to(browser.session_id, "{{baseUrl}}/login")
    tools.type_text(browser.session_id, "#email", "{{user}}")
    tools.type_text(browser.session_id, "#pass", "{{pass}}")
    tools.click_element(browser.session_id, "#submit")

    stopped = manager.stop_recording_scenario("login")
    assert stopped.success
    manager.update_scenario("login", variables={"baseUrl": "https://x.test"})
    return stopped.data["scenario_id"]


class TestRecording:
    """Test the recording side of the workflow."""

    def test_record_requires_known_session(self, manager):
        result = manager.record_scenario("no-such-session", "x")

        assert not result.success
        assert result.error_kind is ErrorKind.NOT_FOUND

    def test_second_recording_on_session_conflicts(self, manager, browser):
        assert manager.record_scenario(browser.session_id, "first").success

        result = manager.record_scenario(browser.session_id, "second")

        assert not result.success
        assert result.error_kind is ErrorKind.CONFLICT
        assert manager.recording_status(browser.session_id).data["scenario_id"] is not None

    def test_stop_reports_totals(self, manager, tools, browser):
        manager.record_scenario(browser.session_id, "short")
        tools.navigate_to(browser.session_id, "https://x.test")
        tools.take_screenshot(browser.session_id, "home.png")

        result = manager.stop_recording_scenario("short")

        assert result.success
        assert result.data["scenario_name"] == "short"
        assert result.data["total_steps"] == 2
        assert result.data["duration"] >= 0

    def test_stop_without_recording(self, manager):
        result = manager.stop_recording_scenario("never-started")

        assert not result.success
        assert result.error_kind is ErrorKind.NOT_FOUND

    def test_actions_outside_recording_are_not_captured(self, manager, tools, browser):
        tools.navigate_to(browser.session_id, "https://x.test/before")
        manager.record_scenario(browser.session_id, "partial")
        tools.click_element(browser.session_id, "#inside")

        result = manager.stop_recording_scenario("partial")

        steps = manager.get_scenario("partial").data["scenario"]["steps"]
        assert result.data["total_steps"] == 1
        assert steps[0]["selector"] == "#inside"

    def test_failed_actions_are_still_recorded(self, manager, tools, browser):
        browser.missing_selectors.add("#flaky")
        manager.record_scenario(browser.session_id, "with failure")

        click = tools.click_element(browser.session_id, "#flaky")
        manager.stop_recording_scenario("with failure")

        assert not click.success
        assert click.error_kind is ErrorKind.STEP_FAILURE
        assert manager.get_scenario("with failure").data["scenario"]["metadata"]["total_steps"] == 1

    def test_closing_browser_cancels_recording(self, manager, tools, browser):
        manager.record_scenario(browser.session_id, "abandoned")
        tools.navigate_to(browser.session_id, "https://x.test")

        assert tools.close_browser(browser.session_id).success

        assert not manager.recording_status(browser.session_id).data["recording"]
        assert not manager.get_scenario("abandoned").success


class TestReplay:
    """Test replaying recorded scenarios."""

    def test_login_example_resolves_both_variable_sources(self, manager, recorded_login, browser_factory):
        result = manager.replay_scenario(
            "login", variables={"user": "a@x.com", "pass": "secret"}, fast_mode=True
        )

        replay_browser = browser_factory.last
        assert result.success
        assert replay_browser.calls == [
            ("navigate", "https://x.test/login"),
            ("type", "#email", "a@x.com", "css"),
            ("type", "#pass", "secret", "css"),
            ("click", "#submit", "css"),
        ]
        assert result.data["executed_steps"] == 4
        assert result.data["failed_steps"] == 0
        assert result.data["final_url"] == "https://x.test/login"

    def test_replay_without_session_opens_and_closes_one_browser(self, manager, recorded_login, browser_factory):
        created_before = len(browser_factory.created)

        manager.replay_scenario("login", fast_mode=True)

        new_sessions = browser_factory.created[created_before:]
        assert len(new_sessions) == 1
        assert new_sessions[0].close_count == 1

    def test_replay_does_not_feed_active_recording(self, manager, tools, recorded_login, browser, registry):
        other = registry.open_session("observer")
        manager.record_scenario(other.session_id, "observer recording")

        manager.replay_scenario("login", session_id=other.session_id, fast_mode=True)
        stopped = manager.stop_recording_scenario("observer recording")

        assert stopped.data["total_steps"] == 0

    def test_scenario_variables_take_precedence(self, manager, recorded_login, browser_factory):
        manager.replay_scenario("login", variables={"baseUrl": "https://other.test"}, fast_mode=True)

        assert browser_factory.last.calls[0] == ("navigate", "https://x.test/login")

    def test_stop_on_error_is_reported_as_failure(self, manager, recorded_login, browser_factory):
        browser_factory.configure = lambda s: s.missing_selectors.add("#pass")

        result = manager.replay_scenario("login", stop_on_error=True, fast_mode=True)

        assert not result.success
        assert result.error_kind is ErrorKind.STEP_FAILURE
        assert result.data["executed_steps"] == 3
        assert result.data["aborted"] is True
        assert [c[0] for c in browser_factory.last.calls] == ["navigate", "type", "type"]

    def test_replay_unknown_scenario(self, manager):
        result = manager.replay_scenario("missing")

        assert not result.success
        assert result.error_kind is ErrorKind.NOT_FOUND

    def test_replay_stamps_last_used(self, manager, recorded_login, store):
        manager.replay_scenario("login", fast_mode=True)

        reloaded = Scenario.load_from_file(store.scenario_path(recorded_login))
        assert reloaded.metadata.last_used_at is not None

    def test_plan_resolves_without_browser(self, manager, recorded_login, browser_factory):
        created_before = len(browser_factory.created)

        result = manager.plan_scenario("login", variables={"user": "u"})

        assert result.success
        assert result.data["steps"][0]["target"] == "https://x.test/login"
        assert len(browser_factory.created) == created_before


class TestManagement:
    """Test listing, updating, deleting and persistence."""

    def test_list_scenarios(self, manager, recorded_login):
        result = manager.list_scenarios(filter="LOG")

        assert result.success
        assert result.data["scenarios"][0]["name"] == "login"
        assert result.data["scenarios"][0]["variables"] == ["baseUrl"]

    def test_update_reports_what_changed(self, manager, recorded_login):
        result = manager.update_scenario(
            "login",
            steps=[{"action": "navigate", "url": "{{baseUrl}}"}],
            variables={"user": "default@x.com"},
        )

        assert result.success
        assert result.data["scenario_id"] == recorded_login
        assert result.data["updated"] == {"steps": 1, "variables": ["user"]}

    def test_update_with_invalid_step_is_validation_failure(self, manager, recorded_login):
        result = manager.update_scenario("login", steps=[{"action": "click"}])

        assert not result.success
        assert result.error_kind is ErrorKind.VALIDATION

    def test_delete_without_confirm_is_refused(self, manager, recorded_login, store):
        result = manager.delete_scenario("login")

        assert not result.success
        assert result.error_kind is ErrorKind.VALIDATION
        assert "confirm" in result.message.lower()
        assert store.scenario_path(recorded_login).exists()

    def test_delete_with_confirm(self, manager, recorded_login, store):
        result = manager.delete_scenario("login", confirm=True)

        assert result.success
        assert not store.scenario_path(recorded_login).exists()
        assert manager.list_scenarios().data["scenarios"] == []

    def test_saved_scenario_survives_restart(self, manager, recorded_login, test_config):
        original = manager.get_scenario("login").data["scenario"]

        fresh_store = ScenarioStore(test_config.paths.scenario_dir)
        fresh_store.load_all()
        reloaded = fresh_store.get(recorded_login)

        assert reloaded.to_dict()["steps"] == original["steps"]
        assert reloaded.variables == original["variables"]
        assert reloaded.name == "login"

    def test_export_and_import(self, manager, recorded_login, tmp_path):
        exported = manager.export_scenario("login", tmp_path / "export", format="json")
        assert exported.success

        manager.delete_scenario("login", confirm=True)
        imported = manager.import_scenarios(tmp_path / "export")

        assert imported.data["scenario_ids"] == [recorded_login]
        assert manager.get_scenario("login").success

    def test_shutdown_discards_unfinished_recordings(self, manager, tools, browser, registry):
        manager.record_scenario(browser.session_id, "unfinished")
        tools.navigate_to(browser.session_id, "https://x.test")

        manager.shutdown()

        assert not manager.get_scenario("unfinished").success
        assert browser.close_count == 1
        assert len(registry) == 0

    def test_deleting_scenario_being_recorded_frees_the_session(self, manager, tools, browser, store):
        started = manager.record_scenario(browser.session_id, "draft")
        tools.navigate_to(browser.session_id, "https://x.test")

        result = manager.delete_scenario("draft", confirm=True)

        assert result.success
        assert store.find(started.data["scenario_id"]) is None
        assert manager.recording_status(browser.session_id).data["recording"] is False

        restarted = manager.record_scenario(browser.session_id, "second")

        assert restarted.success
        status = manager.recording_status(browser.session_id).data
        assert status["recording"] is True
        assert status["scenario_id"] == restarted.data["scenario_id"]
