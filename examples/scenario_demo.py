#!/usr/bin/env python3
"""
Scenario Recording & Replay Demonstration Script.

This script walks through the scenario workflow against in-memory browsers:
- Recording browser actions into a scenario
- Parameterizing it with variables
- Dry-run planning and replay in an ephemeral browser
- Organizing saved scenarios

Usage:
    python examples/scenario_demo.py
"""

import tempfile
from pathlib import Path

from webpilot.browser_tools import BrowserTools
from webpilot.config_loader import load_config
from webpilot.drivers.mock_browser import MockBrowserSession
from webpilot.logging_config import setup_logging
from webpilot.scenario.manager import ScenarioManager


def mock_session_factory(browser_id: str, headless: bool) -> MockBrowserSession:
    """Open an in-memory browser where submitting the login form lands on the dashboard."""
    session = MockBrowserSession(browser_id=browser_id)
    session.click_targets["#submit"] = "https://demo.test/dashboard"
    session.titles["https://demo.test/dashboard"] = "Dashboard"
    return session


def demo_recording(manager: ScenarioManager, tools: BrowserTools) -> None:
    """Record a login flow through the browser tools."""
    print("\n" + "="*60)
    print("🎬 SCENARIO RECORDING DEMO")
    print("="*60)

    opened = tools.open_browser("demo-browser")
    session_id = opened.data["session_id"]
    print(f"🌐 Opened browser session: {session_id}")

    result = manager.record_scenario(session_id, "demo login", "Log into the demo site")
    print(f"🔴 {result.message}")

    tools.navigate_to(session_id, "{{baseUrl}}/login")
    print("  Recording: navigate to {{baseUrl}}/login")
    tools.type_text(session_id, "#email", "{{user}}")
    print("  Recording: type {{user}} into #email")
    tools.type_text(session_id, "#password", "{{password}}")
    print("  Recording: type {{password}} into #password")
    tools.click_element(session_id, "#submit")
    print("  Recording: click #submit")
    tools.wait_for_page_change(session_id, pattern="/dashboard")
    print("  Recording: wait for /dashboard")

    result = manager.stop_recording_scenario("demo login")
    print(f"🛑 {result.message}")
    print(f"   Steps: {result.data['total_steps']}")
    print(f"   Duration: {result.data['duration']:.2f}s")

    manager.update_scenario("demo login", variables={"baseUrl": "https://demo.test"})
    print("📝 Stored default variable baseUrl=https://demo.test")

    tools.close_browser(session_id)


def demo_replay(manager: ScenarioManager) -> None:
    """Plan and replay the recorded scenario with call-time variables."""
    print("\n" + "="*60)
    print("▶️  SCENARIO REPLAY DEMO")
    print("="*60)

    variables = {"user": "ada@demo.test", "password": "secret"}

    plan = manager.plan_scenario("demo login", variables)
    print(f"📋 {plan.message}")
    for step in plan.data["steps"]:
        print(f"  {step['step']}. {step['action']:<22} {step['target']}")

    result = manager.replay_scenario("demo login", variables=variables, fast_mode=True)
    report = result.data
    print(f"\n{'✅' if result.success else '❌'} {result.message}")
    print(f"   Steps executed: {report['executed_steps']}/{report['total_steps']}")
    print(f"   Failed steps: {report['failed_steps']}")
    print(f"   Final URL: {report['final_url']}")


def demo_organization(manager: ScenarioManager, export_dir: Path) -> None:
    """List, export and delete scenarios."""
    print("\n" + "="*60)
    print("🗂️  SCENARIO ORGANIZATION DEMO")
    print("="*60)

    listing = manager.list_scenarios()
    print(f"📋 Available scenarios: {listing.data['total']}")
    for summary in listing.data["scenarios"]:
        print(f"   {summary['scenario_id']}  {summary['name']}  ({summary['total_steps']} steps)")

    exported = manager.export_scenario("demo login", export_dir, format="yaml")
    print(f"💾 {exported.message}")

    refused = manager.delete_scenario("demo login")
    print(f"⚠️  Delete without confirmation: {refused.message}")

    deleted = manager.delete_scenario("demo login", confirm=True)
    print(f"🗑️  {deleted.message}")


def main():
    """Run the scenario workflow demonstration."""
    print("🚀 WebPilot - Scenario Recording & Replay Demonstration")

    work_dir = Path(tempfile.mkdtemp(prefix="webpilot_demo_"))
    config = load_config(work_dir / "config.yml")
    config.paths.scenario_dir = work_dir / "scenarios"
    config.paths.screenshot_dir = work_dir / "screenshots"
    config.paths.log_dir = work_dir / "logs"
    setup_logging(config)

    manager = ScenarioManager.from_config(config, session_factory=mock_session_factory)
    tools = BrowserTools(manager.registry, manager.recorder, manager.engine.artifacts, manager.engine.dispatcher)

    try:
        demo_recording(manager, tools)
        demo_replay(manager)
        demo_organization(manager, work_dir / "exports")

        print("\n" + "="*60)
        print("🎉 DEMONSTRATION COMPLETE!")
        print("="*60)
        print(f"\n📁 Demo files written to {work_dir}")

    except Exception as e:
        print(f"\n❌ Demo failed with error: {e}")
        import traceback
        traceback.print_exc()

    finally:
        manager.shutdown()


if __name__ == "__main__":
    main()
