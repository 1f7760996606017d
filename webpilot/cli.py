"""Command-line interface for managing and replaying scenarios."""

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

from .config_loader import load_config
from .logging_config import setup_logging
from .scenario.manager import ScenarioManager
from .scenario.models import OperationResult
from .session_registry import SessionFactory


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="webpilot",
        description="Manage and replay recorded browser scenarios",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List saved scenarios
  webpilot list --filter login

  # Replay a scenario headless with call-time variables
  webpilot replay login --var user=a@x.com --var pass=secret --fast

  # Show which actions a replay would perform
  webpilot replay login --var user=a@x.com --dry-run

  # Delete a scenario
  webpilot delete login --confirm
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        help='Path to configuration file (default: config/config.yml)'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print raw operation results as JSON'
    )
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress output messages'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    list_parser = subparsers.add_parser('list', help='List saved scenarios')
    list_parser.add_argument('--filter', help='Match against name and description')
    list_parser.add_argument('--limit', type=int, default=50, help='Maximum number of scenarios (default: 50)')

    show_parser = subparsers.add_parser('show', help='Show a scenario')
    show_parser.add_argument('name', help='Scenario id or name')

    replay_parser = subparsers.add_parser('replay', help='Replay a scenario in a new headless browser')
    replay_parser.add_argument('name', help='Scenario id or name')
    replay_parser.add_argument('--var', action='append', default=[], metavar='NAME=VALUE',
                               help='Call-time variable (repeatable)')
    replay_parser.add_argument('--fast', action='store_true', help='No delay between steps')
    replay_parser.add_argument('--stop-on-error', action='store_true', help='Abort at the first failing step')
    replay_parser.add_argument('--screenshots', action='store_true', help='Capture screenshot steps')
    replay_parser.add_argument('--dry-run', action='store_true',
                               help='Resolve variables and list steps without a browser')

    update_parser = subparsers.add_parser('update', help='Update a scenario')
    update_parser.add_argument('name', help='Scenario id or name')
    update_parser.add_argument('--rename', help='New scenario name')
    update_parser.add_argument('--description', help='New description')
    update_parser.add_argument('--var', action='append', default=[], metavar='NAME=VALUE',
                               help='Default variable to add or change (repeatable)')
    update_parser.add_argument('--steps-file', type=Path, help='JSON file holding the replacement step list')

    delete_parser = subparsers.add_parser('delete', help='Delete a scenario')
    delete_parser.add_argument('name', help='Scenario id or name')
    delete_parser.add_argument('--confirm', action='store_true', help='Confirm deletion')

    export_parser = subparsers.add_parser('export', help='Export a scenario')
    export_parser.add_argument('name', help='Scenario id or name')
    export_parser.add_argument('--format', choices=['json', 'yaml'], default='json', help='Export format')
    export_parser.add_argument('--output-dir', type=Path, default=Path('exports'), help='Output directory')

    import_parser = subparsers.add_parser('import', help='Import scenarios from a directory')
    import_parser.add_argument('directory', type=Path, help='Directory holding JSON/YAML scenarios')

    return parser


def parse_variables(pairs: List[str]) -> Dict[str, str]:
    """Turn ``NAME=VALUE`` arguments into a mapping."""
    variables = {}
    for pair in pairs:
        name, sep, value = pair.partition('=')
        if not sep or not name:
            raise ValueError(f"Invalid variable '{pair}', expected NAME=VALUE")
        variables[name] = value
    return variables


def format_duration(duration: Optional[float]) -> str:
    """Format duration in a human-readable way."""
    if duration is None:
        return "N/A"

    if duration < 60:
        return f"{duration:.1f}s"
    minutes = duration // 60
    seconds = duration % 60
    return f"{int(minutes)}m{seconds:.0f}s"


def print_scenarios(result: OperationResult) -> None:
    scenarios = result.data.get('scenarios', [])
    if not scenarios:
        print("No scenarios found.")
        return

    print(f"{'Scenario ID':<24} {'Name':<30} {'Steps':<6} {'Duration':<10} {'Last Modified':<20}")
    print("-" * 94)
    for summary in scenarios:
        print(
            f"{summary['scenario_id']:<24} {summary['name'][:30]:<30} {summary['total_steps']:<6} "
            f"{format_duration(summary['duration']):<10} {summary['last_modified'][:19]:<20}"
        )


def print_replay_report(result: OperationResult) -> None:
    report = result.data
    print(f"{result.message}")
    print(f"  Steps: {report.get('executed_steps', 0)}/{report.get('total_steps', 0)} executed, "
          f"{report.get('failed_steps', 0)} failed")
    print(f"  Duration: {format_duration(report.get('duration_seconds'))}")
    print(f"  Final URL: {report.get('final_url') or 'N/A'}")
    for error in report.get('errors', []):
        print(f"  Step {error['step']} ({error['action']}): {error['error']}")
    for path in report.get('screenshots', []):
        print(f"  Screenshot: {path}")


def run_command(manager: ScenarioManager, args: argparse.Namespace) -> OperationResult:
    """Dispatch a parsed command to the scenario manager."""
    if args.command == 'list':
        return manager.list_scenarios(filter=args.filter, limit=args.limit)

    if args.command == 'show':
        return manager.get_scenario(args.name)

    if args.command == 'replay':
        variables = parse_variables(args.var)
        if args.dry_run:
            return manager.plan_scenario(args.name, variables)
        return manager.replay_scenario(
            args.name,
            fast_mode=args.fast,
            stop_on_error=args.stop_on_error,
            skip_screenshots=not args.screenshots,
            take_screenshots=args.screenshots,
            variables=variables
        )

    if args.command == 'update':
        steps = None
        if args.steps_file:
            with open(args.steps_file, 'r', encoding='utf-8') as f:
                steps = json.load(f)
        return manager.update_scenario(
            args.name,
            new_name=args.rename,
            description=args.description,
            steps=steps,
            variables=parse_variables(args.var) or None
        )

    if args.command == 'delete':
        return manager.delete_scenario(args.name, confirm=args.confirm)

    if args.command == 'export':
        return manager.export_scenario(args.name, args.output_dir, args.format)

    if args.command == 'import':
        return manager.import_scenarios(args.directory)

    raise ValueError(f"Unknown command: {args.command}")


def print_result(args: argparse.Namespace, result: OperationResult) -> None:
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    elif args.command == 'list' and result.success:
        print_scenarios(result)
    elif args.command == 'replay' and not args.dry_run and 'total_steps' in result.data:
        print_replay_report(result)
    elif args.command == 'replay' and args.dry_run and result.success:
        print(result.message)
        for step in result.data['steps']:
            print(f"  {step['step']:>3}. {step['action']:<22} {step['target']}")
    elif args.command == 'show' and result.success:
        print(json.dumps(result.data['scenario'], indent=2))
    else:
        print(result.message)


def main(argv: Optional[List[str]] = None, session_factory: Optional[SessionFactory] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
        setup_logging(config)

        manager = ScenarioManager.from_config(config, session_factory=session_factory)
        try:
            result = run_command(manager, args)
        finally:
            manager.shutdown()

        if not args.quiet:
            print_result(args, result)
        return 0 if result.success else 1

    except KeyboardInterrupt:
        if not args.quiet:
            print("\nOperation cancelled by user")
        return 130

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
