"""TriggerBrew: agent trigger automation for task boards. Main entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from triggerbrew.agents.runner import AgentRunner, build_runner
from triggerbrew.conditions.logic import error_kind_label, validate_condition_logic
from triggerbrew.config_loader import (
    DEFAULT_CONFIG_YAML,
    AppConfig,
    default_config,
    load_config,
)
from triggerbrew.orchestrator.agent_store import AgentStore
from triggerbrew.orchestrator.database import Database
from triggerbrew.orchestrator.event_bus import EventBus
from triggerbrew.orchestrator.task_store import TaskStore
from triggerbrew.orchestrator.trigger_dispatcher import TriggerDispatcher

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config") / "triggerbrew.yaml"


class Orchestrator:
    """Container for the storage, event bus, and dispatcher of one process."""

    def __init__(self, config: AppConfig, db: Database, event_bus: EventBus,
                 task_store: TaskStore, agent_store: AgentStore,
                 dispatcher: TriggerDispatcher, runner: AgentRunner):
        self.config = config
        self.db = db
        self.event_bus = event_bus
        self.task_store = task_store
        self.agent_store = agent_store
        self.dispatcher = dispatcher
        self.runner = runner
        self._background: list[asyncio.Task] = []
        self._shutting_down = False

    def start_scheduler(self, interval_seconds: float) -> None:
        self._background.append(
            asyncio.create_task(_scheduled_trigger_loop(self, interval_seconds))
        )

    async def shutdown(self) -> None:
        """Stop background loops, flush pending events, close resources.

        Calling it a second time is a no-op.
        """
        if self._shutting_down:
            return
        self._shutting_down = True
        for task in self._background:
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        await self.event_bus.drain()
        try:
            await self.runner.close()
        except Exception:
            logger.exception("Error closing agent runner")
        await self.db.close()


async def build_orchestrator(
    config: AppConfig,
    runner: AgentRunner | None = None,
) -> Orchestrator:
    db = Database(config.db_path)
    await db.initialize()
    event_bus = EventBus()
    task_store = TaskStore(db, event_bus)
    agent_store = AgentStore(db)
    runner = runner or build_runner(config.runner)
    dispatcher = TriggerDispatcher(
        agent_store,
        task_store,
        runner,
        default_interval_minutes=config.default_interval_minutes,
    )
    dispatcher.attach(event_bus)
    return Orchestrator(config, db, event_bus, task_store, agent_store, dispatcher, runner)


async def _scheduled_trigger_loop(orch: Orchestrator, interval: float) -> None:
    """Every *interval* seconds, fire ``scheduled`` triggers that are due."""
    _logger = logging.getLogger(__name__ + ".scheduler")
    while True:
        await asyncio.sleep(interval)
        try:
            result = await orch.dispatcher.check_and_execute("scheduled")
            if result["executed_agents"]:
                _logger.info("Scheduled run executed %d agents", result["executed_agents"])
        except Exception:
            _logger.exception("Error in scheduled trigger loop")


def _load_config(path: str | None) -> AppConfig:
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if config_path.exists():
        return load_config(config_path)
    if path:
        raise FileNotFoundError(f"Config not found: {config_path}")
    logger.info("No %s found; using built-in defaults", config_path)
    return default_config()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def run_server(config: AppConfig, schedule_every: float | None = None) -> None:
    import uvicorn
    from triggerbrew.dashboard.app import create_app

    orch = await build_orchestrator(config)
    if schedule_every:
        orch.start_scheduler(schedule_every)
    app = create_app(orch)
    server = uvicorn.Server(
        uvicorn.Config(app, host=config.host, port=config.port, log_level="info")
    )
    try:
        await server.serve()
    finally:
        await orch.shutdown()


async def run_check(config: AppConfig, trigger_type: str,
                    agent_id: str | None = None, task_id: str | None = None) -> dict:
    orch = await build_orchestrator(config)
    try:
        source = {"type": "task", "id": task_id} if task_id else None
        return await orch.dispatcher.check_and_execute(
            trigger_type, source_entity=source, agent_id=agent_id,
        )
    finally:
        await orch.shutdown()


def _cmd_validate(args) -> int:
    result = validate_condition_logic(args.logic, args.count)
    if result.is_valid:
        print("OK: expression is valid")
        return 0
    print(f"Invalid expression ({len(result.errors)} errors):")
    for error in result.errors:
        print(f"  [{error_kind_label(error.kind):>2}] {error.message}")
    return 1


def _cmd_check(args) -> int:
    config = _load_config(args.config)
    try:
        result = asyncio.run(run_check(config, args.trigger_type, args.agent_id, args.task_id))
    except (ValueError, KeyError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    print(f"Checked {result['checked_agents']} agents, "
          f"executed {result['executed_agents']}")
    for item in result["results"]:
        status = "ok" if item["success"] else f"failed: {item['error']}"
        print(f"  {item['agent_name']} ({item['agent_id']}): {status}")
    return 0


def _cmd_init(args) -> int:
    project_dir = Path(args.dir).resolve()
    name = args.name or project_dir.name
    config_file = project_dir / DEFAULT_CONFIG_PATH
    config_file.parent.mkdir(parents=True, exist_ok=True)
    if config_file.exists():
        print(f"  Skipped {DEFAULT_CONFIG_PATH} (already exists)")
    else:
        config_file.write_text(DEFAULT_CONFIG_YAML.format(name=name))
        print(f"  Created {DEFAULT_CONFIG_PATH}")
    return 0


def cli_main(argv: list[str] | None = None) -> int:
    try:
        from dotenv import load_dotenv
        load_dotenv()
    except ImportError:
        pass  # python-dotenv is optional

    from triggerbrew.logging_config import setup_logging

    parser = argparse.ArgumentParser(
        prog="triggerbrew", description="TriggerBrew: agent trigger automation",
    )
    parser.add_argument("--log-format", choices=["dev", "json"], default=None)
    sub = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = sub.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--config", default=None, help="Path to triggerbrew.yaml")
    serve_parser.add_argument("--schedule-every", type=float, default=None,
                              help="Seconds between scheduled trigger checks")
    serve_parser.add_argument("--log-file", default=None, help="Also log to this file")

    validate_parser = sub.add_parser("validate", help="Validate a condition logic expression")
    validate_parser.add_argument("logic", help='Expression, e.g. "(0 OR 1) AND 2"')
    validate_parser.add_argument("--count", type=int, required=True,
                                 help="Number of conditions")

    check_parser = sub.add_parser("check", help="Run one trigger check")
    check_parser.add_argument("trigger_type",
                              choices=["on_create", "on_update", "scheduled", "on_demand"])
    check_parser.add_argument("--agent-id", default=None)
    check_parser.add_argument("--task-id", default=None)
    check_parser.add_argument("--config", default=None, help="Path to triggerbrew.yaml")

    init_parser = sub.add_parser("init", help="Write a default config file")
    init_parser.add_argument("--name", help="Application name")
    init_parser.add_argument("--dir", default=".", help="Project directory")

    args = parser.parse_args(argv)
    log_file = getattr(args, "log_file", None)
    setup_logging(args.log_format, log_file=Path(log_file) if log_file else None)

    if args.command == "validate":
        return _cmd_validate(args)
    if args.command == "check":
        return _cmd_check(args)
    if args.command == "init":
        return _cmd_init(args)
    if args.command == "serve":
        asyncio.run(run_server(_load_config(args.config), args.schedule_every))
        return 0
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(cli_main())
