"""Command-line interface for Container Deployer."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import AppConfig, load_config
from .interaction import CLIInteractionHandler, UserInteractionHandler
from .orchestrator import DeploymentSession, PipelineReport
from .utils.logging import close_session_logging, configure_session_logging, log_success
from .workflow import DeploymentWorkflow

logger = logging.getLogger(__name__)


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig
    workspace: Path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="container-deployer",
        description=(
            "Deploy a Dockerized application from a Git repository to a remote "
            "Linux server over SSH and put Nginx in front of it."
        ),
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Remove all containers, images, the Nginx site and the app directory from a server.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument(
        "--workspace",
        type=str,
        default=None,
        help="Directory holding the local working copy (default: current directory).",
    )
    return parser


def _build_context(args: argparse.Namespace) -> CLIContext:
    config = load_config(args.config)
    workspace = Path(args.workspace) if args.workspace else Path.cwd()
    return CLIContext(config=config, workspace=workspace)


def _finish(report: PipelineReport, session: DeploymentSession, success_message: str) -> int:
    if report.success:
        if report.warnings:
            logger.warning("Completed with %d warning(s)", len(report.warnings))
        log_success(logger, success_message)
    else:
        logger.error("Script failed. Check %s for details.", session.log_path)
    return report.exit_code


def run_cli(
    argv: Optional[list[str]] = None,
    *,
    interaction_handler: Optional[UserInteractionHandler] = None,
    **workflow_kwargs,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    context = _build_context(args)

    session = DeploymentSession(Path(context.config.logging.log_dir), prefix=context.config.logging.file_prefix)
    handlers = configure_session_logging(context.config.logging, session)
    try:
        workflow = DeploymentWorkflow(
            config=context.config,
            workspace=context.workspace,
            session=session,
            interaction_handler=interaction_handler or CLIInteractionHandler(),
            **workflow_kwargs,
        )
        try:
            if args.cleanup:
                report = workflow.run_cleanup()
                return _finish(report, session, "Cleanup completed successfully")
            report = workflow.run_deploy()
            return _finish(report, session, "Deployment finished")
        except KeyboardInterrupt:
            logger.error("Interrupted. Check %s for details.", session.log_path)
            return 1
        except Exception as exc:
            logger.exception("Unexpected error: %s", exc)
            logger.error("Script failed. Check %s for details.", session.log_path)
            return 1
    finally:
        close_session_logging(handlers)
