"""Command-line entry point for the issue triage action.

Reads the configuration and the job environment, parses the event payload,
runs the triage rules under the invocation deadline and writes the step
outputs. Invoked by action.yml as `python -m src.triage.main`.

Exit codes:
    0  success
    1  any failure during the run
    2  invalid configuration
"""

import asyncio
import sys
from pathlib import Path
from typing import Dict, Optional

import structlog

from src.triage.config import (
    ActionEnvironment,
    TriageSettings,
    load_environment,
    load_settings,
)
from src.triage.errors import ConfigurationError
from src.triage.github.client import GitHubClient
from src.triage.logging import configure_logging
from src.triage.runner import RunResult, TriageRunner
from src.triage.webhook.handler import WebhookHandler


logger = structlog.get_logger()


EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters.

    Args:
        value: The secret value to redact.
        visible_chars: Number of characters to show at the start.

    Returns:
        Redacted string with asterisks replacing hidden characters.
    """
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def _log_configuration(settings: TriageSettings, environment: ActionEnvironment) -> None:
    """Log configuration values with secrets redacted."""
    logger.info(
        "Triage configuration",
        repository=environment.github_repository,
        event_name=environment.github_event_name,
        github_base_url=settings.github_base_url,
        token=_redact_secret(settings.token),
        labels=settings.label.model_dump(),
        log_regex=settings.log.regex,
        assignee=settings.user.assign or None,
        privileged_permission=settings.user.privileged_permission.value,
        issue_state=settings.issue.state.value,
        project_url=settings.project.url or None,
        project_token=_redact_secret(settings.project.token) if settings.project.token else None,
        dry_run=settings.dry_run,
        deadline_seconds=settings.deadline_seconds,
    )


def write_outputs(path: Optional[Path], outputs: Dict[str, str]) -> None:
    """Append step outputs to the file named by GITHUB_OUTPUT.

    Outside of Actions (no GITHUB_OUTPUT) the outputs are only logged.
    """
    logger.info("Step outputs", **outputs)
    if path is None:
        return
    with open(path, "a", encoding="utf-8") as f:
        for key, value in outputs.items():
            f.write(f"{key}={value}\n")


async def run(settings: TriageSettings, environment: ActionEnvironment) -> RunResult:
    """Run the triage rules for the job's event.

    Raises:
        ConfigurationError: If the board configuration is invalid.
        UnsupportedEventError: If the event name is not supported.
        MalformedPayloadError: If the payload does not resolve to an issue.
        GitHubAPIError: If a read or mutation fails.
    """
    handler = WebhookHandler(default_repository=environment.github_repository)
    event = handler.load(environment.github_event_name, environment.github_event_path)

    async with GitHubClient(token=settings.token, base_url=settings.github_base_url) as client:
        project_client: Optional[GitHubClient] = None
        if settings.project.enabled and settings.project.token.strip():
            project_client = GitHubClient(
                token=settings.project_token, base_url=settings.github_base_url
            )
        try:
            runner = TriageRunner(
                settings,
                event.owner,
                event.repository,
                client,
                project_client=project_client,
            )
            return await runner.run(event)
        finally:
            if project_client is not None:
                await project_client.close()


def main() -> int:
    """Run the action and return the process exit code."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        configure_logging()
        logger.error("Invalid configuration", error=e.message)
        return EXIT_CONFIGURATION

    configure_logging(settings.verbose, json=settings.log_json)

    try:
        environment = load_environment()
    except ConfigurationError as e:
        logger.error("Invalid job environment", error=e.message)
        return EXIT_CONFIGURATION

    _log_configuration(settings, environment)

    try:
        result = asyncio.run(
            asyncio.wait_for(run(settings, environment), timeout=settings.deadline_seconds)
        )
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=e.message, setting=e.setting)
        return EXIT_CONFIGURATION
    except asyncio.TimeoutError:
        logger.error("Triage run exceeded its deadline", deadline_seconds=settings.deadline_seconds)
        return EXIT_FAILURE
    except Exception as e:
        logger.error("Triage run failed", error=str(e), exc_info=True)
        return EXIT_FAILURE

    try:
        write_outputs(environment.github_output, result.outputs())
    except OSError as e:
        logger.error("Cannot write step outputs", path=str(environment.github_output), error=str(e))
        return EXIT_FAILURE

    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
