"""High-level workflow wiring the deployment stages together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests

from .analyzer import DeploymentMethodDetector, DetectionResult
from .cleanup import CleanupAgent
from .config import AppConfig
from .containers import ContainerDeployer, container_name
from .gitops import RepositorySynchronizer, repository_name
from .interaction import UserInteractionHandler
from .orchestrator import DeploymentOrchestrator, DeploymentSession, PipelineReport, Stage, StageResult
from .parameters import DeploymentParameters, HostParameters, ParameterValidator
from .proxy import ReverseProxyConfigurator
from .remote.bootstrap import RemoteEnvironmentBootstrapper
from .remote.host import RemoteExecutor
from .remote.probe import RemoteConnectivityProbe
from .ssh import SSHCredentials
from .transfer import ArtifactTransferer
from .validation import DeploymentValidator

logger = logging.getLogger(__name__)

RemoteFactory = Callable[[SSHCredentials], RemoteExecutor]


@dataclass
class _DeployState:
    """Values each stage hands to the next."""

    params: Optional[DeploymentParameters] = None
    working_copy: Optional[Path] = None
    detection: Optional[DetectionResult] = None
    remote: Optional[RemoteExecutor] = None

    @property
    def repo_name(self) -> str:
        assert self.params is not None
        return repository_name(self.params.repo_url)


class DeploymentWorkflow:
    """Builds the stage list for deploy and cleanup runs."""

    def __init__(
        self,
        config: AppConfig,
        workspace: str | Path,
        session: DeploymentSession,
        interaction_handler: UserInteractionHandler,
        *,
        remote_factory: Optional[RemoteFactory] = None,
        http_get: Callable[..., requests.Response] = requests.get,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config
        self.workspace = Path(workspace)
        self.session = session
        self.interaction_handler = interaction_handler
        self.validator = ParameterValidator()
        self.remote_factory = remote_factory or self._connect
        self.http_get = http_get
        self._timing = {"sleep": sleep, "clock": clock}

    # -- entry points -----------------------------------------------------

    def run_deploy(self) -> PipelineReport:
        state = _DeployState()
        stages = [
            Stage("parameters", "Collecting deployment parameters", lambda: self._collect_parameters(state)),
            Stage("repository", "Cloning/updating repository", lambda: self._sync_repository(state)),
            Stage("detect", "Verifying Docker configuration", lambda: self._detect_method(state)),
            Stage("connectivity", "Testing SSH connection to remote server", lambda: self._connect_remote(state)),
            Stage("bootstrap", "Preparing remote server environment", lambda: self._bootstrap(state)),
            Stage("transfer", "Transferring project files to server", lambda: self._transfer(state)),
            Stage("containers", "Deploying Dockerized application", lambda: self._deploy_container(state)),
            Stage("proxy", "Configuring Nginx reverse proxy", lambda: self._configure_proxy(state)),
            Stage("validation", "Validating deployment", lambda: self._validate(state)),
        ]
        logger.info("=========================================")
        logger.info("Automated Container Deployment")
        logger.info("=========================================")
        try:
            report = DeploymentOrchestrator(self.session).run(stages)
        finally:
            if state.remote is not None and hasattr(state.remote, "close"):
                state.remote.close()

        if report.success:
            self._print_summary(state)
        return report

    def run_cleanup(self) -> PipelineReport:
        holder: dict = {}
        stages = [
            Stage("parameters", "Collecting server details", lambda: self._collect_host(holder)),
            Stage("connectivity", "Testing SSH connection to remote server", lambda: self._connect_cleanup(holder)),
            Stage("cleanup", "Removing deployed resources", lambda: self._cleanup(holder)),
        ]
        logger.info("Cleanup mode activated")
        try:
            return DeploymentOrchestrator(self.session).run(stages)
        finally:
            remote = holder.get("remote")
            if remote is not None and hasattr(remote, "close"):
                remote.close()

    # -- deploy stages ------------------------------------------------------

    def _collect_parameters(self, state: _DeployState) -> StageResult:
        state.params = self.validator.collect(self.interaction_handler)
        return StageResult.ok("All parameters validated successfully")

    def _sync_repository(self, state: _DeployState) -> StageResult:
        params = state.params
        assert params is not None
        synchronizer = RepositorySynchronizer(self.workspace)
        result = synchronizer.synchronize(params.repo_url, params.branch, params.access_token)
        state.working_copy = result.working_copy
        return StageResult.ok(f"Repository ready: {result.working_copy} ({result.commit_sha[:12]})")

    def _detect_method(self, state: _DeployState) -> StageResult:
        assert state.working_copy is not None
        state.detection = DeploymentMethodDetector().detect(state.working_copy)
        return StageResult.ok(f"Deployment method: {state.detection.method.value}")

    def _connect_remote(self, state: _DeployState) -> StageResult:
        params = state.params
        assert params is not None
        state.remote = self.remote_factory(self._credentials(params.server_address, params.ssh_username,
                                                             params.ssh_key_path))
        return StageResult.ok("SSH connection verified successfully")

    def _bootstrap(self, state: _DeployState) -> StageResult:
        assert state.remote is not None and state.params is not None
        report = RemoteEnvironmentBootstrapper(state.remote, state.params.ssh_username).run()
        summary = "Remote environment prepared successfully"
        if report.installed:
            summary = f"{summary} (installed: {', '.join(report.installed)})"
        return StageResult(summary=summary, warnings=report.warnings)

    def _transfer(self, state: _DeployState) -> StageResult:
        assert state.remote is not None and state.params is not None and state.working_copy is not None
        params = state.params
        transferer = ArtifactTransferer(
            state.remote,
            self._credentials(params.server_address, params.ssh_username, params.ssh_key_path),
            excludes=self.config.transfer.excludes,
            prefer_rsync=self.config.transfer.prefer_rsync,
        )
        strategy = transferer.transfer(state.working_copy, self.config.remote.app_dir)
        return StageResult.ok(f"Files transferred successfully ({strategy.name})")

    def _deploy_container(self, state: _DeployState) -> StageResult:
        assert state.remote is not None and state.params is not None and state.detection is not None
        deployer = ContainerDeployer(state.remote, self.config.container, **self._timing_kwargs())
        outcome = deployer.deploy(
            state.repo_name,
            self.config.remote.app_dir,
            state.params.app_port,
            generation=self.session.image_tag,
            method=state.detection.method,
        )
        return StageResult(summary="Application deployed successfully", warnings=outcome.warnings)

    def _configure_proxy(self, state: _DeployState) -> StageResult:
        assert state.remote is not None and state.params is not None
        ReverseProxyConfigurator(state.remote, self.config.proxy).configure(state.params.app_port)
        return StageResult.ok("Nginx reverse proxy configured successfully")

    def _validate(self, state: _DeployState) -> StageResult:
        assert state.remote is not None and state.params is not None
        validator = DeploymentValidator(
            state.remote,
            self.config.validation,
            http_get=self.http_get,
            **self._timing_kwargs(),
        )
        report = validator.validate(
            state.params.server_address,
            container_name(state.repo_name),
            state.params.app_port,
        )
        return StageResult(summary="Deployment validated", warnings=report.warnings)

    def _print_summary(self, state: _DeployState) -> None:
        params = state.params
        assert params is not None
        logger.info("=========================================")
        logger.info("DEPLOYMENT COMPLETED SUCCESSFULLY!")
        logger.info("=========================================")
        logger.info("Access your application at: http://%s", params.server_address)
        logger.info("Application internal port: %s", params.app_port)
        logger.info("Log file: %s", self.session.log_path)
        logger.info(
            "To check container logs, run: ssh -i %s %s@%s 'docker logs %s'",
            params.ssh_key_path,
            params.ssh_username,
            params.server_address,
            container_name(state.repo_name),
        )

    # -- cleanup stages -----------------------------------------------------

    def _collect_host(self, holder: dict) -> StageResult:
        holder["host"] = self.validator.collect_host(self.interaction_handler)
        return StageResult.ok("Server details validated")

    def _connect_cleanup(self, holder: dict) -> StageResult:
        host: HostParameters = holder["host"]
        holder["remote"] = self.remote_factory(
            self._credentials(host.server_address, host.ssh_username, host.ssh_key_path)
        )
        return StageResult.ok("SSH connection verified successfully")

    def _cleanup(self, holder: dict) -> StageResult:
        report = CleanupAgent(holder["remote"], self.config).run()
        return StageResult(summary="Cleanup completed successfully", warnings=report.warnings)

    # -- helpers --------------------------------------------------------------

    def _credentials(self, host: str, username: str, key_path: Path) -> SSHCredentials:
        return SSHCredentials(
            host=host,
            username=username,
            key_path=key_path,
            port=self.config.remote.ssh_port,
            timeout=self.config.remote.connect_timeout,
        )

    def _connect(self, credentials: SSHCredentials) -> RemoteExecutor:
        probe = RemoteConnectivityProbe(
            sudo=self.config.remote.sudo,
            command_timeout=self.config.remote.command_timeout,
        )
        return probe.connect(credentials)

    def _timing_kwargs(self) -> dict:
        return {key: value for key, value in self._timing.items() if value is not None}
