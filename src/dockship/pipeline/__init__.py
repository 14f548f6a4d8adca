"""Deployment pipeline: executor, stages and orchestrator."""

from .cleanup import CleanupStage
from .deployment import DeploymentStage
from .executor import RemoteExecutor, RemoteTransport
from .orchestrator import PipelineOrchestrator
from .provisioning import Dependency, ProvisioningStage
from .proxy import ProxyConfigurator, render_site
from .stage import PipelineStage
from .validator import Validator

__all__ = [
    "CleanupStage",
    "Dependency",
    "DeploymentStage",
    "PipelineOrchestrator",
    "PipelineStage",
    "ProvisioningStage",
    "ProxyConfigurator",
    "RemoteExecutor",
    "RemoteTransport",
    "Validator",
    "render_site",
]
