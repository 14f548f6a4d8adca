"""Render, validate and activate the nginx site for a project."""

from __future__ import annotations

import base64
import posixpath
from dataclasses import dataclass

from jinja2 import Environment, PackageLoader, StrictUndefined

from ..config import ProxyConfig
from ..errors import ProxyConfigError, ValidationError
from ..models import DeployContext, ExecPolicy, ProxyRule
from .executor import RemoteExecutor
from .stage import PipelineStage, q

SITE_TEMPLATE = "nginx_site.conf.j2"

_environment = Environment(
    loader=PackageLoader("dockship", "templates"),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
    autoescape=False,
)


def render_site(project_name: str, rule: ProxyRule) -> str:
    """Render the nginx server block for `rule`."""
    template = _environment.get_template(SITE_TEMPLATE)
    return template.render(
        project_name=project_name,
        server_name=rule.server_name,
        listen_port=rule.listen_port,
        upstream_port=rule.upstream_port,
    )


@dataclass(frozen=True)
class SitePaths:
    """Where a project's nginx unit lives on the host."""

    available: str
    enabled: str
    staged: str
    scratch: str
    enabled_dir: str

    @classmethod
    def for_project(cls, config: ProxyConfig, project_name: str) -> "SitePaths":
        return cls(
            available=posixpath.join(config.sites_available, project_name),
            enabled=posixpath.join(config.sites_enabled, project_name),
            staged=posixpath.join(config.sites_available, f"{project_name}.staged"),
            scratch=f"/tmp/dockship-nginx-{project_name}",
            enabled_dir=config.sites_enabled.rstrip("/"),
        )


def _pipe_content(content: str) -> str:
    encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")
    return f"echo {encoded} | base64 -d"


class ProxyConfigurator(PipelineStage):
    """Make the application reachable on the standard web port.

    The new unit is written next to the live one, checked with ``nginx -t``
    against a scratch copy of the configuration that already includes it,
    and only then swapped in with a rename and an atomic symlink
    replacement. A unit that fails the check never becomes live.
    """

    name = "proxy"

    def __init__(self, executor: RemoteExecutor, config: ProxyConfig) -> None:
        super().__init__(executor)
        self.config = config

    def _rendered(self, ctx: DeployContext) -> str:
        if ctx.proxy_rule is None:
            raise ValidationError("Proxy configuration requires a proxy rule")
        return render_site(ctx.project_name, ctx.proxy_rule)

    def probe(self, ctx: DeployContext) -> bool:
        paths = SitePaths.for_project(self.config, ctx.project_name)
        content = self._rendered(ctx)
        return self.executor.probe(
            f"{_pipe_content(content)} | sudo cmp -s - {q(paths.available)}"
            f' && [ "$(readlink {q(paths.enabled)})" = {q(paths.available)} ]'
        )

    def settle(self, ctx: DeployContext) -> None:
        # the live site may have been swapped in by a run that never reloaded
        self.audit.info("Nginx site already active, reloading Nginx...")
        self.executor.execute("sudo systemctl reload nginx", error=ProxyConfigError)

    def apply(self, ctx: DeployContext) -> str:
        paths = SitePaths.for_project(self.config, ctx.project_name)
        content = self._rendered(ctx)
        self.audit.info("Configuring Nginx as a reverse proxy on %s...", ctx.target.host)

        self.executor.execute(
            f"{_pipe_content(content)} | sudo tee {q(paths.staged)} > /dev/null",
            error=ProxyConfigError,
        )
        self._validate_staged(ctx, paths)
        self._activate(paths)

        self.audit.info("Reloading Nginx...")
        self.executor.execute("sudo systemctl reload nginx", error=ProxyConfigError)
        self.audit.success("Nginx configured and reloaded successfully.")
        rule = ctx.proxy_rule
        return f"{rule.server_name}:{rule.listen_port} -> 127.0.0.1:{rule.upstream_port}"

    def _validate_staged(self, ctx: DeployContext, paths: SitePaths) -> None:
        """Run nginx -t on the configuration as it would be after activation."""
        self.audit.info("Testing Nginx configuration with the staged site...")
        scratch_enabled = posixpath.join(paths.scratch, "sites-enabled")
        scratch_conf = posixpath.join(paths.scratch, "nginx.conf")
        prepare = " && ".join(
            [
                f"sudo rm -rf {q(paths.scratch)}",
                f"sudo mkdir -p {q(scratch_enabled)}",
                f"sudo find {q(paths.enabled_dir)} -mindepth 1 -maxdepth 1 ! -name {q(ctx.project_name)}"
                f" -exec cp -L {{}} {q(scratch_enabled)}/ \\;",
                f"sudo cp {q(paths.staged)} {q(posixpath.join(scratch_enabled, ctx.project_name))}",
                f"sed 's#{paths.enabled_dir}/#{scratch_enabled}/#g' {q(self.config.main_config)}"
                f" | sudo tee {q(scratch_conf)} > /dev/null",
            ]
        )
        try:
            self.executor.execute(prepare, error=ProxyConfigError)
        except ProxyConfigError:
            self._discard(paths)
            raise

        check_command = f"sudo nginx -t -c {q(scratch_conf)}"
        result = self.executor.execute(check_command, ExecPolicy.NON_FATAL)
        if not result.ok:
            self._discard(paths)
            detail = (result.stderr or result.stdout).strip()
            raise ProxyConfigError(
                f"Nginx rejected the rendered configuration; active configuration left untouched.\n{detail}",
                command=check_command,
            )
        self.executor.execute(f"sudo rm -rf {q(paths.scratch)}", ExecPolicy.NON_FATAL)
        self.audit.success("Staged Nginx configuration is valid.")

    def _activate(self, paths: SitePaths) -> None:
        temp_link = posixpath.join(paths.enabled_dir, f".{posixpath.basename(paths.enabled)}.tmp")
        self.executor.execute(f"sudo mv -f {q(paths.staged)} {q(paths.available)}", error=ProxyConfigError)
        self.executor.execute(
            f"sudo ln -sfn {q(paths.available)} {q(temp_link)} && sudo mv -Tf {q(temp_link)} {q(paths.enabled)}",
            error=ProxyConfigError,
        )

    def _discard(self, paths: SitePaths) -> None:
        self.executor.execute(f"sudo rm -f {q(paths.staged)}", ExecPolicy.NON_FATAL)
        self.executor.execute(f"sudo rm -rf {q(paths.scratch)}", ExecPolicy.NON_FATAL)
