import unittest

from dockship.config import ProxyConfig
from dockship.models import DeployContext, RepositorySpec
from dockship.pipeline import CleanupStage, DeploymentStage, ProxyConfigurator

from tests.fakes import RemoteStageTestCase


class CleanupStageTests(RemoteStageTestCase):
    def _cleanup_context(self) -> DeployContext:
        return DeployContext(
            target=self.target,
            repository=RepositorySpec(url="https://github.com/acme/shop-api.git"),
            remote_dir="/home/ubuntu/shop-api",
        )

    def test_clean_host_is_not_an_error(self) -> None:
        self.host.fail("docker stop", stderr="No such container: shop-api")
        self.host.fail("docker rm", stderr="No such container: shop-api")
        self.host.fail("sudo rm -f")

        detail = CleanupStage(self.executor, ProxyConfig()).apply(self._cleanup_context())

        self.assertEqual(detail, "removed resources for shop-api")
        self.assertTrue(self.host.ran("rm -rf /home/ubuntu/shop-api"))

    def test_removes_everything_a_deploy_left(self) -> None:
        ctx = self.make_context()
        DeploymentStage(self.executor).apply(ctx)
        ProxyConfigurator(self.executor, ProxyConfig()).apply(ctx)
        self.host.commands.clear()

        CleanupStage(self.executor, ProxyConfig()).apply(self._cleanup_context())

        for command in (
            "docker stop shop-api",
            "docker rm shop-api",
            "docker rmi shop-api",
            "sudo rm -f /etc/nginx/sites-enabled/shop-api",
            "sudo rm -f /etc/nginx/sites-available/shop-api",
            "sudo rm -f /etc/nginx/sites-available/shop-api.staged",
            "sudo systemctl reload nginx",
        ):
            self.assertTrue(self.host.ran(command), command)
        self.assertFalse(self.host.container)
        self.assertFalse(self.host.ran("docker-compose -p"))
        self.assertLess(self.host.index_of("sites-enabled/shop-api"), self.host.index_of("systemctl reload nginx"))

    def test_compose_stack_is_taken_down_with_images(self) -> None:
        self.host.stack_files = True
        CleanupStage(self.executor, ProxyConfig()).apply(self._cleanup_context())
        self.assertTrue(
            self.host.ran("docker-compose -p shop-api down --rmi all --volumes --remove-orphans")
        )


if __name__ == "__main__":
    unittest.main()
