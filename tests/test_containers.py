import unittest

from container_deployer.analyzer import DeploymentMethod
from container_deployer.config import ContainerConfig
from container_deployer.containers import ContainerDeployer, container_name, image_repository, select_stale_images
from container_deployer.errors import RemoteExecutionError, StateConfirmationError

from fakes import FakeClock, FakeRemote


class ContainerDeployerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.remote = FakeRemote()
        self.clock = FakeClock()
        self.deployer = ContainerDeployer(
            self.remote, ContainerConfig(), sleep=self.clock.sleep, clock=self.clock
        )

    def _deploy(self, generation: str, **kwargs):
        return self.deployer.deploy("Hello-App", "app", 3000, generation=generation, **kwargs)

    def test_names(self) -> None:
        self.assertEqual(container_name("Hello-App"), "Hello-App-container")
        self.assertEqual(image_repository("Hello-App"), "hello-app")

    def test_first_deploy_starts_one_container(self) -> None:
        outcome = self._deploy("20250101_120000")
        self.assertEqual(outcome.container, "Hello-App-container")
        self.assertEqual(outcome.image, "hello-app:latest")
        self.assertEqual(self.remote.running_containers(), ["Hello-App-container"])
        run = next(op for op in self.remote.executed if op.name == "container.run")
        self.assertIn("-p 3000:3000", run.command)
        self.assertIn("-e PORT=3000", run.command)
        self.assertIn("--restart unless-stopped", run.command)

    def test_redeploy_replaces_the_container(self) -> None:
        self._deploy("20250101_120000")
        first_id = self.remote.containers["Hello-App-container"]["id"]
        self._deploy("20250101_130000")
        self.assertEqual(self.remote.running_containers(), ["Hello-App-container"])
        self.assertNotEqual(self.remote.containers["Hello-App-container"]["id"], first_id)

    def test_only_two_image_generations_are_kept(self) -> None:
        for generation in ("20250101_120000", "20250101_130000", "20250101_140000", "20250101_150000"):
            self._deploy(generation)
        self.assertEqual(len(self.remote.image_ids("hello-app")), 2)
        latest = self.remote.images[0]
        self.assertEqual(latest["tags"], {"hello-app:latest", "hello-app:20250101_150000"})

    def test_build_tags_latest_and_generation(self) -> None:
        self._deploy("20250101_120000")
        build = next(op for op in self.remote.executed if op.name == "image.build")
        self.assertEqual(build.params["tags"], ["hello-app:latest", "hello-app:20250101_120000"])
        self.assertTrue(build.command.startswith("cd app && "))

    def test_build_failure_is_fatal_and_nothing_is_started(self) -> None:
        self.remote.failures["image.build"] = (1, "failed to solve: dockerfile parse error")
        with self.assertRaises(RemoteExecutionError) as ctx:
            self._deploy("20250101_120000")
        self.assertEqual(ctx.exception.stage, "containers")
        self.assertIn("dockerfile parse error", str(ctx.exception))
        self.assertNotIn("container.run", self.remote.names())

    def test_container_that_exits_surfaces_its_logs(self) -> None:
        self.remote.container_starts = False
        with self.assertRaises(StateConfirmationError) as ctx:
            self._deploy("20250101_120000")
        self.assertIn("Cannot find module", ctx.exception.output or "")
        self.assertGreaterEqual(self.clock.now, 10.0)
        logs = next(op for op in self.remote.executed if op.name == "container.logs")
        self.assertEqual(logs.params["tail"], 100)

    def test_unexpected_stop_failure_is_fatal(self) -> None:
        self.remote.failures["container.stop"] = (1, "permission denied while trying to connect to the Docker daemon")
        with self.assertRaises(RemoteExecutionError):
            self._deploy("20250101_120000")

    def test_failed_image_removal_is_a_warning(self) -> None:
        for generation in ("g1", "g2"):
            self._deploy(generation)
        self.remote.failures["image.remove"] = (1, "image is being used by stopped container")
        outcome = self._deploy("g3")
        self.assertEqual(outcome.removed_images, [])
        self.assertEqual(len(outcome.warnings), 1)

    def test_compose_descriptor_builds_single_image_with_warning(self) -> None:
        outcome = self._deploy("g1", method=DeploymentMethod.MULTI_CONTAINER)
        self.assertEqual(len(outcome.warnings), 1)
        self.assertEqual(self.remote.running_containers(), ["Hello-App-container"])


class SelectStaleImagesTests(unittest.TestCase):
    def test_double_tagged_image_counts_once(self) -> None:
        listing = "sha3 latest\nsha3 g3\nsha2 g2\nsha1 g1\n"
        self.assertEqual(select_stale_images(listing, 2), ["sha1"])

    def test_nothing_to_remove(self) -> None:
        self.assertEqual(select_stale_images("sha1 latest\nsha1 g1", 2), [])
        self.assertEqual(select_stale_images("", 2), [])


if __name__ == "__main__":
    unittest.main()
