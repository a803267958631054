import unittest

from container_deployer.config import ProxyConfig
from container_deployer.errors import RemoteExecutionError
from container_deployer.proxy import ReverseProxyConfigurator, render_site_config

from fakes import SITES_AVAILABLE, SITES_ENABLED, FakeRemote

SITE = f"{SITES_AVAILABLE}/app"
ENABLED = f"{SITES_ENABLED}/app"
DEFAULT = f"{SITES_ENABLED}/default"


class RenderSiteConfigTests(unittest.TestCase):
    def test_routes_everything_to_the_port(self) -> None:
        content = render_site_config(8080)
        self.assertIn("listen 80 default_server;", content)
        self.assertIn("listen [::]:80 default_server;", content)
        self.assertIn("server_name _;", content)
        self.assertIn("proxy_pass http://localhost:8080;", content)
        self.assertIn("proxy_set_header Upgrade $http_upgrade;", content)
        self.assertIn("proxy_set_header X-Forwarded-Proto $scheme;", content)
        self.assertEqual(content.count("{"), content.count("}"))

    def test_rejects_out_of_range_port(self) -> None:
        with self.assertRaises(ValueError):
            render_site_config(0)


class ReverseProxyConfiguratorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.remote = FakeRemote()
        self.remote.add_site("default", "server { listen 80 default_server; root /var/www/html; }")
        self.configurator = ReverseProxyConfigurator(self.remote, ProxyConfig())

    def test_writes_enables_and_reloads(self) -> None:
        content = self.configurator.configure(3000)
        self.assertEqual(self.remote.files[SITE], content)
        self.assertEqual(self.remote.links[ENABLED], SITE)
        self.assertNotIn(DEFAULT, self.remote.links)
        self.assertEqual(self.remote.reloads, 1)
        names = self.remote.names()
        self.assertLess(names.index("proxy.test"), names.index("service.reload"))
        write = next(op for op in self.remote.executed if op.name == "files.write")
        self.assertEqual(write.command, f"sudo -n tee {SITE} >/dev/null")

    def test_reconfigure_with_new_port(self) -> None:
        self.configurator.configure(3000)
        self.configurator.configure(8080)
        self.assertIn("proxy_pass http://localhost:8080;", self.remote.files[SITE])
        self.assertEqual(self.remote.reloads, 2)

    def test_invalid_config_is_rolled_back_without_reload(self) -> None:
        before = {"files": dict(self.remote.files), "links": dict(self.remote.links)}
        loaded = self.remote.loaded_config
        self.remote.nginx_valid = False

        with self.assertRaises(RemoteExecutionError) as ctx:
            self.configurator.configure(3000)

        self.assertEqual(ctx.exception.stage, "proxy")
        self.assertIn("unexpected end of file", str(ctx.exception))
        self.assertEqual(self.remote.reloads, 0)
        self.assertEqual(self.remote.loaded_config, loaded)
        self.assertEqual({"files": self.remote.files, "links": self.remote.links}, before)

    def test_invalid_update_restores_previous_site(self) -> None:
        previous = self.configurator.configure(3000)
        self.remote.nginx_valid = False
        with self.assertRaises(RemoteExecutionError):
            self.configurator.configure(9000)
        self.assertEqual(self.remote.files[SITE], previous)
        self.assertEqual(self.remote.links[ENABLED], SITE)
        self.assertEqual(self.remote.reloads, 1)

    def test_write_failure_restores_snapshot(self) -> None:
        self.remote.failures["files.symlink"] = (1, "ln: permission denied")
        with self.assertRaises(RemoteExecutionError):
            self.configurator.configure(3000)
        self.assertNotIn(SITE, self.remote.files)
        self.assertEqual(self.remote.reloads, 0)


if __name__ == "__main__":
    unittest.main()
