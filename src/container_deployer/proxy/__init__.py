"""Reverse proxy configuration."""

from .nginx import ReverseProxyConfigurator, render_site_config

__all__ = ["ReverseProxyConfigurator", "render_site_config"]
