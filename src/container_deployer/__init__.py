"""Container Deployer: ship a Dockerized repository to a server behind Nginx."""

__version__ = "0.1.0"
