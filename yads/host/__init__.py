"""Bare-host provisioning: packages, web servers, systemd services, tunnel and TLS."""
