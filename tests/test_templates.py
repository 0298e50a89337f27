"""Tests for template rendering."""

import pytest
import yaml
from jinja2 import UndefinedError

from yads.templates import render, render_scaffold, scaffold_files


def test_render_nginx_site():
    """Test that the default nginx site points at the web root and PHP socket."""
    content = render("nginx-yads.conf.j2", web_root="/var/www/html", php_version="8.3")

    assert "root /var/www/html;" in content
    assert "unix:/var/run/php/php8.3-fpm.sock" in content


def test_render_missing_variable_raises():
    """Test that templates never render silently with a missing value."""
    with pytest.raises(UndefinedError):
        render("nginx-yads.conf.j2", web_root="/var/www/html")


def test_cloudflared_config_is_valid_yaml():
    """Test the tunnel ingress rules: VS Code, wildcard projects, 404."""
    content = render(
        "cloudflared-config.yml.j2",
        tunnel_id="abc-123",
        credentials_dir="/root/.cloudflared",
        domain="mydev.com",
    )
    data = yaml.safe_load(content)

    assert data["tunnel"] == "abc-123"
    assert data["credentials-file"] == "/root/.cloudflared/abc-123.json"
    assert [rule.get("hostname") for rule in data["ingress"]] == ["code.mydev.com", "*.mydev.com", None]
    assert data["ingress"][-1]["service"] == "http_status:404"


def test_nginx_project_vhost_includes_security_headers():
    """Test that project vhosts use the wildcard certificate and security headers."""
    content = render(
        "nginx-project.conf.j2",
        project_domain="blog.mydev.com",
        project_path="/home/dev/projects/blog",
        domain="mydev.com",
        php_version="8.4",
    )

    assert "server_name blog.mydev.com;" in content
    assert "/etc/letsencrypt/live/mydev.com/fullchain.pem" in content
    assert "X-Frame-Options" in content


def test_scaffold_files_fall_back_to_generic():
    """Test that types without a scaffold use the generic README."""
    assert scaffold_files("php") == ["composer.json", "index.php"]
    assert scaffold_files("laravel") == ["README.md"]


def test_render_scaffold_node(temp_dir):
    """Test that the node scaffold writes package.json and index.js."""
    written = render_scaffold("node", temp_dir, project_name="Shop", project_url="https://shop.mydev.com", domain="mydev.com")

    assert sorted(path.name for path in written) == ["index.js", "package.json"]
    assert '"name": "shop"' in (temp_dir / "package.json").read_text()
    assert "Project: Shop" in (temp_dir / "index.js").read_text()


def test_render_scaffold_generic(temp_dir):
    """Test the generic README contents."""
    render_scaffold("generic", temp_dir, project_name="notes", project_url="https://notes.mydev.com", domain="mydev.com")

    readme = (temp_dir / "README.md").read_text()
    assert "# notes" in readme
    assert "https://code.mydev.com" in readme
