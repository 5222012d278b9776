"""``notify-templates check`` -- Verify environment and configuration."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

from notify_templates.config import get_config
from notify_templates.template.icons import icon_registry
from notify_templates_cli.ui.panels import ACCENT, get_console, status_table

_PASS = "[green]PASS[/green]"
_FAIL = "[red]FAIL[/red]"
_SKIP = "[yellow]SKIP[/yellow]"


def _check_python_version() -> tuple[str, str, str]:
    """Check that Python >= 3.11."""
    version = sys.version_info
    version_str = f"{version.major}.{version.minor}.{version.micro}"
    if version >= (3, 11):
        return ("Python version", _PASS, version_str)
    return ("Python version", _FAIL, f"{version_str} (requires >=3.11)")


def _check_module(module_name: str, label: str) -> tuple[str, str, str]:
    """Check whether a Python module is importable."""
    try:
        mod = importlib.import_module(module_name)
        version = getattr(mod, "__version__", "installed")
        return (label, _PASS, str(version))
    except ImportError:
        return (label, _SKIP, "not installed")


def _check_file(path: Path, label: str) -> tuple[str, str, str]:
    if path.exists():
        return (label, _PASS, str(path))
    return (label, _SKIP, f"not found: {path}")


def check() -> None:
    """Check the local environment for notify-templates readiness."""
    console = get_console()
    config = get_config()

    rows: list[tuple[str, str, str]] = []

    rows.append(_check_python_version())

    # Core dependencies
    rows.append(_check_module("notify_templates", "notify-templates"))
    rows.append(_check_module("pydantic", "pydantic"))
    rows.append(_check_module("pydantic_settings", "pydantic-settings"))
    rows.append(_check_module("httpx", "httpx"))
    rows.append(_check_module("yaml", "pyyaml"))

    # CLI dependencies
    rows.append(_check_module("typer", "typer (cli)"))
    rows.append(_check_module("rich", "rich (cli)"))

    # Settings
    if config.proxy_url.startswith(("http://", "https://")):
        rows.append(("Proxy URL", _PASS, config.proxy_url))
    else:
        rows.append(("Proxy URL", _FAIL, f"not an http(s) URL: {config.proxy_url!r}"))
    rows.append(("Icons registered", _PASS, str(len(icon_registry.list_icons()))))

    # Template documents
    cwd = Path.cwd()
    documents = sorted([*cwd.glob("*.yaml"), *cwd.glob("*.yml"), *cwd.glob("*.json")])
    if documents:
        for doc in documents:
            rows.append(_check_file(doc, f"Template: {doc.name}"))
    else:
        rows.append(("Templates (*.yaml, *.json)", _SKIP, "none in current directory"))

    rows.append(_check_file(cwd / ".env", "Environment file (.env)"))

    console.print()
    status_table("Environment Check", rows, console=console)
    console.print()

    pass_count = sum(1 for _, s, _ in rows if "PASS" in s)
    console.print(f"  [{ACCENT}]{pass_count}/{len(rows)}[/{ACCENT}] checks passed.\n")
