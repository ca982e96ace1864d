from pathlib import Path
from typing import Optional

import typer
import yaml

from nodectl.config import load_config, save_config
from nodectl.modules.errors import ConfigError
from nodectl.utils import console, error, redact_sensitive_data, success

app = typer.Typer(help="Manage the control-plane account configuration")


@app.command("set")
def set_config_cmd(
    fqdn: Optional[str] = typer.Option(None, "--fqdn", "-a", help="Controller URL"),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Account user name"),
    password: Optional[str] = typer.Option(None, "--password", "-p", help="Account password"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="Region"),
    tenant: Optional[str] = typer.Option(None, "--tenant", "-t", help="Project"),
    proxy_url: Optional[str] = typer.Option(None, "--proxy-url", help="HTTP(S) proxy used by the node"),
    allow_insecure: Optional[bool] = typer.Option(None, "--allow-insecure/--no-allow-insecure", help="Skip TLS verification"),
    wait_period: Optional[int] = typer.Option(None, "--wait-period", help="Seconds to wait before authorizing a new host"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file (default: ~/.nodectl/config.yaml)"),
):
    """
    Store account settings, keeping any value that is not passed.
    """
    try:
        config = load_config(
            config_path,
            fqdn=fqdn, username=username, password=password, region=region, tenant=tenant,
            proxy_url=proxy_url, allow_insecure=allow_insecure, wait_period=wait_period,
        )
        config.validate_required()
        path = save_config(config, config_path)
    except ConfigError as e:
        error(str(e))
        raise typer.Exit(code=1)
    success(f"Stored config in {path}")


@app.command("show")
def show_config_cmd(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file (default: ~/.nodectl/config.yaml)"),
):
    """
    Print the effective configuration with secrets redacted.
    """
    try:
        config = load_config(config_path)
    except ConfigError as e:
        error(str(e))
        raise typer.Exit(code=1)
    console.print(yaml.safe_dump(redact_sensitive_data(config.model_dump()), sort_keys=False), markup=False)
