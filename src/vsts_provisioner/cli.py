"""
VSTS Provisioner - Main entry point.

Installs configured tools, registers the build agent, then watches the agent
service until it stops.
"""

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from . import __version__
from .config import CONFIG_PATH_ENV, DEFAULT_SERVICE_PREFIX, ProvisionerConfig, load_config
from .deployment.provisioner import AgentProvisioner
from .deployment.request import ProvisioningRequest
from .deployment.watcher import LivenessWatcher
from .error_handling import ProvisionError
from .toolchain import ToolContext, build_installers, run_tool_installers

logger = logging.getLogger("vsts-provisioner")


def configure_logging(verbose: bool = False) -> None:
    """Configure process-wide logging to stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # httpx logs every request at INFO, including the PAT-authenticated ones.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vsts-provision",
        description="Provision a Windows container with an Azure DevOps build agent.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="YAML configuration file (overrides VSTS_PROVISIONER_CONFIG)")
    parser.add_argument("--account", help="Azure DevOps account name, e.g. 'contoso'")
    parser.add_argument("--token", help="Personal access token")
    parser.add_argument("--pool", help="Agent pool name")
    parser.add_argument("--agent-name", help="Agent name (default: host name)")
    parser.add_argument("--agent-suffix", help="Suffix appended to the host name for the default agent name")
    parser.add_argument("--drive", help="Install drive letter (default: C)")
    parser.add_argument("--work", help="Agent work directory")
    parser.add_argument(
        "--autologon", action="store_true", default=None,
        help="Run the agent under an interactive autologon session instead of a service",
    )
    parser.add_argument("--logon-account", help="Windows account the agent runs as")
    parser.add_argument("--logon-password", help="Password for the logon account")
    parser.add_argument("--service-prefix", help=f"Watched service name prefix (default: {DEFAULT_SERVICE_PREFIX})")
    parser.add_argument("--skip-tools", action="store_true", help="Do not install configured tools")
    parser.add_argument("--no-watch", action="store_true", help="Exit after provisioning instead of watching")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def resolve_config(args: argparse.Namespace) -> ProvisionerConfig:
    """Load the configuration and apply command-line overrides."""
    if args.config:
        config = ProvisionerConfig.from_config_file(args.config)
    elif args.account and not os.environ.get(CONFIG_PATH_ENV):
        config = ProvisionerConfig.from_env()
    else:
        config = load_config()

    overrides = {
        "account_name": args.account,
        "auth_token": args.token,
        "pool_name": args.pool,
        "agent_name": args.agent_name,
        "agent_name_suffix": args.agent_suffix,
        "drive_letter": args.drive,
        "work_directory": args.work,
        "run_interactive_logon": args.autologon,
        "logon_account": args.logon_account,
        "logon_password": args.logon_password,
        "service_prefix": args.service_prefix,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)

    config.validate()
    return config


def run(config: ProvisionerConfig, *, skip_tools: bool = False, watch: bool = True) -> int:
    """Run a full provisioning pass for a configuration."""
    context = ToolContext.from_environment()

    if config.tools and not skip_tools:
        installers = build_installers(config.tools, config.resolved_tools_root())
        run_tool_installers(installers, context)

    request = ProvisioningRequest.from_config(config)
    AgentProvisioner(tool_context=context).provision(request)

    if watch:
        LivenessWatcher(service_prefix=config.service_prefix).watch()

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    logger.info(f"Starting VSTS Provisioner v{__version__}")

    try:
        config = resolve_config(args)
        return run(config, skip_tools=args.skip_tools, watch=not args.no_watch)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
        return 130
    except ProvisionError as e:
        print(f"error: {e}", file=sys.stderr)
        print(f"hint: {e.hint}", file=sys.stderr)
        return e.exit_code
    except FileNotFoundError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        logger.error(f"Provisioning failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
