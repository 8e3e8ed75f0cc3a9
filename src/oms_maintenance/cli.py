"""
OMS Agent Maintenance CLI
Maintenance tool for an OMS agent onboarded to a workspace.
"""

import click

from .agent.maintenance import Maintenance
from .errors import InvalidOptionError
from .logging import configure_logging
from .utils.config import MaintenanceSettings, is_test_mode
from .utils.files import is_current_user_root

NECESSARY_INPUTS = "<omsadmin_conf> <cert> <key> <pid> <proxy> <os_info> <install_info>"


def usage() -> str:
    prog = "oms-maintenance"
    return (
        "\nMaintenance tool for OMS Agent onboarded to workspace:"
        "\nHeartbeat:\n"
        f"{prog} -h {NECESSARY_INPUTS}\n"
        f"{prog} --heartbeat {NECESSARY_INPUTS}\n"
        "\nRenew certificates:\n"
        f"{prog} -r {NECESSARY_INPUTS}\n"
        f"{prog} --renew-certs {NECESSARY_INPUTS}\n"
        "\nOptional: Add -v for verbose output\n"
    )


def _privileged_or_test() -> bool:
    return is_test_mode() or is_current_user_root()


def _record_verbosity(ctx, param, value):
    # Options are processed in command-line order, so the last of -v/-s wins
    if value:
        ctx.meta["oms_maintenance.verbose"] = param.name == "verbose"
    return value


@click.command(context_settings=dict(help_option_names=["--help"]))
@click.option("-h", "--heartbeat", is_flag=True, help="Send a topology heartbeat")
@click.option("-c", "--generate-certs", is_flag=True, help="Generate the identity certificate (onboarding)")
@click.option("-r", "--renew-certs", is_flag=True, help="Renew the identity certificate")
@click.option("-w", "workspace_id", default=None, help="Workspace ID for --generate-certs")
@click.option("-a", "agent_guid", default=None, help="Agent GUID for --generate-certs")
@click.option("--endpoints", "endpoints", default=None, metavar="XML,ENDPOINT_FILE",
              help="Apply endpoints from a saved response (onboarding)")
@click.option("-v", "--verbose", is_flag=True, callback=_record_verbosity, help="Verbose output")
@click.option("-s", "--suppress-verbose", is_flag=True, callback=_record_verbosity,
              help="Suppress verbose output only")
@click.argument("inputs", nargs=-1)
@click.pass_context
def cli(ctx, heartbeat, generate_certs, renew_certs, workspace_id, agent_guid,
        endpoints, verbose, suppress_verbose, inputs):
    """OMS agent maintenance: heartbeat, certificate generation and renewal."""
    if len(inputs) < 7:
        click.echo(usage())
        ctx.exit(0)

    config_path, cert_path, key_path, pid_path, proxy_path, os_info, install_info = inputs[:7]
    verbose = ctx.meta.get("oms_maintenance.verbose", False)
    settings = MaintenanceSettings()

    maintenance = Maintenance(
        config_path, cert_path, key_path,
        pid_path=pid_path,
        proxy_path=proxy_path,
        os_info_path=os_info,
        install_info_path=install_info,
        settings=settings,
        verbose=verbose,
    )
    configure_logging(
        level="DEBUG" if verbose else settings.LOG_LEVEL,
        json_format=settings.ENVIRONMENT.lower() == "production",
        facility=maintenance.log_facility(),
        echo=True,
    )

    user_check = maintenance.check_user()
    if not user_check.ok:
        ctx.exit(user_check.exit_code)

    try:
        result = _dispatch(maintenance, heartbeat, generate_certs, renew_certs,
                           workspace_id, agent_guid, endpoints)
    except InvalidOptionError as e:
        click.echo(e.message)
        ctx.exit(int(e.code))

    ctx.exit(result.exit_code if result is not None else 0)


def _dispatch(maintenance, heartbeat, generate_certs, renew_certs, workspace_id, agent_guid, endpoints):
    if heartbeat:
        return maintenance.heartbeat()

    if generate_certs:
        # Only intended for the onboarding script and testing
        if not _privileged_or_test():
            raise InvalidOptionError(usage())
        if workspace_id is None or agent_guid is None:
            raise InvalidOptionError(
                "To generate certificates, you must include both -w WORKSPACE_ID and -a AGENT_GUID"
            )
        return maintenance.generate_certs(workspace_id, agent_guid)

    if renew_certs:
        return maintenance.renew_certs()

    if endpoints is not None:
        if not _privileged_or_test():
            raise InvalidOptionError(usage())
        parts = endpoints.split(",")
        if len(parts) != 2:
            raise InvalidOptionError(
                "To apply the endpoints, you must include both input XML and output file: "
                "--endpoints XML,ENDPOINT_FILE"
            )
        return maintenance.apply_endpoints_file(parts[0], parts[1])

    click.echo(usage())
    return None


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
