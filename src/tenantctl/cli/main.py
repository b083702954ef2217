"""Command-line interface for tenantctl."""

from __future__ import annotations

import argparse
import sys
from typing import Any, Sequence

from pydantic import BaseModel, ValidationError
from rich.markup import escape

from tenantctl.cli.config import CLIConfig, ConfigError, load_cli_config
from tenantctl.cli.connections import (
    ConnectionProfile,
    ConnectionProfileError,
    delete_connection,
    load_connections,
    save_connection,
)
from tenantctl.cli.dispatch import (
    CommandContext,
    Mode,
    Route,
    apply_overrides,
    build_session,
    resolve_mode,
    run_operation,
    select_route,
)
from tenantctl.cli.options import (
    ConnectionAddOptions,
    ConnectionListOptions,
    EmailTemplateListOptions,
    IdpExportOptions,
    IdpListOptions,
    JourneyDescribeOptions,
    JourneyListOptions,
    VariableListOptions,
    VariableSetOptions,
)
from tenantctl.client import PlatformClient
from tenantctl.console import Printer, new_table, sanitize_text
from tenantctl.errors import Failure, FailureKind, TenantCtlError
from tenantctl.exports import load_json_file, tool_version
from tenantctl.ops.email_templates import list_email_templates
from tenantctl.ops.idps import (
    export_social_identity_provider_to_file,
    export_social_identity_providers_to_file,
    export_social_identity_providers_to_files,
    list_social_identity_providers,
)
from tenantctl.ops.journeys import (
    create_file_param_tree_export_resolver,
    create_live_tree_export_resolver,
    describe_journey,
    describe_journey_md,
    export_journey,
    get_journeys,
    list_journeys,
    resolve_journey_data,
)
from tenantctl.ops.variables import list_variables, set_variable_description, update_variable
from tenantctl.session import DEPLOYMENT_TYPES

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

_FAILURE_PREFIXES = {
    FailureKind.USAGE: "usage error",
    FailureKind.AUTHENTICATION: "authentication error",
    FailureKind.NOT_FOUND: "not found",
    FailureKind.OPERATION: "error",
}


class UsageError(Exception):
    def __init__(self, parser: argparse.ArgumentParser, message: str) -> None:
        super().__init__(message)
        self.parser = parser
        self.message = message


class _ArgumentParser(argparse.ArgumentParser):
    """Parser that reports usage errors to ``main`` instead of exiting with status 2."""

    def error(self, message: str):  # type: ignore[override]
        raise UsageError(self, message)


def _command_option(parser: argparse.ArgumentParser, *flags: str, **kwargs: Any) -> None:
    action = parser.add_argument(*flags, **kwargs)
    option_dests = parser.get_default("option_dests")
    if option_dests is None:
        option_dests = []
        parser.set_defaults(option_dests=option_dests)
    option_dests.append(action.dest)


def _add_connection_arguments(parser: argparse.ArgumentParser, *, with_realm: bool = True) -> None:
    parser.add_argument(
        "host",
        nargs="?",
        default=None,
        help="Tenant URL or unique substring of a saved connection",
    )
    if with_realm:
        parser.add_argument("realm", nargs="?", default=None, help="Realm (default from config: alpha)")
    parser.add_argument("user", nargs="?", default=None, help="Username")
    parser.add_argument("password", nargs="?", default=None, help="Password")
    parser.add_argument(
        "-m",
        "--type",
        choices=DEPLOYMENT_TYPES,
        default=None,
        help="Deployment type (default: inferred from the tenant URL)",
    )
    parser.add_argument(
        "-k",
        "--insecure",
        action="store_true",
        help="Allow insecure TLS connections (self-signed certificates)",
    )
    parser.add_argument("--verbose", action="store_true", help="Print progress messages")
    parser.add_argument("--debug", action="store_true", help="Print HTTP request details")
    parser.add_argument(
        "--curlirize",
        action="store_true",
        help="Print every HTTP request as a curl command",
    )
    parser.add_argument("--sa-id", default=None, help="Service account id (cloud)")
    parser.add_argument(
        "--sa-jwk-file",
        default=None,
        help="Path to the service account JWK private key file (cloud)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(prog="tenantctl")
    parser.add_argument(
        "--version",
        action="version",
        version=f"tenantctl {tool_version()}",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to CLI config TOML (default: ~/.tenantctl/config.toml)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    email = sub.add_parser("email", help="Manage email templates")
    email_sub = email.add_subparsers(dest="email_command", required=True)
    email_template = email_sub.add_parser("template", help="Manage email templates")
    email_template_sub = email_template.add_subparsers(dest="template_command", required=True)
    email_template_list = email_template_sub.add_parser("list", help="List email templates.")
    _add_connection_arguments(email_template_list)
    _command_option(email_template_list, "-l", "--long", action="store_true", help="Long with all fields.")

    esv = sub.add_parser("esv", help="Manage environment secrets and variables")
    esv_sub = esv.add_subparsers(dest="esv_command", required=True)
    variable = esv_sub.add_parser("variable", help="Manage variables")
    variable_sub = variable.add_subparsers(dest="variable_command", required=True)
    variable_set = variable_sub.add_parser("set", help="Set variable value and/or description.")
    _add_connection_arguments(variable_set)
    _command_option(variable_set, "-i", "--variable-id", default=None, help="Variable id.")
    _command_option(variable_set, "--value", default=None, help="Variable value.")
    _command_option(variable_set, "--description", default=None, help="Variable description.")
    variable_list = variable_sub.add_parser("list", help="List variables.")
    _add_connection_arguments(variable_list)
    _command_option(variable_list, "-l", "--long", action="store_true", help="Long with all fields.")

    idp = sub.add_parser("idp", help="Manage (social) identity providers")
    idp_sub = idp.add_subparsers(dest="idp_command", required=True)
    idp_export = idp_sub.add_parser("export", help="Export (social) identity providers.")
    _add_connection_arguments(idp_export)
    _command_option(
        idp_export,
        "-i",
        "--idp-id",
        default=None,
        help="Id/name of a provider. If specified, -a and -A are ignored.",
    )
    _command_option(
        idp_export,
        "-f",
        "--file",
        default=None,
        help="Name of the file to write the exported provider(s) to. Ignored with -A.",
    )
    _command_option(
        idp_export,
        "-a",
        "--all",
        action="store_true",
        help="Export all the providers in a realm to a single file. Ignored with -i.",
    )
    _command_option(
        idp_export,
        "-A",
        "--all-separate",
        action="store_true",
        help=(
            "Export all the providers in a realm as separate files <provider name>.idp.json. "
            "Ignored with -i and -a."
        ),
    )
    _command_option(
        idp_export,
        "-N",
        "--no-metadata",
        dest="metadata",
        action="store_false",
        help="Does not include metadata in the export file.",
    )
    idp_list = idp_sub.add_parser("list", help="List (social) identity providers.")
    _add_connection_arguments(idp_list)
    _command_option(idp_list, "-l", "--long", action="store_true", help="Long with all fields.")

    journey = sub.add_parser("journey", help="Manage journeys/trees")
    journey_sub = journey.add_subparsers(dest="journey_command", required=True)
    journey_describe = journey_sub.add_parser(
        "describe",
        help=(
            "Describe the journey/tree indicated by -i, or all journeys/trees in the realm if no "
            "-i is supplied; with -f, describe the journey/tree export file instead."
        ),
    )
    _add_connection_arguments(journey_describe)
    _command_option(
        journey_describe,
        "-i",
        "--journey-id",
        default=None,
        help="Name of a journey/tree.",
    )
    _command_option(
        journey_describe,
        "-f",
        "--file",
        default=None,
        help="Name of the journey export file to describe.",
    )
    _command_option(
        journey_describe,
        "-F",
        "--output-file",
        default=None,
        help="Name of the file to write the output to.",
    )
    _command_option(journey_describe, "--markdown", action="store_true", help="Output in markdown.")
    _command_option(
        journey_describe,
        "-o",
        "--override-version",
        default=None,
        help=(
            "Override version. Notation: '<major>.<minor>.<patch>' e.g. '7.2.0'. Override the "
            "detected version to check whether journeys from one environment would be "
            "compatible with another."
        ),
    )
    journey_list = journey_sub.add_parser("list", help="List journeys/trees.")
    _add_connection_arguments(journey_list)
    _command_option(journey_list, "-l", "--long", action="store_true", help="Long with all fields.")

    conn = sub.add_parser("conn", help="Manage saved connection profiles")
    conn_sub = conn.add_subparsers(dest="conn_command", required=True)
    conn_add = conn_sub.add_parser("add", help="Add or update a saved connection profile.")
    _add_connection_arguments(conn_add, with_realm=False)
    _command_option(
        conn_add,
        "--no-validate",
        dest="validate_connection",
        action="store_false",
        help="Save without authenticating against the tenant first.",
    )
    conn_list = conn_sub.add_parser("list", help="List saved connection profiles.")
    _command_option(conn_list, "-l", "--long", action="store_true", help="Long with all fields.")
    conn_delete = conn_sub.add_parser("delete", help="Delete a saved connection profile.")
    conn_delete.add_argument("host", help="Tenant URL or unique substring of a saved connection")

    return parser


# -- reporting -----------------------------------------------------------------


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {sanitize_text(message)}", file=stderr)
    return code


def _report_failure(stderr, failure: Failure) -> int:
    return _print_error(stderr, _FAILURE_PREFIXES[failure.kind], failure.message, code=EXIT_FAILURE)


def _usage_failure(args, stderr, message: str) -> int:
    _print_error(stderr, "usage error", message, code=EXIT_FAILURE)
    command_parser = getattr(args, "command_parser", None)
    if command_parser is not None:
        print(command_parser.format_help(), file=stderr)
    return EXIT_FAILURE


def _command_options(model: type[BaseModel], args) -> BaseModel:
    values = {dest: getattr(args, dest) for dest in (getattr(args, "option_dests", None) or [])}
    return model.model_validate(values)


def _build_client(session, printer: Printer, config: CLIConfig) -> PlatformClient:
    return PlatformClient(
        session=session,
        printer=printer,
        timeout=config.timeout,
        retries=config.retries,
    )


# -- route tables ----------------------------------------------------------------

EMAIL_TEMPLATE_LIST_ROUTES: tuple[Route[EmailTemplateListOptions], ...] = (
    Route(
        "list email templates",
        lambda o: True,
        lambda ctx, o: list_email_templates(ctx.client, ctx.printer, o.long),
        lambda ctx, o: "Listing email templates ...",
    ),
)

VARIABLE_SET_ROUTES: tuple[Route[VariableSetOptions], ...] = (
    Route(
        "update value and description",
        lambda o: bool(o.variable_id and o.value and o.description),
        lambda ctx, o: update_variable(
            ctx.client, ctx.printer, o.variable_id, o.value, o.description
        ),
        lambda ctx, o: "Updating variable...",
    ),
    Route(
        "set description",
        lambda o: bool(o.variable_id and o.description),
        lambda ctx, o: set_variable_description(ctx.client, ctx.printer, o.variable_id, o.description),
        lambda ctx, o: "Updating variable...",
    ),
    Route(
        "update value",
        lambda o: bool(o.variable_id and o.value),
        lambda ctx, o: update_variable(ctx.client, ctx.printer, o.variable_id, o.value),
        lambda ctx, o: "Updating variable...",
    ),
)

VARIABLE_LIST_ROUTES: tuple[Route[VariableListOptions], ...] = (
    Route(
        "list variables",
        lambda o: True,
        lambda ctx, o: list_variables(ctx.client, ctx.printer, o.long),
        lambda ctx, o: "Listing variables...",
    ),
)

IDP_EXPORT_ROUTES: tuple[Route[IdpExportOptions], ...] = (
    Route(
        "export by id",
        lambda o: bool(o.idp_id),
        lambda ctx, o: export_social_identity_provider_to_file(
            ctx.client, ctx.printer, o.idp_id, o.file, o.metadata
        ),
        lambda ctx, o: f'Exporting provider "{o.idp_id}" from realm "{ctx.session.realm}"...',
    ),
    Route(
        "export all to one file",
        lambda o: o.all,
        lambda ctx, o: export_social_identity_providers_to_file(
            ctx.client, ctx.printer, o.file, o.metadata
        ),
        lambda ctx, o: "Exporting all providers to a single file...",
    ),
    Route(
        "export all to separate files",
        lambda o: o.all_separate,
        lambda ctx, o: export_social_identity_providers_to_files(ctx.client, ctx.printer, o.metadata),
        lambda ctx, o: "Exporting all providers to separate files...",
    ),
)

IDP_LIST_ROUTES: tuple[Route[IdpListOptions], ...] = (
    Route(
        "list providers",
        lambda o: True,
        lambda ctx, o: list_social_identity_providers(ctx.client, ctx.printer, o.long),
        lambda ctx, o: f'Listing providers in realm "{ctx.session.realm}"...',
    ),
)

JOURNEY_LIST_ROUTES: tuple[Route[JourneyListOptions], ...] = (
    Route(
        "list journeys",
        lambda o: True,
        lambda ctx, o: list_journeys(ctx.client, ctx.printer, o.long),
        lambda ctx, o: f'Listing journeys in realm "{ctx.session.realm}"...',
    ),
)


# -- handlers ----------------------------------------------------------------------


def _run_live_command(
    *,
    args,
    config: CLIConfig,
    stdout,
    stderr,
    options_model: type[BaseModel],
    routes: Sequence[Route],
    usage_message: str,
) -> int:
    try:
        options = _command_options(options_model, args)
    except ValidationError as exc:
        return _usage_failure(args, stderr, str(exc))

    session = build_session(args, config)
    if isinstance(session, Failure):
        return _report_failure(stderr, session)

    route = select_route(routes, options)
    if route is None:
        return _usage_failure(args, stderr, usage_message)
    if not session.host:
        return _usage_failure(args, stderr, "Need [host] or a saved connection.")

    printer = Printer.for_session(session, stdout=stdout, stderr=stderr)
    client = _build_client(session, printer, config)
    if not client.get_tokens():
        return EXIT_FAILURE

    context = CommandContext(session=session, client=client, printer=printer)
    if route.progress is not None:
        printer.verbose(route.progress(context, options))
    failure = run_operation(lambda: route.action(context, options), name=route.name)
    if failure is not None:
        return _report_failure(stderr, failure)
    return EXIT_SUCCESS


def _describe_one(
    *,
    printer: Printer,
    options: JourneyDescribeOptions,
    journey: dict,
    resolver,
    am_version: str | None,
    deployment_type: str | None,
) -> object:
    describe = describe_journey_md if options.markdown else describe_journey
    return describe(
        printer,
        journey,
        resolver,
        am_version=am_version,
        deployment_type=deployment_type,
    )


def _run_journey_describe(*, args, config: CLIConfig, stdout, stderr) -> int:
    try:
        options = _command_options(JourneyDescribeOptions, args)
    except ValidationError as exc:
        return _usage_failure(args, stderr, str(exc))
    assert isinstance(options, JourneyDescribeOptions)

    session = build_session(args, config)
    if isinstance(session, Failure):
        return _report_failure(stderr, session)
    session = apply_overrides(
        session,
        am_version=options.override_version,
        output_file=options.output_file,
    )

    mode = resolve_mode(host=session.host, file=options.file)
    if isinstance(mode, Failure):
        return _usage_failure(args, stderr, mode.message)

    printer = Printer.for_session(session, stdout=stdout, stderr=stderr)

    def reset_markdown_output() -> bool:
        if not options.markdown:
            return True
        try:
            printer.reset_output_file()
        except TenantCtlError as exc:
            _print_error(stderr, "error", str(exc), code=EXIT_FAILURE)
            return False
        return True

    if mode is Mode.LOCAL_FILE:
        file = str(options.file)
        printer.verbose(f"Describing local journey file {file}...")
        try:
            file_data = load_json_file(file)
        except TenantCtlError as exc:
            return _print_error(stderr, "error", str(exc), code=EXIT_FAILURE)
        journey = resolve_journey_data(file_data, options.journey_id, file)
        if isinstance(journey, Failure):
            return _report_failure(stderr, journey)
        if not reset_markdown_output():
            return EXIT_FAILURE
        failure = run_operation(
            lambda: _describe_one(
                printer=printer,
                options=options,
                journey=journey,
                resolver=create_file_param_tree_export_resolver(file),
                am_version=session.am_version,
                deployment_type=session.deployment_type,
            ),
            name=f"describe {file}",
        )
        if failure is not None:
            return _report_failure(stderr, failure)
        return EXIT_SUCCESS

    client = _build_client(session, printer, config)
    if not client.get_tokens():
        return EXIT_FAILURE
    printer.verbose(f'Describing journey(s) in realm "{session.realm}"...')
    resolver = create_live_tree_export_resolver(client)
    deployment_type = session.resolved_deployment_type

    def describe_live(journey_id: str) -> object:
        return _describe_one(
            printer=printer,
            options=options,
            journey=export_journey(client, journey_id),
            resolver=resolver,
            am_version=client.am_version,
            deployment_type=deployment_type,
        )

    if options.journey_id is not None:
        journey_id = options.journey_id
        if not reset_markdown_output():
            return EXIT_FAILURE
        failure = run_operation(lambda: describe_live(journey_id), name=f"describe {journey_id}")
        if failure is not None:
            return _report_failure(stderr, failure)
        return EXIT_SUCCESS

    try:
        journeys = get_journeys(client)
    except TenantCtlError as exc:
        return _print_error(stderr, "error", str(exc), code=EXIT_FAILURE)
    if not reset_markdown_output():
        return EXIT_FAILURE

    exit_code = EXIT_SUCCESS
    for item in journeys:
        journey_id = str(item.get("_id"))
        failure = run_operation(
            lambda journey_id=journey_id: describe_live(journey_id),
            name=f"describe {journey_id}",
        )
        if failure is not None:
            _report_failure(stderr, failure)
            exit_code = EXIT_FAILURE
    return exit_code


def _run_conn_add(*, args, config: CLIConfig, stdout, stderr) -> int:
    try:
        options = _command_options(ConnectionAddOptions, args)
    except ValidationError as exc:
        return _usage_failure(args, stderr, str(exc))
    assert isinstance(options, ConnectionAddOptions)
    if not args.host:
        return _usage_failure(args, stderr, "Need [host] to save a connection.")

    session = build_session(args, config)
    if isinstance(session, Failure):
        return _report_failure(stderr, session)

    printer = Printer.for_session(session, stdout=stdout, stderr=stderr)
    if options.validate_connection:
        printer.verbose(f"Validating connection to {session.host}...")
        client = _build_client(session, printer, config)
        if not client.get_tokens():
            return EXIT_FAILURE

    profile = ConnectionProfile(
        host=str(session.host),
        username=session.username,
        password=session.password,
        deployment_type=session.deployment_type,
        service_account_id=session.service_account_id,
        service_account_jwk_file=args.sa_jwk_file,
    )
    try:
        path = save_connection(
            profile,
            connections_file=config.connections_file,
            master_key_file=config.master_key_file,
        )
    except ConnectionProfileError as exc:
        return _print_error(stderr, "connection error", str(exc), code=EXIT_FAILURE)
    printer.message(f"Saved connection profile {profile.host}.")
    printer.verbose(f"connections_file: {path}")
    return EXIT_SUCCESS


def _run_conn_list(*, args, config: CLIConfig, stdout, stderr) -> int:
    try:
        options = _command_options(ConnectionListOptions, args)
    except ValidationError as exc:
        return _usage_failure(args, stderr, str(exc))
    assert isinstance(options, ConnectionListOptions)
    try:
        connections = load_connections(config.connections_file)
    except ConnectionProfileError as exc:
        return _print_error(stderr, "connection error", str(exc), code=EXIT_FAILURE)

    printer = Printer(stdout=stdout, stderr=stderr)
    if not options.long:
        for host in sorted(connections):
            printer.message(host)
        return EXIT_SUCCESS

    table = new_table("Host", "Username", "Deployment", "Service Account")
    for host in sorted(connections):
        entry = connections[host]
        table.add_row(
            escape(host),
            escape(str(entry.get("username") or "")),
            escape(str(entry.get("deploymentType") or "")),
            escape(str(entry.get("svcacctId") or "")),
        )
    printer.table(table)
    return EXIT_SUCCESS


def _run_conn_delete(*, args, config: CLIConfig, stdout, stderr) -> int:
    try:
        deleted = delete_connection(args.host, connections_file=config.connections_file)
    except ConnectionProfileError as exc:
        return _print_error(stderr, "connection error", str(exc), code=EXIT_FAILURE)
    if deleted is None:
        return _print_error(
            stderr,
            "not found",
            f"no saved connection matches '{args.host}'",
            code=EXIT_FAILURE,
        )
    print(f"Deleted connection profile {deleted}.", file=stdout)
    return EXIT_SUCCESS


def _attach_command_parsers(parser: argparse.ArgumentParser) -> None:
    """Record each leaf parser on its namespace so usage failures can print its help."""
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            for child in action.choices.values():
                child.set_defaults(command_parser=child)
                _attach_command_parsers(child)


def main(argv: Sequence[str] | None = None, *, stdout=sys.stdout, stderr=sys.stderr) -> int:
    parser = _build_parser()
    _attach_command_parsers(parser)
    try:
        args = parser.parse_args(argv)
    except UsageError as exc:
        _print_error(stderr, "usage error", exc.message, code=EXIT_FAILURE)
        print(exc.parser.format_usage(), file=stderr, end="")
        return EXIT_FAILURE

    try:
        config = load_cli_config(args.config)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_FAILURE)

    if args.command == "email":
        if args.email_command == "template" and args.template_command == "list":
            return _run_live_command(
                args=args,
                config=config,
                stdout=stdout,
                stderr=stderr,
                options_model=EmailTemplateListOptions,
                routes=EMAIL_TEMPLATE_LIST_ROUTES,
                usage_message="Unrecognized combination of options or no options...",
            )

    if args.command == "esv":
        if args.esv_command == "variable" and args.variable_command == "set":
            return _run_live_command(
                args=args,
                config=config,
                stdout=stdout,
                stderr=stderr,
                options_model=VariableSetOptions,
                routes=VARIABLE_SET_ROUTES,
                usage_message="Provide --variable-id and either one or both of --value and --description.",
            )
        if args.esv_command == "variable" and args.variable_command == "list":
            return _run_live_command(
                args=args,
                config=config,
                stdout=stdout,
                stderr=stderr,
                options_model=VariableListOptions,
                routes=VARIABLE_LIST_ROUTES,
                usage_message="Unrecognized combination of options or no options...",
            )

    if args.command == "idp":
        if args.idp_command == "export":
            return _run_live_command(
                args=args,
                config=config,
                stdout=stdout,
                stderr=stderr,
                options_model=IdpExportOptions,
                routes=IDP_EXPORT_ROUTES,
                usage_message="Unrecognized combination of options or no options...",
            )
        if args.idp_command == "list":
            return _run_live_command(
                args=args,
                config=config,
                stdout=stdout,
                stderr=stderr,
                options_model=IdpListOptions,
                routes=IDP_LIST_ROUTES,
                usage_message="Unrecognized combination of options or no options...",
            )

    if args.command == "journey":
        if args.journey_command == "describe":
            return _run_journey_describe(args=args, config=config, stdout=stdout, stderr=stderr)
        if args.journey_command == "list":
            return _run_live_command(
                args=args,
                config=config,
                stdout=stdout,
                stderr=stderr,
                options_model=JourneyListOptions,
                routes=JOURNEY_LIST_ROUTES,
                usage_message="Unrecognized combination of options or no options...",
            )

    if args.command == "conn":
        if args.conn_command == "add":
            return _run_conn_add(args=args, config=config, stdout=stdout, stderr=stderr)
        if args.conn_command == "list":
            return _run_conn_list(args=args, config=config, stdout=stdout, stderr=stderr)
        if args.conn_command == "delete":
            return _run_conn_delete(args=args, config=config, stdout=stdout, stderr=stderr)

    print("unknown command", file=stderr)
    return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
