"""Journey (authentication tree) export and description.

A single-journey export document has the shape::

    {
        "meta": {...},
        "innerNodes": {"<node id>": {...}},
        "nodes": {"<node id>": {...}},
        "scripts": {"<script id>": {...}},
        "emailTemplates": {"<template name>": {...}},
        "socialIdentityProviders": {"<provider id>": {...}},
        "themes": [],
        "saml2Entities": {},
        "circlesOfTrust": {},
        "tree": {"_id": "<journey name>", "nodes": {...}, ...}
    }

A multi-journey export wraps several of these under ``{"trees": {id: ...}}``.
"""

from __future__ import annotations

import base64
import binascii
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from rich.markup import escape

from tenantctl.client import PlatformClient
from tenantctl.console import Printer, new_table
from tenantctl.errors import Failure, FailureKind, PlatformRequestError
from tenantctl.exports import build_metadata, load_json_file

START_NODE_ID = "startNode"
SUCCESS_NODE_ID = "70e691a5-1e33-4ac3-a356-e7b6d60d92e0"
FAILURE_NODE_ID = "e301438c-0bd0-429c-ab0c-66126501069a"

CONTAINER_NODE_TYPES = frozenset({"PageNode", "CustomPageNode"})
SCRIPT_NODE_TYPES = frozenset(
    {"ScriptedDecisionNode", "ConfigProviderNode", "ClientScriptNode", "DeviceMatchNode"}
)
EMAIL_NODE_TYPES = frozenset({"EmailSuspendNode", "EmailTemplateNode"})
SOCIAL_NODE_TYPES = frozenset({"SocialProviderHandlerNode", "SelectIdPNode"})
INNER_TREE_NODE_TYPE = "InnerTreeEvaluatorNode"

PREMIUM_NODE_TYPES = frozenset(
    {"AutonomousAccessSignalNode", "AutonomousAccessDecisionNode", "AutonomousAccessResultNode"}
)
CLOUD_ONLY_NODE_TYPES = frozenset(
    {
        "IdentityAssertionNode",
        "ProductReCaptchaEnterpriseNode",
        "product-ReCaptchaEnterpriseNode",
        "PingOneVerifyCompletionDecisionNode",
        "PingOneVerifyEvaluationNode",
        "PingOneVerifyUserNode",
        "PingOneVerifyProofNode",
    }
)
STANDARD_NODE_TYPES = frozenset(
    {
        "AccountActiveDecisionNode",
        "AccountLockoutNode",
        "AgentDataStoreDecisionNode",
        "AttributeCollectorNode",
        "AttributePresentDecisionNode",
        "AuthLevelDecisionNode",
        "ChoiceCollectorNode",
        "ConsentNode",
        "CookiePresenceDecisionNode",
        "CreateObjectNode",
        "CreatePasswordNode",
        "DataStoreDecisionNode",
        "DeviceProfileCollectorNode",
        "EmailSuspendNode",
        "EmailTemplateNode",
        "IdentifyExistingUserNode",
        "IncrementLoginCountNode",
        "InnerTreeEvaluatorNode",
        "KbaCreateNode",
        "KbaDecisionNode",
        "KbaVerifyNode",
        "MessageNode",
        "OneTimePasswordGeneratorNode",
        "OneTimePasswordSmtpSenderNode",
        "OneTimePasswordCollectorDecisionNode",
        "PageNode",
        "PassthroughAuthenticationNode",
        "PasswordCollectorNode",
        "PatchObjectNode",
        "PersistentCookieDecisionNode",
        "PollingWaitNode",
        "ProfileCompletenessDecisionNode",
        "ProvisionDynamicAccountNode",
        "ProvisionIdmAccountNode",
        "QueryFilterDecisionNode",
        "RequiredAttributesDecisionNode",
        "RetryLimitDecisionNode",
        "ScriptedDecisionNode",
        "SelectIdPNode",
        "SetPersistentCookieNode",
        "SetSessionPropertiesNode",
        "SocialProviderHandlerNode",
        "TermsAndConditionsDecisionNode",
        "TimeSinceDecisionNode",
        "UpdatePasswordNode",
        "UsernameCollectorNode",
        "ValidatedPasswordNode",
        "ValidatedUsernameNode",
        "WebAuthnAuthenticationNode",
        "WebAuthnRegistrationNode",
        "ZeroPageLoginNode",
    }
)

TreeExportResolver = Callable[[str], Optional[dict]]


def node_type_of(node: dict) -> str:
    node_type = node.get("_type")
    if isinstance(node_type, dict) and isinstance(node_type.get("_id"), str):
        return node_type["_id"]
    return str(node.get("nodeType", "unknown"))


def classify_node_type(node_type: str) -> str:
    if node_type in PREMIUM_NODE_TYPES:
        return "premium"
    if node_type in CLOUD_ONLY_NODE_TYPES:
        return "cloud"
    if node_type in STANDARD_NODE_TYPES:
        return "standard"
    return "custom"


def _strip_revision(item: dict) -> dict:
    return {key: value for key, value in item.items() if key != "_rev"}


# -- export ------------------------------------------------------------------


def get_journeys(client: PlatformClient) -> list[dict]:
    return sorted(client.get_trees(), key=lambda item: str(item.get("_id", "")))


def _fetch_optional(client: PlatformClient, fetch: Callable[[], dict], what: str) -> dict | None:
    try:
        return _strip_revision(fetch())
    except PlatformRequestError as exc:
        if exc.status_code != 404:
            raise
        if client.printer is not None:
            client.printer.verbose(f"{what} not found; skipped.")
        return None


def _collect_dependencies(client: PlatformClient, export: dict[str, Any], node: dict) -> None:
    node_type = node_type_of(node)
    script_id = node.get("script")
    if node_type in SCRIPT_NODE_TYPES and isinstance(script_id, str) and script_id:
        if script_id not in export["scripts"]:
            script = _fetch_optional(client, lambda: client.get_script(script_id), f"script {script_id}")
            if script is not None:
                export["scripts"][script_id] = script

    template_name = node.get("emailTemplateName")
    if node_type in EMAIL_NODE_TYPES and isinstance(template_name, str) and template_name:
        if template_name not in export["emailTemplates"]:
            template = _fetch_optional(
                client,
                lambda: client.get_email_template(template_name),
                f"email template {template_name}",
            )
            if template is not None:
                export["emailTemplates"][template_name] = template

    if node_type in SOCIAL_NODE_TYPES and not export["socialIdentityProviders"]:
        for provider in client.get_social_identity_providers():
            export["socialIdentityProviders"][str(provider.get("_id"))] = _strip_revision(provider)


def export_journey(client: PlatformClient, journey_id: str) -> dict[str, Any]:
    tree = _strip_revision(client.get_tree(journey_id))
    export: dict[str, Any] = {
        "meta": build_metadata(client.session, am_version=client.am_version),
        "innerNodes": {},
        "nodes": {},
        "scripts": {},
        "emailTemplates": {},
        "socialIdentityProviders": {},
        "themes": [],
        "saml2Entities": {},
        "circlesOfTrust": {},
        "tree": tree,
    }
    for node_id, info in (tree.get("nodes") or {}).items():
        node = _strip_revision(client.get_node(str(info.get("nodeType")), node_id))
        export["nodes"][node_id] = node
        _collect_dependencies(client, export, node)
        if node_type_of(node) not in CONTAINER_NODE_TYPES:
            continue
        for child in node.get("nodes") or []:
            child_id = str(child.get("_id"))
            inner = _strip_revision(client.get_node(str(child.get("nodeType")), child_id))
            export["innerNodes"][child_id] = inner
            _collect_dependencies(client, export, inner)
    return export


def list_journeys(client: PlatformClient, printer: Printer, long: bool = False) -> bool:
    journeys = get_journeys(client)
    if not long:
        for journey in journeys:
            printer.message(str(journey.get("_id", "")))
        return True

    table = new_table("Name", "Status", "Nodes", "Identity Resource", "Description")
    for journey in journeys:
        status = "enabled" if journey.get("enabled", True) else "disabled"
        table.add_row(
            escape(str(journey.get("_id", ""))),
            status,
            str(len(journey.get("nodes") or {})),
            escape(str(journey.get("identityResource") or "")),
            escape(str(journey.get("description") or "")),
        )
    printer.table(table)
    return True


# -- resolution of export files ------------------------------------------------


def find_tree_export(file_data: Any, tree_id: str) -> dict | None:
    if not isinstance(file_data, dict):
        return None
    trees = file_data.get("trees")
    if isinstance(trees, dict) and isinstance(trees.get(tree_id), dict):
        return trees[tree_id]
    tree = file_data.get("tree")
    if isinstance(tree, dict) and tree.get("_id") == tree_id:
        return file_data
    return None


def create_file_param_tree_export_resolver(file: str) -> TreeExportResolver:
    """Resolve inner journeys against the export file being described."""
    cache: dict[str, Any] = {}

    def resolve(tree_id: str) -> dict | None:
        if "data" not in cache:
            cache["data"] = load_json_file(file)
        return find_tree_export(cache["data"], tree_id)

    return resolve


def create_live_tree_export_resolver(client: PlatformClient) -> TreeExportResolver:
    def resolve(tree_id: str) -> dict | None:
        try:
            return export_journey(client, tree_id)
        except PlatformRequestError as exc:
            if exc.status_code == 404:
                return None
            raise

    return resolve


def resolve_journey_data(file_data: Any, journey_id: str | None, file: str) -> dict | Failure:
    """Pick the journey to describe out of a single- or multi-journey export.

    Multi-journey documents are searched first (by id, or the first entry when
    no id is given); a single-journey document matches when its ``tree._id``
    equals the id, or unconditionally when no id is given.
    """
    data = file_data if isinstance(file_data, dict) else {}
    trees = data.get("trees")
    tree = data.get("tree")
    tree_id = tree.get("_id") if isinstance(tree, dict) else None

    if journey_id is not None and isinstance(trees, dict) and isinstance(trees.get(journey_id), dict):
        return trees[journey_id]
    if journey_id is None and isinstance(trees, dict) and trees:
        return next(iter(trees.values()))
    if journey_id is not None and journey_id == tree_id:
        return data
    if journey_id is None and tree_id:
        return data
    if journey_id is None:
        return Failure(FailureKind.NOT_FOUND, f"No journey found in {file}")
    return Failure(FailureKind.NOT_FOUND, f"Journey '{journey_id}' not found in {file}")


# -- description ---------------------------------------------------------------


@dataclass(frozen=True)
class NodeSummary:
    node_id: str
    display_name: str
    node_type: str
    classification: str


@dataclass(frozen=True)
class InnerJourney:
    name: str
    depth: int
    found: bool


@dataclass
class JourneySummary:
    journey_id: str
    description: str
    enabled: bool
    identity_resource: str
    am_version: str | None
    nodes: list[NodeSummary] = field(default_factory=list)
    node_type_counts: dict[str, int] = field(default_factory=dict)
    inner_journeys: list[InnerJourney] = field(default_factory=list)
    scripts: list[dict] = field(default_factory=list)
    email_templates: list[str] = field(default_factory=list)
    social_providers: list[str] = field(default_factory=list)
    incompatible_nodes: list[NodeSummary] = field(default_factory=list)


def _inner_tree_names(journey: dict) -> list[str]:
    names: list[str] = []
    for node in (journey.get("nodes") or {}).values():
        if node_type_of(node) == INNER_TREE_NODE_TYPE and isinstance(node.get("tree"), str):
            names.append(node["tree"])
    return sorted(set(names))


def _walk_inner_journeys(
    journey: dict,
    resolver: TreeExportResolver | None,
    *,
    depth: int,
    seen: set[str],
) -> list[InnerJourney]:
    found: list[InnerJourney] = []
    for name in _inner_tree_names(journey):
        inner = resolver(name) if resolver is not None else None
        found.append(InnerJourney(name=name, depth=depth, found=inner is not None))
        if inner is not None and name not in seen:
            seen.add(name)
            found.extend(_walk_inner_journeys(inner, resolver, depth=depth + 1, seen=seen))
    return found


def build_journey_summary(
    journey: dict,
    resolver: TreeExportResolver | None = None,
    *,
    am_version: str | None = None,
    deployment_type: str | None = None,
) -> JourneySummary:
    tree = journey.get("tree") or {}
    journey_id = str(tree.get("_id", ""))
    tree_nodes = tree.get("nodes") or {}
    all_nodes: dict[str, dict] = {}
    all_nodes.update(journey.get("nodes") or {})
    all_nodes.update(journey.get("innerNodes") or {})

    summary = JourneySummary(
        journey_id=journey_id,
        description=str(tree.get("description") or ""),
        enabled=bool(tree.get("enabled", True)),
        identity_resource=str(tree.get("identityResource") or ""),
        am_version=am_version or (journey.get("meta") or {}).get("originAmVersion"),
    )

    for node_id, node in all_nodes.items():
        node_type = node_type_of(node)
        display_name = (tree_nodes.get(node_id) or {}).get("displayName") or node.get(
            "displayName"
        ) or node_id
        summary.nodes.append(
            NodeSummary(
                node_id=node_id,
                display_name=str(display_name),
                node_type=node_type,
                classification=classify_node_type(node_type),
            )
        )
    summary.nodes.sort(key=lambda item: (item.node_type, item.display_name, item.node_id))
    summary.node_type_counts = dict(sorted(Counter(n.node_type for n in summary.nodes).items()))

    summary.inner_journeys = _walk_inner_journeys(
        journey, resolver, depth=0, seen={journey_id}
    )
    summary.scripts = sorted(
        (journey.get("scripts") or {}).values(), key=lambda item: str(item.get("name", ""))
    )
    summary.email_templates = sorted(journey.get("emailTemplates") or {})
    summary.social_providers = sorted(journey.get("socialIdentityProviders") or {})

    if deployment_type is not None and deployment_type != "cloud":
        summary.incompatible_nodes = [
            node for node in summary.nodes if node.classification in ("cloud", "premium")
        ]
    return summary


def describe_journey(
    printer: Printer,
    journey: dict,
    resolver: TreeExportResolver | None = None,
    *,
    am_version: str | None = None,
    deployment_type: str | None = None,
) -> JourneySummary:
    summary = build_journey_summary(
        journey, resolver, am_version=am_version, deployment_type=deployment_type
    )
    printer.styled(f"[bold]Journey Name:[/bold] {escape(summary.journey_id)}")
    printer.styled(f"[bold]Enabled:[/bold] {str(summary.enabled).lower()}")
    if summary.identity_resource:
        printer.styled(f"[bold]Identity Resource:[/bold] {escape(summary.identity_resource)}")
    if summary.description:
        printer.styled(f"[bold]Description:[/bold] {escape(summary.description)}")
    if summary.am_version:
        printer.styled(f"[bold]AM Version:[/bold] {escape(summary.am_version)}")

    printer.styled(f"[bold]Nodes ({len(summary.nodes)}):[/bold]")
    for node_type, count in summary.node_type_counts.items():
        printer.styled(f"- {count} x {escape(node_type)} ({classify_node_type(node_type)})")

    if summary.inner_journeys:
        printer.styled(f"[bold]Inner Journeys ({len(summary.inner_journeys)}):[/bold]")
        for inner in summary.inner_journeys:
            marker = "" if inner.found else " [red](missing)[/red]"
            printer.styled(f"{'  ' * inner.depth}- {escape(inner.name)}{marker}")

    if summary.scripts:
        printer.styled(f"[bold]Scripts ({len(summary.scripts)}):[/bold]")
        for script in summary.scripts:
            language = str(script.get("language") or "").lower()
            line = f"- {escape(str(script.get('name', script.get('_id', ''))))}"
            if language:
                line += f" ({escape(language)})"
            if script.get("description"):
                line += f": {escape(str(script['description']))}"
            printer.styled(line)

    if summary.email_templates:
        printer.styled(f"[bold]Email Templates ({len(summary.email_templates)}):[/bold]")
        for name in summary.email_templates:
            printer.styled(f"- {escape(name)}")

    if summary.social_providers:
        printer.styled(f"[bold]Social Identity Providers ({len(summary.social_providers)}):[/bold]")
        for name in summary.social_providers:
            printer.styled(f"- {escape(name)}")

    if summary.incompatible_nodes:
        printer.styled(
            f"[bold yellow]Compatibility:[/bold yellow] {len(summary.incompatible_nodes)} "
            "node(s) are only available in cloud deployments"
        )
        for node in summary.incompatible_nodes:
            printer.styled(
                f"- {escape(node.display_name)} ({escape(node.node_type)}, {node.classification})"
            )
    printer.result("")
    return summary


def _mermaid_label(text: str) -> str:
    return text.replace('"', "#quot;")


def _journey_flowchart(journey: dict) -> list[str]:
    tree = journey.get("tree") or {}
    tree_nodes = tree.get("nodes") or {}
    ids = {START_NODE_ID: "start", SUCCESS_NODE_ID: "success", FAILURE_NODE_ID: "failure"}
    for index, node_id in enumerate(sorted(tree_nodes)):
        ids[node_id] = f"n{index}"

    lines = ["```mermaid", "flowchart LR", "  start((Start))"]
    for node_id in sorted(tree_nodes):
        info = tree_nodes[node_id]
        label = _mermaid_label(str(info.get("displayName") or info.get("nodeType") or node_id))
        lines.append(f'  {ids[node_id]}["{label}"]')
    lines.append("  success((Success))")
    lines.append("  failure((Failure))")

    entry = tree.get("entryNodeId")
    if isinstance(entry, str) and entry in ids:
        lines.append(f"  start --> {ids[entry]}")
    for node_id in sorted(tree_nodes):
        connections = tree_nodes[node_id].get("connections") or {}
        for outcome, target in sorted(connections.items()):
            if target in ids:
                lines.append(f'  {ids[node_id]} -->|"{_mermaid_label(outcome)}"| {ids[target]}')
    lines.append("```")
    return lines


def _script_source(script: dict) -> str:
    source = script.get("script")
    if isinstance(source, list):
        return "\n".join(str(line) for line in source)
    if not isinstance(source, str):
        return ""
    try:
        return base64.b64decode(source, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return source


def describe_journey_md(
    printer: Printer,
    journey: dict,
    resolver: TreeExportResolver | None = None,
    *,
    am_version: str | None = None,
    deployment_type: str | None = None,
) -> JourneySummary:
    summary = build_journey_summary(
        journey, resolver, am_version=am_version, deployment_type=deployment_type
    )
    out = printer.result
    out(f"# {summary.journey_id} - Journey")
    if summary.description:
        out("")
        out(summary.description)
    out("")
    out("## Properties")
    out("")
    out("| Property | Value |")
    out("| --- | --- |")
    out(f"| Enabled | {str(summary.enabled).lower()} |")
    if summary.identity_resource:
        out(f"| Identity Resource | `{summary.identity_resource}` |")
    if summary.am_version:
        out(f"| AM Version | {summary.am_version} |")
    out("")
    out("## Flow")
    out("")
    for line in _journey_flowchart(journey):
        out(line)
    out("")
    out(f"## Nodes ({len(summary.nodes)})")
    out("")
    out("| Display Name | Type | Class | Id |")
    out("| --- | --- | --- | --- |")
    for node in summary.nodes:
        out(f"| {node.display_name} | {node.node_type} | {node.classification} | `{node.node_id}` |")

    if summary.inner_journeys:
        out("")
        out(f"## Inner Journeys ({len(summary.inner_journeys)})")
        out("")
        for inner in summary.inner_journeys:
            suffix = "" if inner.found else " (missing)"
            out(f"{'  ' * inner.depth}- {inner.name}{suffix}")

    if summary.scripts:
        out("")
        out(f"## Scripts ({len(summary.scripts)})")
        for script in summary.scripts:
            language = str(script.get("language") or "").lower()
            out("")
            out(f"### {script.get('name', script.get('_id', ''))}")
            if script.get("description"):
                out("")
                out(str(script["description"]))
            out("")
            out(f"```{language}")
            out(_script_source(script))
            out("```")

    if summary.email_templates:
        out("")
        out(f"## Email Templates ({len(summary.email_templates)})")
        out("")
        for name in summary.email_templates:
            out(f"- {name}")

    if summary.social_providers:
        out("")
        out(f"## Social Identity Providers ({len(summary.social_providers)})")
        out("")
        for name in summary.social_providers:
            out(f"- {name}")

    if summary.incompatible_nodes:
        out("")
        out("## Compatibility")
        out("")
        for node in summary.incompatible_nodes:
            out(f"- {node.display_name} ({node.node_type}) requires a {node.classification} deployment")
    out("")
    return summary
