from __future__ import annotations

import io
import json

from tenantctl.console import Printer
from tenantctl.errors import Failure, FailureKind, PlatformRequestError
from tenantctl.ops.journeys import (
    FAILURE_NODE_ID,
    SUCCESS_NODE_ID,
    build_journey_summary,
    classify_node_type,
    create_file_param_tree_export_resolver,
    create_live_tree_export_resolver,
    describe_journey,
    describe_journey_md,
    export_journey,
    list_journeys,
    resolve_journey_data,
)
from tenantctl.session import SessionContext


def _login_export() -> dict:
    return {
        "meta": {"originAmVersion": "7.3.0"},
        "tree": {
            "_id": "Login",
            "identityResource": "managed/alpha_user",
            "entryNodeId": "page",
            "nodes": {
                "page": {
                    "displayName": "Sign In",
                    "nodeType": "PageNode",
                    "connections": {"outcome": "inner"},
                },
                "inner": {
                    "displayName": "MFA",
                    "nodeType": "InnerTreeEvaluatorNode",
                    "connections": {"true": SUCCESS_NODE_ID, "false": FAILURE_NODE_ID},
                },
            },
        },
        "nodes": {
            "page": {"_id": "page", "_type": {"_id": "PageNode"}, "nodes": []},
            "inner": {"_id": "inner", "_type": {"_id": "InnerTreeEvaluatorNode"}, "tree": "MFA"},
        },
        "innerNodes": {
            "user": {"_id": "user", "_type": {"_id": "ValidatedUsernameNode"}},
        },
        "scripts": {},
        "emailTemplates": {},
        "socialIdentityProviders": {},
    }


def test_resolve_journey_data_search_order() -> None:
    a = {"tree": {"_id": "A"}}
    b = {"tree": {"_id": "B"}}
    multi = {"trees": {"A": a, "B": b}}
    assert resolve_journey_data(multi, "B", "f.json") is b
    assert resolve_journey_data(multi, None, "f.json") is a

    single = {"tree": {"_id": "Login"}}
    assert resolve_journey_data(single, "Login", "f.json") is single
    assert resolve_journey_data(single, None, "f.json") is single
    assert resolve_journey_data(single, "Other", "f.json") == Failure(
        FailureKind.NOT_FOUND, "Journey 'Other' not found in f.json"
    )
    assert resolve_journey_data({"trees": {}}, None, "f.json") == Failure(
        FailureKind.NOT_FOUND, "No journey found in f.json"
    )
    assert isinstance(resolve_journey_data(multi, "C", "f.json"), Failure)


def test_classify_node_type() -> None:
    assert classify_node_type("UsernameCollectorNode") == "standard"
    assert classify_node_type("MyCustomNode") == "custom"


def test_summary_counts_nodes_and_resolves_inner_journeys(tmp_path) -> None:
    mfa = {"tree": {"_id": "MFA", "nodes": {}}, "nodes": {}}
    file = tmp_path / "all.journeys.json"
    file.write_text(json.dumps({"trees": {"Login": _login_export(), "MFA": mfa}}), encoding="utf-8")

    summary = build_journey_summary(
        _login_export(),
        create_file_param_tree_export_resolver(str(file)),
    )
    assert summary.journey_id == "Login"
    assert summary.am_version == "7.3.0"
    assert len(summary.nodes) == 3
    assert summary.node_type_counts["PageNode"] == 1
    assert [(inner.name, inner.found) for inner in summary.inner_journeys] == [("MFA", True)]


def test_summary_marks_missing_inner_journey() -> None:
    summary = build_journey_summary(_login_export(), lambda tree_id: None, am_version="7.2.0")
    assert summary.am_version == "7.2.0"
    assert [(inner.name, inner.found) for inner in summary.inner_journeys] == [("MFA", False)]


def test_describe_journey_text() -> None:
    out = io.StringIO()
    describe_journey(Printer(stdout=out, stderr=io.StringIO()), _login_export())
    text = out.getvalue()
    assert "Journey Name: Login" in text
    assert "Identity Resource: managed/alpha_user" in text
    assert "1 x PageNode" in text
    assert "MFA (missing)" in text


def test_describe_journey_markdown_flowchart() -> None:
    out = io.StringIO()
    describe_journey_md(Printer(stdout=out, stderr=io.StringIO()), _login_export())
    text = out.getvalue()
    assert text.startswith("# Login - Journey")
    assert "```mermaid" in text
    assert "start --> n1" in text
    assert '-->|"true"| success' in text
    assert "| Sign In | PageNode | standard | `page` |" in text


class _TreeClient:
    def __init__(self) -> None:
        self.session = SessionContext(host="https://am.example.com/am", username="amadmin")
        self.printer = None
        self.am_version = "7.3.0"

    def get_tree(self, tree_id: str) -> dict:
        if tree_id != "Login":
            raise PlatformRequestError("not found", status_code=404)
        return {
            "_id": "Login",
            "_rev": "1",
            "nodes": {
                "page": {"nodeType": "PageNode"},
                "script": {"nodeType": "ScriptedDecisionNode"},
            },
        }

    def get_node(self, node_type: str, node_id: str) -> dict:
        if node_id == "page":
            return {
                "_id": "page",
                "_type": {"_id": "PageNode"},
                "nodes": [{"_id": "mail", "nodeType": "EmailSuspendNode"}],
            }
        if node_id == "mail":
            return {"_id": "mail", "_type": {"_id": "EmailSuspendNode"}, "emailTemplateName": "welcome"}
        return {"_id": node_id, "_type": {"_id": node_type}, "script": "script-1"}

    def get_script(self, script_id: str) -> dict:
        return {"_id": script_id, "_rev": "3", "name": "Decide"}

    def get_email_template(self, template_id: str) -> dict:
        raise PlatformRequestError("gone", status_code=404)

    def get_social_identity_providers(self) -> list[dict]:
        return []


def test_export_journey_collects_dependencies() -> None:
    export = export_journey(_TreeClient(), "Login")
    assert export["tree"]["_id"] == "Login"
    assert "_rev" not in export["tree"]
    assert set(export["nodes"]) == {"page", "script"}
    assert set(export["innerNodes"]) == {"mail"}
    assert export["scripts"] == {"script-1": {"_id": "script-1", "name": "Decide"}}
    assert export["emailTemplates"] == {}
    assert export["meta"]["originAmVersion"] == "7.3.0"


def test_live_resolver_returns_none_for_missing_tree() -> None:
    resolve = create_live_tree_export_resolver(_TreeClient())
    assert resolve("Missing") is None
    assert resolve("Login")["tree"]["_id"] == "Login"


def test_list_journeys_short() -> None:
    class _Client:
        def get_trees(self):
            return [{"_id": "Registration"}, {"_id": "Login"}]

    out = io.StringIO()
    assert list_journeys(_Client(), Printer(stdout=out, stderr=io.StringIO())) is True
    assert out.getvalue().splitlines() == ["Login", "Registration"]
