"""tenantctl public surface."""

from tenantctl.client import PlatformClient
from tenantctl.errors import (
    AuthenticationError,
    ExportError,
    Failure,
    FailureKind,
    PlatformRequestError,
    PlatformUnavailableError,
    ServiceAccountKeyError,
    TenantCtlError,
    UnsupportedDeploymentError,
)
from tenantctl.exports import build_metadata, load_json_file, save_json_to_file
from tenantctl.session import DEPLOYMENT_TYPES, SessionContext, infer_deployment_type

__all__ = [
    "TenantCtlError",
    "PlatformUnavailableError",
    "PlatformRequestError",
    "AuthenticationError",
    "ServiceAccountKeyError",
    "UnsupportedDeploymentError",
    "ExportError",
    "Failure",
    "FailureKind",
    "PlatformClient",
    "SessionContext",
    "DEPLOYMENT_TYPES",
    "infer_deployment_type",
    "build_metadata",
    "load_json_file",
    "save_json_to_file",
]
