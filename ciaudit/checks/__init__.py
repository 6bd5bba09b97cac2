from .azure import run_azure_report
from .ci_status import audit_default_branch, audit_open_pull_requests, dedupe_statuses

__all__ = ["run_azure_report", "audit_default_branch", "audit_open_pull_requests", "dedupe_statuses"]
