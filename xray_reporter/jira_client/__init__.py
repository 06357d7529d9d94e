"""
Jira Xray Client Module.

Provides integration with the Jira Xray REST API for:
- Checking the configured credentials.
- Grouping run outcomes by Test Plan.
- Importing execution results (Xray JSON) per group.
"""

from xray_reporter.jira_client.partitioner import DuplicateKeyError, PartitionError, partition
from xray_reporter.jira_client.result_reporter import (
    ExecutionReporter,
    GroupSubmission,
    SubmissionRecord,
    TestRow,
    build_submission,
)
from xray_reporter.jira_client.sync import SyncState, TrackerSync
from xray_reporter.jira_client.xray_client import (
    AuthError,
    BadRequestError,
    ExecutionReceipt,
    Identity,
    InvalidEndpointError,
    MissingCredentialsError,
    RemoteError,
    SubmitError,
    TrackerConfigError,
    TrackerConnectionError,
    UnauthorizedError,
    XrayClient,
    XrayClientError,
)

__all__ = [
    "AuthError",
    "BadRequestError",
    "DuplicateKeyError",
    "ExecutionReceipt",
    "ExecutionReporter",
    "GroupSubmission",
    "Identity",
    "InvalidEndpointError",
    "MissingCredentialsError",
    "PartitionError",
    "RemoteError",
    "SubmissionRecord",
    "SubmitError",
    "SyncState",
    "TestRow",
    "TrackerConfigError",
    "TrackerConnectionError",
    "TrackerSync",
    "UnauthorizedError",
    "XrayClient",
    "XrayClientError",
    "build_submission",
    "partition",
]
