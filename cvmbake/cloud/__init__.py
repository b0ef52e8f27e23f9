"""Tencent Cloud access: signed clients, typed errors, retry, polling, zones."""

from cvmbake.cloud.client import Credentials, CvmClient, VpcClient
from cvmbake.cloud.retry import DEFAULT_POLICY, RetryPolicy, retry
from cvmbake.cloud.wait import wait_for_image, wait_for_instance
from cvmbake.cloud.zones import candidate_zones

__all__ = [
    "Credentials",
    "CvmClient",
    "VpcClient",
    "RetryPolicy",
    "DEFAULT_POLICY",
    "retry",
    "wait_for_instance",
    "wait_for_image",
    "candidate_zones",
]
