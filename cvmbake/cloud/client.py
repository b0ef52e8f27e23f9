"""Tencent Cloud API 3.0 clients for the CVM and VPC services.

Every call is a signed JSON ``POST`` to ``https://<service>.tencentcloudapi.com/``.
Provider error envelopes are raised as the typed hierarchy in
``cvmbake.cloud.errors``; nothing here retries (see ``cvmbake.cloud.retry``).
"""

import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from cvmbake.cloud.errors import error_from_response
from cvmbake.cloud.types import Image, Instance, Subnet, ZoneOffer

logger = logging.getLogger(__name__)

API_VERSION = "2017-03-12"
CONTENT_TYPE = "application/json; charset=utf-8"
SIGN_ALGORITHM = "TC3-HMAC-SHA256"
DEFAULT_TIMEOUT = 60


@dataclass(frozen=True)
class Credentials:
    secret_id: str
    secret_key: str
    token: str = ""


# ── Request signing ────────────────────────────────────────────────


def _sha256_hex(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def tc3_authorization(credentials: Credentials, service: str, host: str, payload: str, timestamp: int) -> str:
    """Build the TC3-HMAC-SHA256 ``Authorization`` header value.

    Only ``content-type`` and ``host`` are signed, which is what the API
    requires for JSON POST requests.
    """
    date = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
    signed_headers = "content-type;host"
    canonical_headers = f"content-type:{CONTENT_TYPE}\nhost:{host}\n"
    canonical_request = "\n".join(["POST", "/", "", canonical_headers, signed_headers, _sha256_hex(payload)])

    credential_scope = f"{date}/{service}/tc3_request"
    string_to_sign = "\n".join([SIGN_ALGORITHM, str(timestamp), credential_scope, _sha256_hex(canonical_request)])

    secret_date = _hmac_sha256(f"TC3{credentials.secret_key}".encode("utf-8"), date)
    secret_service = _hmac_sha256(secret_date, service)
    secret_signing = _hmac_sha256(secret_service, "tc3_request")
    signature = hmac.new(secret_signing, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    return (
        f"{SIGN_ALGORITHM} Credential={credentials.secret_id}/{credential_scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )


def _filters(**named):
    """Turn keyword filters into the API's ``[{"Name": ..., "Values": [...]}]`` list.

    Keyword underscores become dashes (``subnet_name`` -> ``subnet-name``);
    ``None`` values are skipped.
    """
    return [
        {"Name": name.replace("_", "-"), "Values": list(values)}
        for name, values in named.items()
        if values is not None
    ]


# ── Base client ────────────────────────────────────────────────────


class TencentCloudClient:
    """Signed JSON-over-HTTPS client for one Tencent Cloud service."""

    service = ""
    version = API_VERSION

    def __init__(self, credentials: Credentials, region: str, http_client: httpx.AsyncClient | None = None, endpoint=None, timeout=DEFAULT_TIMEOUT):
        self.credentials = credentials
        self.region = region
        self.host = endpoint or f"{self.service}.tencentcloudapi.com"
        self.timeout = timeout
        self._http_client = http_client

    def _headers(self, action: str, payload: str, timestamp: int) -> dict:
        headers = {
            "Authorization": tc3_authorization(self.credentials, self.service, self.host, payload, timestamp),
            "Content-Type": CONTENT_TYPE,
            "Host": self.host,
            "X-TC-Action": action,
            "X-TC-Version": self.version,
            "X-TC-Timestamp": str(timestamp),
            "X-TC-Region": self.region,
        }
        if self.credentials.token:
            headers["X-TC-Token"] = self.credentials.token
        return headers

    async def _post(self, url, content, headers):
        if self._http_client is not None:
            return await self._http_client.post(url, content=content, headers=headers, timeout=self.timeout)
        async with httpx.AsyncClient() as client:
            return await client.post(url, content=content, headers=headers, timeout=self.timeout)

    async def call(self, action: str, params: dict | None = None) -> dict:
        """Invoke *action* and return the ``Response`` object.

        Raises:
            TencentCloudError: a subclass chosen by ``error_from_response``.
                Transport failures and non-200 statuses are raised as
                transient ``ClientError.*`` errors.
        """
        payload = json.dumps(params or {}, separators=(",", ":"))
        headers = self._headers(action, payload, int(time.time()))
        url = f"https://{self.host}/"
        logger.debug(f"{self.service}.{action} {payload}")

        try:
            resp = await self._post(url, payload.encode("utf-8"), headers)
        except httpx.TransportError as e:
            raise error_from_response("ClientError.NetworkError", f"{action}: {e}") from e

        if resp.status_code != 200:
            raise error_from_response("ClientError.HttpStatusCodeError", f"{action}: HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            body = resp.json().get("Response", {})
        except (ValueError, AttributeError) as e:
            raise error_from_response("ClientError.ParseError", f"{action}: malformed response: {resp.text[:200]}") from e
        error = body.get("Error")
        if error:
            raise error_from_response(error.get("Code", ""), error.get("Message", ""), body.get("RequestId", ""))
        return body


# ── CVM ────────────────────────────────────────────────────────────


class CvmClient(TencentCloudClient):
    """Compute: zones, instances, key pairs and images."""

    service = "cvm"

    async def describe_zone_instance_config_infos(self, instance_type, charge_type) -> list[ZoneOffer]:
        body = await self.call(
            "DescribeZoneInstanceConfigInfos",
            {"Filters": _filters(instance_type=[instance_type], instance_charge_type=[charge_type])},
        )
        return [ZoneOffer.from_api(z) for z in body.get("InstanceTypeQuotaSet", [])]

    async def run_instances(self, request: dict) -> list[str]:
        body = await self.call("RunInstances", request)
        return body.get("InstanceIdSet", [])

    async def describe_instances(self, instance_ids) -> list[Instance]:
        body = await self.call("DescribeInstances", {"InstanceIds": list(instance_ids)})
        return [Instance.from_api(i) for i in body.get("InstanceSet", [])]

    async def stop_instances(self, instance_ids, stop_type="SOFT_FIRST"):
        await self.call("StopInstances", {"InstanceIds": list(instance_ids), "StopType": stop_type})

    async def terminate_instances(self, instance_ids):
        await self.call("TerminateInstances", {"InstanceIds": list(instance_ids)})

    async def create_key_pair(self, name, project_id=0) -> tuple[str, str]:
        """Create a key pair. Returns ``(key_id, private_key)``."""
        body = await self.call("CreateKeyPair", {"KeyName": name, "ProjectId": project_id})
        key_pair = body["KeyPair"]
        return key_pair["KeyId"], key_pair.get("PrivateKey", "")

    async def delete_key_pairs(self, key_ids):
        await self.call("DeleteKeyPairs", {"KeyIds": list(key_ids)})

    async def disassociate_instances_key_pairs(self, instance_ids, key_ids, force_stop=False):
        await self.call(
            "DisassociateInstancesKeyPairs",
            {"InstanceIds": list(instance_ids), "KeyIds": list(key_ids), "ForceStop": force_stop},
        )

    async def describe_images(self, image_ids=None, image_name=None, image_type=None) -> list[Image]:
        params = {"Limit": 100}
        if image_ids:
            params["ImageIds"] = list(image_ids)
        else:
            params["Filters"] = _filters(
                image_name=[image_name] if image_name else None,
                image_type=[image_type] if image_type else None,
            )
        body = await self.call("DescribeImages", params)
        return [Image.from_api(i) for i in body.get("ImageSet", [])]

    async def create_image(self, instance_id, image_name, description="", force_poweroff=False, tags=None) -> str:
        params = {
            "InstanceId": instance_id,
            "ImageName": image_name,
            "ForcePoweroff": "TRUE" if force_poweroff else "FALSE",
        }
        if description:
            params["ImageDescription"] = description
        if tags:
            params["TagSpecification"] = [
                {"ResourceType": "image", "Tags": [{"Key": k, "Value": v} for k, v in tags.items()]}
            ]
        body = await self.call("CreateImage", params)
        return body.get("ImageId", "")

    async def delete_images(self, image_ids):
        await self.call("DeleteImages", {"ImageIds": list(image_ids)})


# ── VPC ────────────────────────────────────────────────────────────


class VpcClient(TencentCloudClient):
    """Networking: VPCs, subnets and security groups."""

    service = "vpc"

    async def describe_vpcs(self, vpc_ids=None, vpc_name=None) -> list[dict]:
        params = {"Limit": "100"}
        if vpc_ids:
            params["VpcIds"] = list(vpc_ids)
        elif vpc_name:
            params["Filters"] = _filters(vpc_name=[vpc_name])
        body = await self.call("DescribeVpcs", params)
        return body.get("VpcSet", [])

    async def create_vpc(self, name, cidr_block) -> str:
        body = await self.call("CreateVpc", {"VpcName": name, "CidrBlock": cidr_block})
        return body["Vpc"]["VpcId"]

    async def delete_vpc(self, vpc_id):
        await self.call("DeleteVpc", {"VpcId": vpc_id})

    async def describe_subnets(self, subnet_ids=None, subnet_name=None, zones=None) -> list[Subnet]:
        params = {"Limit": "100"}
        if subnet_ids:
            params["SubnetIds"] = list(subnet_ids)
        else:
            params["Filters"] = _filters(
                subnet_name=[subnet_name] if subnet_name else None,
                zone=zones or None,
            )
        body = await self.call("DescribeSubnets", params)
        return [Subnet.from_api(s) for s in body.get("SubnetSet", [])]

    async def create_subnet(self, vpc_id, name, cidr_block, zone) -> Subnet:
        body = await self.call(
            "CreateSubnet",
            {"VpcId": vpc_id, "SubnetName": name, "CidrBlock": cidr_block, "Zone": zone},
        )
        return Subnet.from_api(body["Subnet"])

    async def delete_subnet(self, subnet_id):
        await self.call("DeleteSubnet", {"SubnetId": subnet_id})

    async def describe_security_groups(self, security_group_ids) -> list[dict]:
        body = await self.call("DescribeSecurityGroups", {"SecurityGroupIds": list(security_group_ids)})
        return body.get("SecurityGroupSet", [])

    async def create_security_group(self, name, description) -> str:
        body = await self.call("CreateSecurityGroup", {"GroupName": name, "GroupDescription": description})
        return body["SecurityGroup"]["SecurityGroupId"]

    async def create_security_group_policies(self, security_group_id, ingress=(), egress=()):
        policy_set = {}
        if ingress:
            policy_set["Ingress"] = list(ingress)
        if egress:
            policy_set["Egress"] = list(egress)
        await self.call(
            "CreateSecurityGroupPolicies",
            {"SecurityGroupId": security_group_id, "SecurityGroupPolicySet": policy_set},
        )

    async def delete_security_group(self, security_group_id):
        await self.call("DeleteSecurityGroup", {"SecurityGroupId": security_group_id})
