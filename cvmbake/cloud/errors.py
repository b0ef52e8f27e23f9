"""Error hierarchy for Tencent Cloud calls and build validation.

Provider error codes are mapped onto exception classes in one place
(``error_from_response``) so callers branch on types, never on code strings.
"""


class CvmbakeError(Exception):
    """Base class for every error raised by cvmbake."""


# ── Provider errors ────────────────────────────────────────────────


class TencentCloudError(CvmbakeError):
    """An error envelope returned by a Tencent Cloud API call."""

    def __init__(self, code, message, request_id=""):
        self.code = code
        self.message = message
        self.request_id = request_id
        super().__init__(f"[{code}] {message}" + (f" (RequestId: {request_id})" if request_id else ""))


class TransientError(TencentCloudError):
    """Rate limit, network fault or busy resource. Safe to retry."""


class NotFoundError(TencentCloudError):
    """The referenced resource does not exist."""


class InvalidRequestError(TencentCloudError):
    """Malformed or rejected request. Retrying will not help."""


class ResourceInsufficientError(TencentCloudError):
    """The requested instance type is understocked in the chosen zone."""


_TRANSIENT_CODES = {
    "ClientError.NetworkError",
    "ClientError.HttpStatusCodeError",
    "ClientError.ParseError",
    "OperationDenied.InstanceOperationInProgress",
    "InvalidKeyPair.NotSupported",
    "InvalidParameterValue.KeyPairNotSupported",
    "InvalidInstance.NotSupported",
}
_TRANSIENT_FRAGMENTS = ("RequestLimitExceeded", "InternalError", "ResourceInUse", "ResourceBusy")
_INSUFFICIENT_PREFIXES = ("ResourceInsufficient", "ResourcesSoldOut")


def error_from_response(code, message, request_id=""):
    """Build the typed exception for a provider error code.

    Returns:
        An instance of the most specific ``TencentCloudError`` subclass.
    """
    if code in _TRANSIENT_CODES or any(fragment in code for fragment in _TRANSIENT_FRAGMENTS):
        cls = TransientError
    elif code.startswith(_INSUFFICIENT_PREFIXES):
        cls = ResourceInsufficientError
    elif "NotFound" in code:
        cls = NotFoundError
    else:
        cls = InvalidRequestError
    return cls(code, message, request_id)


# ── Build errors ───────────────────────────────────────────────────


class ValidationError(CvmbakeError):
    """A fatal, user-actionable precondition failure."""


class ImageExistsError(ValidationError):
    def __init__(self, image_name):
        self.image_name = image_name
        super().__init__(f"Image name '{image_name}' already exists. Set force_delete to replace it.")


class NoCapacityError(ValidationError):
    def __init__(self, instance_type):
        self.instance_type = instance_type
        super().__init__(f"The instance type {instance_type} isn't available in this region.\n You can change to other regions.")


class SubnetNotFoundError(ValidationError):
    def __init__(self):
        super().__init__("the specified subnet does not exist")


class SubnetVpcMismatchError(ValidationError):
    def __init__(self, subnet_id, vpc_id):
        self.subnet_id = subnet_id
        self.vpc_id = vpc_id
        super().__init__(f"the specified subnet({subnet_id}) does not belong to the specified vpc({vpc_id})")


class VpcNotFoundError(ValidationError):
    def __init__(self, vpc_ref):
        super().__init__(f"the specified vpc({vpc_ref}) does not exist")


class SecurityGroupNotFoundError(ValidationError):
    def __init__(self, security_group_id):
        super().__init__(f"the specified security group({security_group_id}) does not exist")


class SourceImageNotFoundError(ValidationError):
    def __init__(self, image_ref):
        super().__init__(f"No source image found for '{image_ref}'")


class CapacityExhaustedError(CvmbakeError):
    """Every candidate subnet/zone was tried without getting a running instance."""

    def __init__(self, attempts):
        self.attempts = attempts
        super().__init__(f"Failed to run instance after trying {attempts} configuration(s): no zone had capacity")


class InstanceLaunchFailedError(CvmbakeError):
    """The instance reached a terminal failure state while being waited on."""

    def __init__(self, instance_id, status):
        self.instance_id = instance_id
        self.status = status
        super().__init__(f"Instance {instance_id} reached terminal status '{status}'")


class ImageCreateFailedError(CvmbakeError):
    def __init__(self, image_id, state):
        self.image_id = image_id
        self.state = state
        super().__init__(f"Image {image_id} reached terminal state '{state}'")


class WaitTimeoutError(CvmbakeError):
    def __init__(self, resource_id, target, timeout, last_status):
        self.resource_id = resource_id
        self.target = target
        self.last_status = last_status
        super().__init__(f"Timeout after {timeout}s waiting for {resource_id} to reach '{target}' (last: '{last_status}')")


class BuildCancelledError(CvmbakeError):
    def __init__(self):
        super().__init__("Build was cancelled")


class ConfigError(CvmbakeError):
    """Invalid or incomplete build configuration."""
