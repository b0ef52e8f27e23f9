"""Pipeline steps, in the order a build runs them."""

from cvmbake.steps.create_image import StepCreateImage
from cvmbake.steps.detach_key_pair import StepDetachTempKeyPair
from cvmbake.steps.key_pair import StepConfigKeyPair
from cvmbake.steps.pre_validate import StepPreValidate
from cvmbake.steps.run_instance import StepRunInstance
from cvmbake.steps.security_group import StepConfigSecurityGroup
from cvmbake.steps.source_image import StepCheckSourceImage
from cvmbake.steps.subnet import StepConfigSubnet
from cvmbake.steps.vpc import StepConfigVPC

__all__ = [
    "StepPreValidate",
    "StepCheckSourceImage",
    "StepConfigKeyPair",
    "StepConfigVPC",
    "StepConfigSubnet",
    "StepConfigSecurityGroup",
    "StepRunInstance",
    "StepDetachTempKeyPair",
    "StepCreateImage",
]
