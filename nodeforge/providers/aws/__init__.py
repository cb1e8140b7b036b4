"""AWS provider: launch templates, fleets, discovery and default images."""

from .clients import AWSModule, EC2ClientFactory, SSMClientFactory
from .discovery import describe_images, describe_instance_types
from .fleet import FleetRequest, FleetResult, launch_fleet
from .launchtemplate import LaunchRequest, LaunchTemplate, LaunchTemplateProvider
from .ssm import DefaultImageLookup, parameter_name

__all__ = [
    "AWSModule",
    "DefaultImageLookup",
    "EC2ClientFactory",
    "FleetRequest",
    "FleetResult",
    "LaunchRequest",
    "LaunchTemplate",
    "LaunchTemplateProvider",
    "SSMClientFactory",
    "describe_images",
    "describe_instance_types",
    "launch_fleet",
    "parameter_name",
]
