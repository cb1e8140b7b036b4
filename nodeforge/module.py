"""Central DI module for nodeforge.

Provides the process-wide collaborators every provisioning worker shares:
- Settings (configured once per process)
- LaunchTemplateCache (singleton, TTL from settings)
- ClusterCIDR (singleton cell, seeded from settings)
- LaunchTemplateProvider and DefaultImageLookup
"""

from __future__ import annotations

from injector import Binder, Injector, Module, provider, singleton

from .cache import LaunchTemplateCache
from .config import Settings
from .providers.aws.clients import AWSModule, EC2ClientFactory, SSMClientFactory
from .providers.aws.launchtemplate import LaunchTemplateProvider
from .providers.aws.ssm import DefaultImageLookup
from .state import ClusterCIDR


class NodeForgeModule(Module):
    """Core module providing shared dependencies.

    Usage:
        injector = Injector([NodeForgeModule(settings), AWSModule()])
        provider = injector.get(LaunchTemplateProvider)
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def configure(self, binder: Binder) -> None:
        binder.bind(Settings, to=self._settings)

    @singleton
    @provider
    def provide_cache(self, settings: Settings) -> LaunchTemplateCache:
        return LaunchTemplateCache(ttl=settings.cache_ttl)

    @singleton
    @provider
    def provide_cluster_cidr(self, settings: Settings) -> ClusterCIDR:
        return ClusterCIDR(settings.cluster_cidr)

    @singleton
    @provider
    def provide_launch_templates(
        self,
        ec2: EC2ClientFactory,
        cache: LaunchTemplateCache,
        cluster_cidr: ClusterCIDR,
        settings: Settings,
        default_images: DefaultImageLookup,
    ) -> LaunchTemplateProvider:
        return LaunchTemplateProvider(ec2(), cache, cluster_cidr, settings, default_images)

    @singleton
    @provider
    def provide_default_images(self, ssm: SSMClientFactory) -> DefaultImageLookup:
        return DefaultImageLookup(ssm())


def create_injector(settings: Settings) -> Injector:
    """Build an injector wired for one cluster."""
    return Injector([NodeForgeModule(settings), AWSModule()])
