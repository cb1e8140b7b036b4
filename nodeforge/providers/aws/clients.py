"""AWS client factories with dependency injection.

boto3 sessions are not thread-safe but clients are, so one client per
service is created from a singleton session and shared by every worker.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import boto3
from injector import Module, provider, singleton

from nodeforge.config import Settings

# =============================================================================
# Wrapper Classes for DI (each needs a unique type)
# =============================================================================


class EC2ClientFactory:
    """Wrapper for the EC2 client."""

    def __init__(self, factory: Callable[[], Any]) -> None:
        self._factory = factory

    def __call__(self) -> Any:
        return self._factory()


class SSMClientFactory:
    """Wrapper for the SSM client."""

    def __init__(self, factory: Callable[[], Any]) -> None:
        self._factory = factory

    def __call__(self) -> Any:
        return self._factory()


# =============================================================================
# AWS Module
# =============================================================================


class AWSModule(Module):
    """DI module that provides AWS clients.

    Usage:
        >>> from injector import Injector
        >>> injector = Injector([AWSModule()])
        >>> injector.binder.bind(Settings, to=Settings(region="us-west-2"))
        >>> ec2 = injector.get(EC2ClientFactory)()
    """

    @singleton
    @provider
    def provide_session(self, settings: Settings) -> boto3.Session:
        """Provide singleton boto3 session."""
        return boto3.Session(region_name=settings.region)

    @singleton
    @provider
    def provide_ec2(self, session: boto3.Session) -> EC2ClientFactory:
        client = session.client("ec2")
        return EC2ClientFactory(lambda: client)

    @singleton
    @provider
    def provide_ssm(self, session: boto3.Session) -> SSMClientFactory:
        client = session.client("ssm")
        return SSMClientFactory(lambda: client)


__all__ = [
    "AWSModule",
    "EC2ClientFactory",
    "SSMClientFactory",
]
