"""Amazon Linux 2 bootstrap: a shell script calling the EKS bootstrap agent."""

from __future__ import annotations

from typing import Final

from nodeforge.constants import EKS_BOOTSTRAP_SCRIPT, SHELL_CONTENT_TYPE
from nodeforge.types import BootstrapConfig, InstanceStorePolicy, LaunchOptions

from . import flags, mime

SCRIPT_HEADER: Final = """#!/bin/bash -xe
exec > >(tee /var/log/user-data.log|logger -t user-data -s 2>/dev/console) 2>&1"""


def bootstrap_args(options: LaunchOptions, config: BootstrapConfig) -> list[str]:
    """Arguments passed to the bootstrap agent, one per line."""
    kubelet = config.kubelet
    dns = flags.dns_ip(options, kubelet)
    extra = flags.kubelet_args(kubelet, options.labels, config.registration_taints)

    args: list[flags.Flag] = [
        f"--apiserver-endpoint {flags.quote(options.cluster_endpoint)}",
        f"--b64-cluster-ca {flags.quote(options.ca_bundle)}" if options.ca_bundle else None,
        "--ip-family ipv6" if flags.is_ipv6(dns) else None,
        f"--dns-cluster-ip {flags.quote(dns)}" if dns else None,
        "--use-max-pods false" if kubelet.max_pods is not None else None,
        "--local-disks raid0" if options.instance_store_policy is InstanceStorePolicy.RAID0 else None,
        f"--kubelet-extra-args {flags.quote(' '.join(extra))}" if extra else None,
    ]
    return [a for a in args if a]


def script(options: LaunchOptions, config: BootstrapConfig) -> str:
    command = f"{EKS_BOOTSTRAP_SCRIPT} {flags.quote(options.cluster_name)}"
    lines = [command, *bootstrap_args(options, config)]
    return f"{SCRIPT_HEADER}\n" + " \\\n".join(lines)


def render(options: LaunchOptions, config: BootstrapConfig) -> str:
    """Render AL2 user data as an archive of the user's parts plus the script."""
    part = mime.Part(SHELL_CONTENT_TYPE, script(options, config))
    return mime.merge(config.custom_data, [part], family=str(config.family))
