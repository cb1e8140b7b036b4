"""Windows bootstrap: a PowerShell block calling the EKS bootstrap script.

User data is merged inside a single ``<powershell>`` wrapper: the user's
script runs first, then the bootstrap invocation.
"""

from __future__ import annotations

import re
from typing import Final

from nodeforge.constants import WINDOWS_BOOTSTRAP_SCRIPT
from nodeforge.types import BootstrapConfig, LaunchOptions

from . import flags

_WRAPPER: Final = re.compile(r"</?powershell>", re.IGNORECASE)


def ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def bootstrap_command(options: LaunchOptions, config: BootstrapConfig) -> str:
    kubelet = config.kubelet
    dns = flags.dns_ip(options, kubelet)
    extra = flags.kubelet_args(kubelet, options.labels, config.registration_taints)

    return flags.join_flags(
        "& $EKSBootstrapScriptFile",
        f"-EKSClusterName {ps_quote(options.cluster_name)}",
        f"-APIServerEndpoint {ps_quote(options.cluster_endpoint)}",
        f"-Base64ClusterCA {ps_quote(options.ca_bundle)}" if options.ca_bundle else None,
        f"-KubeletExtraArgs {ps_quote(' '.join(extra))}" if extra else None,
        f"-DNSClusterIP {ps_quote(dns)}" if dns else None,
    )


def strip_wrapper(user_data: str) -> str:
    """Remove ``<powershell>`` tags so the script can be re-wrapped."""
    return _WRAPPER.sub("", user_data).strip("\n")


def render(options: LaunchOptions, config: BootstrapConfig) -> str:
    lines = ["<powershell>"]
    if config.custom_data and config.custom_data.strip():
        lines.append(strip_wrapper(config.custom_data))
    lines += [
        f'[string]$EKSBootstrapScriptFile = "{WINDOWS_BOOTSTRAP_SCRIPT}"',
        bootstrap_command(options, config),
        "</powershell>",
    ]
    return "\n".join(lines)
