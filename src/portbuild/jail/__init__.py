"""
This package declaratively manages poudriere build jails: it plans the jail
lifecycle, the per-jail make.conf and package list, optional port options
and a scheduled bulk build, then applies those plans idempotently.
"""

from .context import CommandRunner, HostContext
from .exceptions import CommandError, ConfigError, ConflictingBuildOptions, JailError
from .manifest import Manifest, load_manifest
from .models import CronInterval, Ensure, JailSpec, PortsTreeSpec
from .reconcile import JailEnvironmentReconciler, PlanApplier, desired_states

__all__ = [
    "CommandError",
    "CommandRunner",
    "ConfigError",
    "ConflictingBuildOptions",
    "CronInterval",
    "Ensure",
    "HostContext",
    "JailEnvironmentReconciler",
    "JailError",
    "JailSpec",
    "Manifest",
    "PlanApplier",
    "PortsTreeSpec",
    "desired_states",
    "load_manifest",
]
