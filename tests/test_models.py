"""Tests for the jail and ports tree specs."""

from pathlib import Path

import pytest

from portbuild.jail.exceptions import ConflictingBuildOptions, ManifestError
from portbuild.jail.models import (
    CronInterval,
    Ensure,
    InlineBuildOptions,
    JailSpec,
    MakefileRef,
    PackageFileRef,
    PackageList,
    PortsTreeSpec,
    build_options_from_fields,
)


def test_from_mapping_defaults() -> None:
    spec = JailSpec.from_mapping("amd64-13", {"version": "13.2-RELEASE"})

    assert spec.jail == "amd64-13"
    assert spec.ensure is Ensure.PRESENT
    assert spec.arch is None
    assert spec.ports_tree == "default"
    assert spec.parallel_jobs >= 1
    assert spec.cron_enable is False
    assert spec.cron_always_mail is False
    assert spec.cron_interval.fields() == ("0", "0", "*", "*", "*")
    assert spec.build_options == InlineBuildOptions()
    assert spec.packages == PackageList()


def test_makefile_with_makeopts_conflicts() -> None:
    with pytest.raises(ConflictingBuildOptions):
        JailSpec.from_mapping(
            "j",
            {"version": "13.2-RELEASE", "makefile": "/tmp/make.conf", "makeopts": ["WITH_DEBUG=yes"]},
        )


def test_makefile_with_pkg_makeopts_conflicts() -> None:
    with pytest.raises(ConflictingBuildOptions, match="makefile"):
        build_options_from_fields(
            pkg_makeopts={"www/nginx": ["OPTIONS_SET=HTTP2"]}, makefile="/tmp/make.conf"
        )


def test_makefile_alone_is_a_file_reference() -> None:
    source = build_options_from_fields(makeopts=[], pkg_makeopts={}, makefile="/tmp/make.conf")
    assert source == MakefileRef(Path("/tmp/make.conf"))


def test_pkg_file_wins_over_pkgs() -> None:
    spec = JailSpec.from_mapping(
        "j", {"version": "13.2-RELEASE", "pkgs": ["a"], "pkg_file": "/tmp/pkgs"}
    )
    assert spec.packages == PackageFileRef(Path("/tmp/pkgs"))


def test_pkg_makeopts_keep_declaration_order() -> None:
    options = InlineBuildOptions(
        makeopts=["A=1"], pkg_makeopts={"www/nginx": ["X"], "devel/git": ["Y", "Z"]}
    )
    assert options.pkg_makeopts == (("www/nginx", ("X",)), ("devel/git", ("Y", "Z")))


def test_marker_name_replaces_colons() -> None:
    spec = JailSpec(name="build", version="14.0-RELEASE", jail_name="fbsd:14")
    assert spec.jail == "fbsd:14"
    assert spec.marker_name == "fbsd_14"


@pytest.mark.parametrize(
    "data, match",
    [
        ({}, "missing the required 'version'"),
        ({"version": "13.2-RELEASE", "arch": "vax"}, "Invalid jail"),
        ({"version": "13.2-RELEASE", "ensure": "maybe"}, "Invalid jail"),
        ({"version": "13.2-RELEASE", "parallel_jobs": 0}, "Invalid jail"),
        ({"version": "13.2-RELEASE", "parallel_jobs": True}, "positive integer"),
        ({"version": "13.2-RELEASE", "parallel_jobs": "4"}, "positive integer"),
        ({"version": "13.2-RELEASE", "pkgs": "www/nginx"}, "Invalid jail"),
        ({"version": "13.2-RELEASE", "colour": "blue"}, "unknown fields: colour"),
        ({"version": "  "}, "Invalid jail"),
    ],
)
def test_from_mapping_rejects_bad_input(data: dict, match: str) -> None:
    with pytest.raises(ManifestError, match=match):
        JailSpec.from_mapping("j", data)


def test_portstree_alias_is_accepted() -> None:
    spec = JailSpec.from_mapping("j", {"version": "13.2-RELEASE", "portstree": "quarterly"})
    assert spec.ports_tree == "quarterly"


def test_cron_interval_from_string_and_mapping() -> None:
    assert CronInterval.parse("*/15 2 1-7 * mon").fields() == ("*/15", "2", "1-7", "*", "mon")
    interval = CronInterval.parse({"minute": 30, "hour": "4"})
    assert str(interval) == "30 4 * * *"


@pytest.mark.parametrize("value", ["0 0 * *", "0 0 * * * *", {"second": "1"}])
def test_cron_interval_rejects_bad_shapes(value) -> None:
    with pytest.raises(ValueError):
        CronInterval.parse(value)


def test_cron_interval_rejects_bad_field() -> None:
    with pytest.raises(ValueError):
        CronInterval(minute="every day")


def test_ports_tree_null_method_needs_path() -> None:
    with pytest.raises(ManifestError, match="requires a 'path'"):
        PortsTreeSpec.from_mapping("local", {"method": "null"})

    tree = PortsTreeSpec.from_mapping("local", {"method": "null", "path": "/usr/ports"})
    assert tree.path == Path("/usr/ports")
