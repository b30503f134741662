"""Tests for the jinja2-backed file renderers."""

from portbuild.jail.models import CronInterval, InlineBuildOptions
from portbuild.jail.rendering.generator import (
    render_cron_entry,
    render_make_conf,
    render_package_list,
    render_poudriere_conf,
)


def test_package_list_one_per_line_with_trailing_newline() -> None:
    assert render_package_list(["a", "b", "c"]) == "a\nb\nc\n"


def test_empty_package_list_is_empty() -> None:
    assert render_package_list([]) == ""


def test_make_conf_global_and_per_package_options() -> None:
    options = InlineBuildOptions(
        makeopts=["WITH_PKGNG=yes", "OPTIONS_UNSET+=DOCS"],
        pkg_makeopts={"www/nginx": ["OPTIONS_SET+=HTTP2", "OPTIONS_UNSET+=MAIL"]},
    )
    assert render_make_conf(options) == (
        "WITH_PKGNG=yes\n"
        "OPTIONS_UNSET+=DOCS\n"
        ".if ${.CURDIR:M*/www/nginx}\n"
        "OPTIONS_SET+=HTTP2\n"
        "OPTIONS_UNSET+=MAIL\n"
        ".endif\n"
    )


def test_make_conf_without_options_is_empty() -> None:
    assert render_make_conf(InlineBuildOptions()) == ""


def test_poudriere_conf_sorted_and_quoted() -> None:
    content = render_poudriere_conf(
        {"ZPOOL": "zroot", "USE_TMPFS": True, "NOLINUX": False, "FREEBSD_HOST": "https://download.FreeBSD.org", "CCACHE_DIR": "/var/cache ccache"}
    )
    lines = content.splitlines()
    assert lines[0].startswith("#")
    assert lines[1:] == [
        'CCACHE_DIR="/var/cache ccache"',
        "FREEBSD_HOST=https://download.FreeBSD.org",
        "NOLINUX=no",
        "USE_TMPFS=yes",
        "ZPOOL=zroot",
    ]
    assert content.endswith("\n")


def test_cron_entry_has_schedule_user_and_command() -> None:
    entry = render_cron_entry(
        "amd64-13", CronInterval(minute="30", hour="2"), "root", "poudriere bulk -j amd64-13"
    )
    lines = entry.splitlines()
    assert "amd64-13" in lines[0]
    assert lines[1] == "30 2 * * *\troot\tpoudriere bulk -j amd64-13"
    assert entry.endswith("\n")


def test_cron_entry_escapes_percent_signs() -> None:
    entry = render_cron_entry(
        "j", CronInterval(), "root", "poudriere bulk -f /srv/100%/j.list -j j"
    )
    assert entry.splitlines()[1] == "0 0 * * *\troot\tpoudriere bulk -f /srv/100\\%/j.list -j j"
