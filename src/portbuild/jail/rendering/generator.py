"""Renders managed file contents from the bundled jinja2 templates."""

from collections.abc import Iterable, Mapping
from pathlib import Path
import re
from typing import Any

import jinja2

from ..models import CronInterval, InlineBuildOptions

_TEMPLATE_DIR = Path(__file__).parent / "templates"
_BARE_VALUE_RE = re.compile(r"^[A-Za-z0-9_./:+,@%-]*$")


def _get_template_env() -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(_TEMPLATE_DIR),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=jinja2.StrictUndefined,
    )


def render_make_conf(options: InlineBuildOptions) -> str:
    """One option per line, then one `.if` block per package origin."""
    template = _get_template_env().get_template("make.conf.j2")
    return template.render(
        makeopts=options.makeopts, pkg_makeopts=options.pkg_makeopts
    )


def render_package_list(pkgs: Iterable[str]) -> str:
    template = _get_template_env().get_template("pkglist.j2")
    return template.render(pkgs=list(pkgs))


def _conf_value(value: Any) -> str:
    if isinstance(value, bool):
        return "yes" if value else "no"
    text = str(value)
    if _BARE_VALUE_RE.match(text):
        return text
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_poudriere_conf(settings: Mapping[str, Any]) -> str:
    template = _get_template_env().get_template("poudriere.conf.j2")
    items = [(key, _conf_value(settings[key])) for key in sorted(settings)]
    return template.render(settings=items)


def render_cron_entry(
    jail: str, interval: CronInterval, user: str, command: str
) -> str:
    """A cron.d line. An unescaped `%` in the command field is a newline to cron."""
    template = _get_template_env().get_template("crontab.j2")
    return template.render(
        jail=jail, interval=interval, user=user, command=command.replace("%", "\\%")
    )
