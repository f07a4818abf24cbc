"""
Help formatter: usage lines, rich help screens and the machine-readable command list.

Usage line
    <route> {-s|--name} PLACEHOLDER ... <subcommand>... [^ <command>...] [flags...]
    <route> {-s|--name} PLACEHOLDER ... NAME [OPTIONAL...] [flags...]

Palette keys (override any of them with a ``__styles__`` mapping in ``__main__``)
- usage-label, program-name, usage-section, description-section
- group-label, argument-description, flag-name, positional-name, metavar, choice
- detail-label, detail
- children-title, children-table, children, children-description
- panel-title
"""
import json
import logging
from collections import defaultdict

from rich.box import ROUNDED
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .utils import *

logger = logging.getLogger(__name__)


def placeholder(field, /):
    """Return the display placeholder of a flag or positional field."""
    descriptor = field.descriptor
    if descriptor.enum:
        return "{%s}" % "|".join(descriptor.enum)
    if descriptor.placeholder:
        return descriptor.placeholder
    return field.binder.placeholder


def _flags(node):
    """Yield (field, inherited) for every flag visible at ``node``, root first."""
    for step in node.path:
        for field in step.flags:
            yield field, step is not node


def _flag_usage(field):
    descriptor = field.descriptor
    name = descriptor.longname
    if descriptor.short:
        name = "{%s|%s}" % (descriptor.shortname, descriptor.longname)
    if not field.binder.boolean:
        name = "%s %s" % (name, placeholder(field))
    return name


def _positional_usage(field):
    descriptor = field.descriptor
    name = descriptor.placeholder or descriptor.name
    if descriptor.enum:
        name = placeholder(field)
    if descriptor.required and not field.binder.multi:
        return name
    return "[%s...]" % name


def usage_parts(node, /):
    """Return the usage tokens of ``node`` (its route first)."""
    parts = [" ".join(step.name for step in node.path)]
    optional = False
    for field, _ in _flags(node):
        if field.descriptor.required:
            parts.append(_flag_usage(field))
        else:
            optional = True

    if node.children:
        parts.extend(("<subcommand>...", "[^", "<command>...]"))
    else:
        parts.extend(_positional_usage(field) for field in node.positionals)

    if optional:
        parts.append("[flags...]")
    return parts


def usage_line(node, /, prog=Unset):
    parts = usage_parts(node)
    if prog:
        parts.insert(0, prog)
    return " ".join(parts)


def _palette(colorful):
    styles = defaultdict(str, {
        # === Head sections ===
        "usage-label": "bold #00E6FF",  # CYAN → signature info color
        "program-name": "bold #FF4D94",  # MAGENTA-PINK → brand pop
        "usage-section": "bold #36C5F0",  # SKY-BLUE → softer than cyan
        "description-section": "italic #A3A3A3",  # Neutral gray

        # === Groups / arguments ===
        "group-label": "bold #FFFFFF",  # Pure white headers
        "argument-description": "#9CA3AF",  # Muted gray
        "flag-name": "bold #22C55E",  # GREEN for flags
        "positional-name": "bold #00E6FF",  # CYAN for positionals
        "metavar": "bold #FFD600",  # AMBER for parameters
        "choice": "bold #FF4D94",  # MAGENTA → choices stand out
        "detail-label": "#737373",
        "detail": "#D1D5DB",

        # === Children table ===
        "children-title": "bold #FFFFFF",
        "children-table": "#4B5563",  # Slate border
        "children": "bold #36C5F0",  # Sky-blue subcommands
        "children-description": "#9CA3AF",

        # === Fancy panel ===
        "panel-title": "bold #FF4D94",
    } | getattr(__import__("__main__"), "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), styler(style))

    return styler, text


def _details(field, text):
    descriptor = field.descriptor
    details = []
    if descriptor.enum:
        details.append(("options", ", ".join(descriptor.enum)))
    if descriptor.env:
        details.append(("env", "$" + descriptor.env))
    if descriptor.default is not Unset:
        details.append(("default", repr(descriptor.default)))
    if descriptor.required:
        details.append(("required", "yes"))
    return Text("  ").join(
        Text.assemble(text(label, "detail-label"), ": ", text(value, "detail")) for label, value in details
    )


def render_help(node, /, prog=Unset, *, colorful=True, fancy=False):
    """Build the rich renderable of ``node``'s help screen."""
    logger.debug("rendering help for %s", node.name)
    styler, text = _palette(colorful)
    renders = []

    usage = Text()
    usage.append(text("usage", "usage-label")).append(": ")
    if prog:
        usage.append(text(prog, "program-name")).append(" ")
    usage.append(text(" ".join(usage_parts(node)), "usage-section"))
    renders.append(usage)

    if node.description:
        renders.append(Text("\n").append(text(node.description, "description-section")))

    if node.children:
        table = Table(
            "name", "description",
            title=text("subcommands" if node.parent else "commands", "children-title"),
            box=ROUNDED,
            style=styler("children-table"),
            header_style=styler("children-title"),
        )
        for name, child in sorted(node.children.items()):
            table.add_row(text(name, "children"), text(child.description or "-", "children-description"))
        renders.append(Text(""))
        renders.append(table)

    if node.positionals:
        section = Table.grid(padding=(0, 2))
        for field in node.positionals:
            section.add_row(
                text(field.descriptor.name, "positional-name"),
                text(placeholder(field), "choice" if field.descriptor.enum else "metavar"),
                Text("\n").join(part for part in (
                    text(field.descriptor.description, "argument-description"),
                    _details(field, text),
                ) if part),
            )
        renders.append(Text("\n").append(text("positionals", "group-label")).append(":"))
        renders.append(section)

    for inherited in (False, True):
        fields = [field for field, flag in _flags(node) if flag is inherited]
        if not fields:
            continue
        section = Table.grid(padding=(0, 2))
        for field in fields:
            descriptor = field.descriptor
            section.add_row(
                text(descriptor.shortname, "flag-name"),
                text(descriptor.longname, "flag-name"),
                text("" if field.binder.boolean else placeholder(field), "choice" if descriptor.enum else "metavar"),
                Text("\n").join(part for part in (
                    text(descriptor.description, "argument-description"),
                    _details(field, text),
                ) if part),
            )
        renders.append(Text("\n").append(text("inherited flags" if inherited else "flags", "group-label")).append(":"))
        renders.append(section)

    renderable = Group(*renders)
    if fancy:
        renderable = Panel(
            renderable,
            title=Text.assemble("[", " ", f"{node.name} HELP".upper(), " ", "]", style=styler("panel-title")),
            title_align="left",
        )
    return renderable


def render_usage(roots, /, prog=Unset, *, colorful=True, fancy=False):
    """Build the renderable of the top-level usage screen listing every root command."""
    styler, text = _palette(colorful)

    usage = Text()
    usage.append(text("usage", "usage-label")).append(": ")
    usage.append(text(coalesce(prog, "command"), "program-name"))
    usage.append(text(" <command> [args...] [^ <command> [args...]]...", "usage-section"))

    table = Table(
        "name", "description",
        title=text("commands", "children-title"),
        box=ROUNDED,
        style=styler("children-table"),
        header_style=styler("children-title"),
    )
    for root in roots:
        table.add_row(text(root.name, "children"), text(root.description or "-", "children-description"))

    footer = text("run '%s <command> --help' for details" % coalesce(prog, "command"), "description-section")
    renderable = Group(usage, Text(""), table, footer)
    if fancy:
        renderable = Panel(renderable, title=Text("[ HELP ]", style=styler("panel-title")), title_align="left")
    return renderable


def _commands(node, prefix=""):
    route = f"{prefix} {node.name}" if prefix else node.name
    yield {"name": route, "description": node.description}
    for child in node.children.values():
        yield from _commands(child, route)


def listing(roots, /):
    """Return the JSON command list printed by ``__list`` (every command, by route)."""
    return json.dumps({"commands": [command for root in roots for command in _commands(root)]}, indent=2)


__all__ = (
    "placeholder",
    "usage_parts",
    "usage_line",
    "render_help",
    "render_usage",
    "listing",
)
