"""prompt_toolkit styles for dbdoc.

Questionary uses prompt_toolkit under the hood, and so does the interactive
shell. This module keeps both styles in one place so the select prompts and
the shell prompt look consistent.
"""

from __future__ import annotations

from prompt_toolkit.styles import Style

QUESTIONARY_STYLE_SELECT = Style.from_dict(
    {
        "question": "bold ansibrightcyan",
        "answer": "bold ansibrightyellow",
        "pointer": "bold ansibrightyellow",
        "highlighted": "bold ansibrightyellow",
        "selected": "bold ansibrightyellow",
        "separator": "ansibrightblack",
        "instruction": "ansibrightblack",
        "error": "bold ansired",
        "disabled": "ansibrightblack",
    }
)

SHELL_PROMPT_STYLE = Style.from_dict(
    {
        "app": "bold ansibrightcyan",
        "state": "ansibrightblack",
        "connected": "bold ansigreen",
        "arrow": "bold ansibrightyellow",
        "completion-menu.completion": "bg:ansibrightblack ansiwhite",
        "completion-menu.completion.current": "bg:ansicyan ansiblack",
    }
)
