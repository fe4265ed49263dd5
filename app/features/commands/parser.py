"""
Rule-based intent parser for console commands.

A command is a sentence with the entity names in quotes:

    Give the role "Content Editor" the permission to "edit articles"

Parsing happens in two passes. The quoted spans are cut out first; each
span is attached to the last "role" or "permission" keyword written before
it, which gives the clauses. What remains (the skeleton) is matched against
an ordered grammar table, so words inside names never count as keywords.
The first rule whose trigger matches and whose required clauses are present
builds the intent.

Create rules name a single entity, so they take the first quoted span after
their keyword instead, which lets the operator write
create a permission for the admin role called "export data".
"""
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Pattern, Sequence, Tuple

from app.features.commands.intents import Intent, IntentAction
from app.utils import get_logger


log = get_logger(__name__)

ROLE = "role"
PERMISSION = "permission"

_TYPOGRAPHIC_QUOTES = str.maketrans({
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
})
_QUOTED_SPAN = re.compile(r"""(['"])(.*?)\1""", re.DOTALL)
_CLAUSE_KEYWORD = re.compile(r"\b(role|permission)s?\b", re.IGNORECASE)

COMMAND_SUGGESTIONS = (
    'Create a new permission called "manage settings"',
    'Create a new role called "Moderator"',
    'Give the role "Content Editor" the permission to "edit articles"',
    'Remove the permission "delete users" from role "Support Agent"',
    'Create a permission called "view reports"',
    'Delete the role "Moderator"',
)


@dataclass(frozen=True)
class CommandParts:
    """
    A command split by split_command.

    spans holds (offset, value) for every non-blank quoted span, the offset
    being where its "" placeholder starts in the skeleton.
    """
    skeleton: str
    clauses: Dict[str, str]
    spans: Tuple[Tuple[int, str], ...] = ()

    def first_span_after(self, pos: int) -> Optional[str]:
        for offset, value in self.spans:
            if offset >= pos:
                return value
        return None


@dataclass(frozen=True)
class GrammarRule:
    """
    One row of the grammar table.

    trigger is searched in the command skeleton. requires lists the clause
    slots ("role", "permission") that must have a value; build turns the
    clauses into an Intent. When name_slot is set, that slot is filled from
    the first quoted span after the trigger match and keyword clauses are
    ignored.
    """
    name: str
    trigger: Pattern[str]
    requires: Tuple[str, ...]
    build: Callable[[Dict[str, str]], Intent]
    name_slot: Optional[str] = None

    def apply(self, parts: CommandParts) -> Optional[Intent]:
        match = self.trigger.search(parts.skeleton)
        if not match:
            return None
        clauses = parts.clauses
        if self.name_slot is not None:
            value = parts.first_span_after(match.end())
            clauses = {self.name_slot: value} if value is not None else {}
        if any(slot not in clauses for slot in self.requires):
            return None
        return self.build(clauses)


def _rule(
    name: str,
    trigger: str,
    requires: Tuple[str, ...],
    build: Callable[[Dict[str, str]], Intent],
    name_slot: Optional[str] = None,
) -> GrammarRule:
    return GrammarRule(name, re.compile(trigger, re.IGNORECASE | re.DOTALL), requires, build, name_slot)


DEFAULT_GRAMMAR: Tuple[GrammarRule, ...] = (
    _rule(
        "create_permission",
        r"\bcreate\b.*?\bpermissions?\b",
        (PERMISSION,),
        lambda c: Intent(
            IntentAction.CREATE_PERMISSION,
            permission_name=c[PERMISSION],
            description=f"Permission to {c[PERMISSION]}",
        ),
        name_slot=PERMISSION,
    ),
    _rule(
        "create_role",
        r"\bcreate\b.*?\broles?\b",
        (ROLE,),
        lambda c: Intent(IntentAction.CREATE_ROLE, role_name=c[ROLE]),
        name_slot=ROLE,
    ),
    _rule(
        "assign_permission",
        r"^(?=.*\b(?:give|assign)\b)(?=.*\bpermissions?\b)",
        (ROLE, PERMISSION),
        lambda c: Intent(IntentAction.ASSIGN_PERMISSION, role_name=c[ROLE], permission_name=c[PERMISSION]),
    ),
    _rule(
        "remove_permission",
        r"^(?=.*\bremove\b)(?=.*\bpermissions?\b)",
        (ROLE, PERMISSION),
        lambda c: Intent(IntentAction.REMOVE_PERMISSION, role_name=c[ROLE], permission_name=c[PERMISSION]),
    ),
    _rule(
        "delete_permission",
        r"^(?!.*\broles?\b)(?=.*\bdelete\b)(?=.*\bpermissions?\b)",
        (PERMISSION,),
        lambda c: Intent(IntentAction.DELETE_PERMISSION, permission_name=c[PERMISSION]),
    ),
    _rule(
        "delete_role",
        r"^(?!.*\bpermissions?\b)(?=.*\bdelete\b)(?=.*\broles?\b)",
        (ROLE,),
        lambda c: Intent(IntentAction.DELETE_ROLE, role_name=c[ROLE]),
    ),
)


def normalize_command(text: str) -> str:
    return text.translate(_TYPOGRAPHIC_QUOTES).strip()


def split_command(text: str) -> CommandParts:
    """
    Separate a normalized command into its skeleton, clauses and spans.

    >>> parts = split_command('remove permission "B" from role "A"')
    >>> parts.skeleton, parts.clauses
    ('remove permission "" from role ""', {'permission': 'B', 'role': 'A'})
    """
    skeleton: List[str] = []
    clauses: Dict[str, str] = {}
    spans: List[Tuple[int, str]] = []
    length = 0
    pos = 0
    for match in _QUOTED_SPAN.finditer(text):
        gap = text[pos:match.start()]
        skeleton.append(gap)
        length += len(gap)
        skeleton.append('""')
        pos = match.end()

        value = match.group(2).strip()
        if value:
            spans.append((length, value))
        length += 2

        keywords = _CLAUSE_KEYWORD.findall(gap)
        if keywords and value:
            # first value per slot wins
            clauses.setdefault(keywords[-1].lower(), value)
    skeleton.append(text[pos:])
    return CommandParts("".join(skeleton), clauses, tuple(spans))


class IntentParser:
    """Maps command text to an Intent using an ordered grammar table."""

    def __init__(self, grammar: Sequence[GrammarRule] = DEFAULT_GRAMMAR):
        self.grammar = tuple(grammar)

    def parse(self, text: str) -> Optional[Intent]:
        """Return the intent of the first matching rule, or None when nothing matches."""
        normalized = normalize_command(text)
        if not normalized:
            return None

        parts = split_command(normalized)
        for rule in self.grammar:
            intent = rule.apply(parts)
            if intent is not None:
                log.debug("Command %r matched rule %s", text, rule.name)
                return intent

        log.debug("No rule matched command %r (skeleton %r)", text, parts.skeleton)
        return None


_default_parser = IntentParser()


def parse(text: str) -> Optional[Intent]:
    return _default_parser.parse(text)


def get_command_suggestions() -> List[str]:
    """Example commands shown under the console's command box."""
    return list(COMMAND_SUGGESTIONS)
