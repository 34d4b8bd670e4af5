"""
Schema tags: small annotations attached to schema nodes.

A tag names the semantic slot a value belongs to (``Class.property``) and
carries flags that steer traversal. It is read from the ``x-specplan``
vendor extension when present, otherwise from a ``<specplan ...>`` marker
inside the node's description::

    description: "Owner of the pet <specplan User.id weak>"
    x-specplan: "User.id weak"

Tokens are separated by whitespace. A token naming a known flag sets that
flag; the first other token is ``Class`` or ``Class.property``.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

TAG_EXTENSION = "x-specplan"

FLAG_WEAK = 1

FLAG_NAMES = {
    "weak": FLAG_WEAK,
}

_DESCRIPTION_TAG = re.compile(r"<specplan\s+([^>]*)>")


@dataclass(frozen=True)
class SchemaTag:
    class_name: str = ""
    property_name: str = ""
    flags: int = 0

    @property
    def weak(self) -> bool:
        return bool(self.flags & FLAG_WEAK)

    @property
    def key(self) -> Optional[str]:
        """Collection key for tagged scalar values, if both parts are set."""
        if self.class_name and self.property_name:
            return f"{self.class_name}.{self.property_name}"
        return None


def parse_tag(text: str) -> Optional[SchemaTag]:
    """Parse the body of a tag, e.g. ``"Pet.name weak"``."""
    class_name = ""
    prop = ""
    flags = 0
    named = False
    for token in text.split():
        flag = FLAG_NAMES.get(token.lower())
        if flag is not None:
            flags |= flag
        elif not named:
            class_name, _, prop = token.partition(".")
            named = True
        else:
            logger.warning(f"Ignoring unknown schema tag token: {token}")

    if not named and not flags:
        return None
    return SchemaTag(class_name, prop, flags)


def get_tag(node: Optional[Dict[str, Any]]) -> Optional[SchemaTag]:
    """Return the tag attached to a schema node, or None."""
    if not node:
        return None
    text = node.get(TAG_EXTENSION)
    if text is None:
        match = _DESCRIPTION_TAG.search(node.get("description") or "")
        if match is None:
            return None
        text = match.group(1)
    return parse_tag(str(text))
