"""
Life stack router.

A document joins the first stack, in the caller's order, that has any
keyword contained in ``"{title} {category}"`` (case-insensitive).  Later
stacks are not considered even if they match more keywords.  Blank
keywords never match.
"""
import uuid
from typing import Protocol

from grylin.schemas.life_stack import LifeStackResponse


class Routable(Protocol):
    title: str
    category: str


def routing_text(document: Routable) -> str:
    return f"{document.title} {document.category}".lower()


def stack_matches(stack: LifeStackResponse, text: str) -> bool:
    return any(k.strip() and k.strip().lower() in text for k in stack.keywords)


def route(document: Routable, stacks: list[LifeStackResponse]) -> uuid.UUID | None:
    text = routing_text(document)
    for stack in stacks:
        if stack_matches(stack, text):
            return stack.id
    return None
