"""
Optional platform capabilities.

A capability is probed once at startup and then carried around as one of two
variants. Call sites branch on the variant instead of re-probing:

    if isinstance(cap, Available):
        cap.adapter.speak(text)
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

A = TypeVar("A")


@dataclass(frozen=True)
class Available(Generic[A]):
    adapter: A

    @property
    def available(self) -> bool:
        return True


@dataclass(frozen=True)
class Unavailable:
    reason: str = ""

    @property
    def available(self) -> bool:
        return False


Capability = Union[Available[A], Unavailable]


def adapter_of(cap: "Capability") -> Optional[A]:
    return cap.adapter if isinstance(cap, Available) else None
