import enum

from settlement.errors import InvalidTransition


class StrEnum(str, enum.Enum):
    def __str__(self):
        return self.value


def enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Lifecycle:
    """Transition table for a status column: only listed from -> to pairs are legal."""

    def __init__(self, entity, transitions):
        self.entity = entity
        self.transitions = {
            current: frozenset(targets) for current, targets in transitions.items()
        }

    def allowed(self, current):
        return self.transitions.get(current, frozenset())

    def can(self, current, target):
        return target in self.allowed(current)

    def is_final(self, status):
        return not self.allowed(status)

    def check(self, current, target):
        if not self.can(current, target):
            raise InvalidTransition(self.entity, current, target)
