import enum


class OwnerType(str, enum.Enum):
    USER = "user"
    GROUP = "group"
