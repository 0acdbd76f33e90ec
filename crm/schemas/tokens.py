from dataclasses import dataclass


@dataclass(frozen=True)
class CurrentUser:
    subject: str
    role: str
