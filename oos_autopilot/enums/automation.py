from enum import Enum


class RunIntervalUnit(str, Enum):
    minutes = "minutes"
    days = "days"


class RunKind(str, Enum):
    MANUAL = "MANUAL"
    AUTO = "AUTO"


class LogAction(str, Enum):
    DEACTIVATE = "DEACTIVATE"
    REACTIVATE = "REACTIVATE"


class LogMethod(str, Enum):
    MANUAL = "MANUAL"
    AUTO = "AUTO"
    WEBHOOK = "WEBHOOK"


class ProductStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DRAFT = "DRAFT"
    ARCHIVED = "ARCHIVED"


IDLE = "IDLE"
SCANNING = "SCANNING"
