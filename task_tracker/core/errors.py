class TaskError(Exception):
    """Base class for task domain errors."""


class InvalidFieldValue(TaskError):
    """A patch or create payload carries a value the field cannot hold."""

    def __init__(self, field: str, value):
        self.field = field
        self.value = value
        super().__init__(f"invalid {field} value: {value!r}")


class InvalidEnumValue(InvalidFieldValue):
    """A status or priority token is not a member of its enum."""


class TaskAccessDenied(TaskError):
    def __init__(self, task_id: int):
        self.task_id = task_id
        super().__init__("access denied")
