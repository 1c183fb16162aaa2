"""
Error taxonomy shared by the service layer and the API.

Service modules subclass these next to the code that raises them (e.g.
`GroupNotFound` in `studygroup.service.groups`); the API maps each base class
to a status code.
"""


class StudyGroupError(Exception):
    """
    Base class for every error raised by the coordination engine. `reason`
    is a machine-readable tag used by the membership coordinator when it turns
    an error into a `JoinResult`.
    """

    reason: str | None = None

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.__class__.__name__


class ValidationError(StudyGroupError):
    pass


class NotFoundError(StudyGroupError):
    reason = "not_found"


class PermissionDeniedError(StudyGroupError):
    pass


class ConflictError(StudyGroupError):
    pass


class InternalError(StudyGroupError):
    pass
