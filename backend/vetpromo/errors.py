"""
Error types shared by the storage adapters and the selection pipeline.

Only `DependencyUnavailable` is an exception. A missing consent row (the
default applies) and an empty candidate pool (`None` is returned) are normal
outcomes and never raise.
"""


class DependencyUnavailable(Exception):
    """
    A store, cache or collaborator could not answer.

    Attributes:
        dependency: Short name of the failing collaborator (e.g. "consent_store")
    """

    def __init__(self, dependency: str, message: str = ""):
        self.dependency = dependency
        super().__init__(f"{dependency} unavailable: {message}" if message else f"{dependency} unavailable")
