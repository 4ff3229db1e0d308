"""Exception hierarchy for scene_kinematics.

Loader and chain errors abort the call that raised them. Forward kinematics and
synchronization errors abort only the current pass and leave the scene graph as
it was before the pass started.
"""

from typing import Optional, Sequence, Union


class SceneKinematicsError(Exception):
    """Base error for the package."""


class ConfigError(SceneKinematicsError):
    """Invalid or incomplete synchronizer configuration."""


# Robot description loading

class LoadError(SceneKinematicsError):
    pass


class ParseError(LoadError):
    """The robot description is malformed."""


class NoRootError(LoadError):
    """The description has zero or several root links."""


class MissingGeometryError(LoadError):
    """One or more referenced meshes could not be located.

    Kinematics are unaffected, so the graph built without those meshes is
    attached to the error for callers that want to continue without visuals.
    """

    def __init__(self, missing: Sequence[str], graph=None):
        self.missing = tuple(missing)
        self.graph = graph
        super().__init__(f"Could not locate mesh geometry: {', '.join(self.missing)}")


# Chain extraction

class ChainError(SceneKinematicsError):
    pass


class UnknownLinkError(ChainError):
    def __init__(self, link_name: str):
        self.link_name = link_name
        super().__init__(f"Link '{link_name}' not found in kinematic graph")


class NoPathError(ChainError):
    def __init__(self, base_link: str, tip_link: str):
        self.base_link = base_link
        self.tip_link = tip_link
        super().__init__(f"Link '{tip_link}' is not a descendant of '{base_link}'")


# Forward kinematics

class FKError(SceneKinematicsError):
    pass


class ConfigurationLengthMismatchError(FKError):
    def __init__(self, expected: int, got: Union[int, str]):
        self.expected = expected
        self.got = got
        super().__init__(f"Expected {expected} joint values, got {got}")


class SingularChainError(FKError):
    """An empty chain was solved where at least one pose is required."""


# Scene synchronization

class SyncError(SceneKinematicsError):
    pass


class UnmappedLinkError(SyncError):
    def __init__(self, link_name: str, detail: Optional[str] = None):
        self.link_name = link_name
        message = f"Link '{link_name}' has no scene mapping"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
