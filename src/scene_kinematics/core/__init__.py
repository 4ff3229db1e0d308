"""Core kinematic data structures for Scene Kinematics.

This module provides the immutable link/joint tree loaded from a robot
description and the chain representation solved by forward kinematics.
"""

from .kinematic_graph import Joint, JointType, KinematicGraph, Link
from .chain_model import Chain

__all__ = ["Chain", "Joint", "JointType", "KinematicGraph", "Link"]
