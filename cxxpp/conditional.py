# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the conditional-compilation state machine, which tracks nested
#if/#elif/#else/#endif groups and decides whether code is emitted.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

log = logging.getLogger(__name__)


class BranchState(Enum):
    # No branch of the group has been taken yet.
    AWAITING = "awaiting"
    # The current branch is taken.
    ACTIVE = "active"
    # A previous branch was taken; the rest of the group is skipped.
    DONE = "done"


@dataclass
class ConditionalFrame:
    """
    Represents one open #if group.
    """

    state: BranchState
    parent_active: bool
    seen_else: bool = False

    @property
    def branch_taken(self) -> bool:
        return self.state != BranchState.AWAITING

    @property
    def in_active_branch(self) -> bool:
        return self.parent_active and self.state == BranchState.ACTIVE


class ConditionalStack:
    """
    Represents the stack of open conditional groups.

    Conditions are passed as callables, and are only called when their
    result can change which branch is taken.
    """

    def __init__(self) -> None:
        self.frames: list[ConditionalFrame] = []

    @property
    def active(self) -> bool:
        """
        True if code at the current position should be emitted.
        """
        if not self.frames:
            return True
        return self.frames[-1].in_active_branch

    @property
    def depth(self) -> int:
        return len(self.frames)

    def if_(self, condition: Callable[[], bool]) -> None:
        """
        Open a new group for an #if, #ifdef or #ifndef directive.
        """
        parent_active = self.active
        if parent_active and condition():
            state = BranchState.ACTIVE
        else:
            state = BranchState.AWAITING
        self.frames.append(ConditionalFrame(state, parent_active))

    def elif_(self, condition: Callable[[], bool]) -> bool:
        """
        Handle an #elif, #elifdef or #elifndef directive.
        Returns False if there is no open group.
        """
        if not self.frames:
            return False
        frame = self.frames[-1]
        if frame.seen_else:
            log.warning("#elif after #else")
            frame.state = BranchState.DONE
            return True
        if frame.state == BranchState.ACTIVE:
            frame.state = BranchState.DONE
        elif (
            frame.state == BranchState.AWAITING
            and frame.parent_active
            and condition()
        ):
            frame.state = BranchState.ACTIVE
        return True

    def else_(self) -> bool:
        """
        Handle an #else directive.
        Returns False if there is no open group.
        """
        if not self.frames:
            return False
        frame = self.frames[-1]
        if frame.seen_else:
            log.warning("#else after #else")
            frame.state = BranchState.DONE
            return True
        frame.seen_else = True
        if frame.state == BranchState.ACTIVE:
            frame.state = BranchState.DONE
        elif frame.state == BranchState.AWAITING:
            frame.state = BranchState.ACTIVE
        return True

    def endif(self) -> bool:
        """
        Handle an #endif directive.
        Returns False if there is no open group.
        """
        if not self.frames:
            return False
        self.frames.pop()
        return True

    def truncate(self, depth: int) -> int:
        """
        Close all groups opened above `depth`.
        Returns the number of groups that were closed.
        """
        closed = max(0, len(self.frames) - depth)
        del self.frames[depth:]
        return closed
