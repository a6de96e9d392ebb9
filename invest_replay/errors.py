"""Exception types raised by the replay core."""
from __future__ import annotations


class InvestReplayError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(InvestReplayError, ValueError):
    """Invalid simulation or playback input, rejected before any work runs."""


class ComputationDegenerate(InvestReplayError, ArithmeticError):
    """A ratio is undefined, e.g. a return computed on zero invested capital."""


class AlreadyCapturing(InvestReplayError, RuntimeError):
    """A capture was requested while another one is still in progress."""


class InvalidTransition(InvestReplayError, RuntimeError):
    """The playback clock cannot perform the requested transition."""
