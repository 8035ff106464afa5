"""Losses, optimizers and training loops."""

from .losses import REGISTRY as LOSSES
from .optimizers import Adam, GradientDescent
from .trainer import Trainer

__all__ = ["Adam", "GradientDescent", "LOSSES", "Trainer"]
