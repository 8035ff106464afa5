"""neuralgraph public API."""

from .core import activations, initializers  # noqa: F401
from .core.errors import (
    DimensionMismatchError,
    InvalidHyperparameterError,
    UnactivatedNeuronError,
    UnsupportedActivationError,
    UnsupportedCombinationError,
)
from .core.network import NeuralNetwork, multilayer_perceptron
from .core.neurons import InputNeuron, Neuron
from .core.types import DataSet, RunResult, Sample
from .training.losses import BinaryCrossEntropy, Mean, Scaled, SquaredError
from .training.optimizers import Adam, GradientDescent
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer

__all__ = [
    "Adam",
    "BinaryCrossEntropy",
    "DataSet",
    "DimensionMismatchError",
    "GradientDescent",
    "InputNeuron",
    "InvalidHyperparameterError",
    "Mean",
    "NeuralNetwork",
    "Neuron",
    "RunResult",
    "Sample",
    "Scaled",
    "SquaredError",
    "Trainer",
    "UnactivatedNeuronError",
    "UnsupportedActivationError",
    "UnsupportedCombinationError",
    "activations",
    "initializers",
    "load_preset",
    "multilayer_perceptron",
    "presets",
    "run_pipeline",
]
