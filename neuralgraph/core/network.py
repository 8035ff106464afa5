"""Layered neuron graph and the multilayer perceptron builder."""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

import numpy as np

from .activations import IDENTITY, RELU, Activation
from .errors import DimensionMismatchError
from .initializers import Initializer
from .neurons import InputNeuron, Neuron
from .types import Array, ModelDescription

logger = logging.getLogger(__name__)

Layer = List[Neuron]


class NeuralNetwork:
    """Feed-forward network of explicitly wired neurons.

    Layer 0 holds the input neurons; every later neuron may only read from
    neurons in an earlier layer.
    """

    def __init__(self, layers: Sequence[Sequence[Neuron]]) -> None:
        self.layers: List[Layer] = [list(layer) for layer in layers]
        self._validate()
        self._targets: Dict[Neuron, List[Neuron]] = {
            neuron: [] for layer in self.layers for neuron in layer
        }
        for layer in self.layers[1:]:
            for neuron in layer:
                for source in neuron.inputs:
                    self._targets[source].append(neuron)

    def _validate(self) -> None:
        if len(self.layers) < 2:
            raise ValueError("A network needs an input layer and at least one more layer")
        seen: set[int] = set()
        for idx, layer in enumerate(self.layers):
            if not layer:
                raise ValueError(f"Layer {idx} is empty")
            for neuron in layer:
                is_input = isinstance(neuron, InputNeuron)
                if idx == 0 and not is_input:
                    raise ValueError(f"Layer 0 may only hold input neurons, got {neuron!r}")
                if idx > 0 and is_input:
                    raise ValueError(f"Input neuron {neuron!r} found in layer {idx}")
                for source in neuron.inputs:
                    if id(source) not in seen:
                        raise ValueError(
                            f"{neuron.name} reads from {source.name}, "
                            "which is not in an earlier layer"
                        )
            seen.update(id(neuron) for neuron in layer)

    # ------------------------------------------------------------------
    # Shape

    def depth(self) -> int:
        """Index of the output layer."""

        return len(self.layers) - 1

    def width(self, layer: int) -> int:
        return len(self.layers[layer])

    def arity(self) -> int:
        return self.width(0)

    def co_arity(self) -> int:
        return self.width(self.depth())

    def neuron(self, layer: int, index: int) -> Neuron:
        return self.layers[layer][index]

    def neurons(self) -> List[Neuron]:
        return [neuron for layer in self.layers for neuron in layer]

    def trainable_neurons(self) -> List[Neuron]:
        return [neuron for layer in self.layers[1:] for neuron in layer]

    @property
    def output_activation(self) -> Activation:
        """Activation of the first output neuron."""

        return self.layers[-1][0].activation

    @property
    def output_activations(self) -> List[Activation]:
        return [neuron.activation for neuron in self.layers[-1]]

    def describe(self) -> ModelDescription:
        return ModelDescription(
            layer_dims=[len(layer) for layer in self.layers],
            activations=[
                [neuron.activation.name for neuron in layer] for layer in self.layers[1:]
            ],
            parameters=self.parameter_count(),
        )

    # ------------------------------------------------------------------
    # Graph queries

    def output_connections(self, layer: int, index: int) -> Dict[Neuron, float]:
        """Map every consumer of ``neuron(layer, index)`` to its edge weight."""

        source = self.neuron(layer, index)
        connections: Dict[Neuron, float] = {}
        for target in self._targets[source]:
            weight = target.weight_for(source)
            if weight is not None:
                connections[target] = weight
        return connections

    def fan_out(self, neuron: Neuron) -> int:
        return len(self._targets.get(neuron, ()))

    # ------------------------------------------------------------------
    # Evaluation

    def estimate(self, inputs: Sequence[float] | Array) -> Array:
        values = np.asarray(inputs, dtype=np.float64).reshape(-1)
        if values.shape[0] != self.arity():
            raise DimensionMismatchError(
                f"Expected {self.arity()} inputs, got {values.shape[0]}"
            )
        for neuron in self.neurons():
            neuron.deactivate()
        for neuron, value in zip(self.layers[0], values):
            neuron.set_input_value(float(value))
        for layer in self.layers[1:]:
            for neuron in layer:
                neuron.activate()
        return np.array([neuron.output for neuron in self.layers[-1]], dtype=np.float64)

    def reset(self) -> None:
        for neuron in self.trainable_neurons():
            neuron.reset()

    # ------------------------------------------------------------------
    # Parameters

    def init(self, initializer: Initializer) -> None:
        for neuron in self.trainable_neurons():
            initializer.initialize(neuron, fan_out=self.fan_out(neuron))
        logger.debug(
            "Initialized %d neurons with %s", len(self.trainable_neurons()), initializer.name
        )

    def parameter_count(self) -> int:
        return sum(neuron.parameter_count() for neuron in self.trainable_neurons())

    def parameters(self) -> Array:
        """Flattened copy of all weights and biases in layer/neuron order."""

        chunks = [neuron.parameters() for neuron in self.trainable_neurons()]
        if not chunks:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate(chunks)

    def set_parameters(self, values: Sequence[float] | Array) -> None:
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        if values.shape[0] != self.parameter_count():
            raise DimensionMismatchError(
                f"Expected {self.parameter_count()} parameters, got {values.shape[0]}"
            )
        offset = 0
        for neuron in self.trainable_neurons():
            count = neuron.parameter_count()
            neuron.set_parameters(values[offset : offset + count])
            offset += count

    def dump_node_outputs(self) -> str:
        lines = []
        for idx, layer in enumerate(self.layers):
            for neuron in layer:
                lines.append(f"[{idx}] {neuron.describe()}")
        text = "\n".join(lines)
        logger.debug("Node outputs:\n%s", text)
        return text

    def __repr__(self) -> str:
        dims = "x".join(str(len(layer)) for layer in self.layers)
        return f"NeuralNetwork({dims})"


def multilayer_perceptron(
    layer_dims: Sequence[int],
    hidden_activation: Activation = RELU,
    output_activation: Activation = IDENTITY,
) -> NeuralNetwork:
    """Build a fully connected network with the given layer widths.

    ``layer_dims`` lists the input width first and the output width last.
    """

    dims = [int(d) for d in layer_dims]
    if len(dims) < 2:
        raise ValueError("layer_dims needs at least an input and an output width")
    if any(d <= 0 for d in dims):
        raise ValueError(f"Layer widths must be positive, got {dims}")

    layers: List[Layer] = [[InputNeuron(f"Input({i})") for i in range(dims[0])]]
    last = len(dims) - 1
    for depth in range(1, len(dims)):
        previous = layers[-1]
        if depth == last:
            layer = [
                Neuron(f"Output({depth},{i})", previous, output_activation)
                for i in range(dims[depth])
            ]
        else:
            layer = [
                Neuron(f"Hidden({depth},{i})", previous, hidden_activation)
                for i in range(dims[depth])
            ]
        layers.append(layer)
    network = NeuralNetwork(layers)
    logger.debug("Built %r", network)
    return network


__all__ = ["Layer", "NeuralNetwork", "multilayer_perceptron"]
