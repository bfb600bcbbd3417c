import math
from dataclasses import dataclass
from typing import Sequence


def sigmoid(x: float) -> float:
    """Logistic function, 1 / (1 + e^-x).

    Written in two branches so that large negative inputs don't overflow
    math.exp.
    """
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


@dataclass(frozen=True)
class ExternalVector:
    """Input source of layer 0: the network's shared external input buffer."""

    buffer: list[float]


@dataclass(frozen=True, eq=True)
class PreviousLayer:
    """Input source of layer L > 0: the units [start, stop) of layer L - 1."""

    start: int
    stop: int

    def __len__(self):
        return self.stop - self.start


class Unit:
    """A single neuron: sigmoid(sum(w_i * x_i) + b).

    The output of the last evaluation is kept in `cache` until it is
    explicitly cleared, so that a unit read by several units of the next
    layer is only computed once per pass.
    """

    def __init__(
        self,
        index: int,
        layer: int,
        source: ExternalVector | PreviousLayer | None,
        n_inputs: int,
        weights: list[float],
        bias: float,
    ):
        if len(weights) != n_inputs:
            raise RuntimeError(f"Expected {n_inputs} weights, got {len(weights)}")
        self.index = index
        self.layer = layer
        self.source = source
        self.n_inputs = n_inputs
        self.weights = [float(w) for w in weights]
        self.bias = float(bias)
        self.grad_weights = [0.0] * n_inputs
        self.grad_bias = 0.0
        self.activation = sigmoid
        self.cache: float | None = None

    def __repr__(self):
        return "Unit(index={}, layer={}, n_inputs={}, bias={}, cache={})".format(
            self.index, self.layer, self.n_inputs, self.bias, self.cache
        )

    def clear_cache(self):
        self.cache = None

    def inputs(self, units: Sequence["Unit"]) -> list[float]:
        """Resolve the values this unit reads, evaluating the previous layer
        if needed."""
        source = self.source
        if source is None:
            raise RuntimeError(f"Unit {self.index} has no input source")
        if isinstance(source, ExternalVector):
            values = source.buffer
        elif isinstance(source, PreviousLayer):
            values = [units[j].evaluate(units) for j in range(source.start, source.stop)]
        else:
            raise TypeError(f"Unit {self.index}: unknown input source {source!r}")

        if len(values) != self.n_inputs:
            raise RuntimeError(
                f"Unit {self.index}: expected {self.n_inputs} inputs, got {len(values)}"
            )
        return values

    def evaluate(self, units: Sequence["Unit"]) -> float:
        """
        Returns the output of the unit. `units` is the flat collection the
        unit lives in, used to resolve a PreviousLayer source.

        Evaluation recurses into the previous layer, which never points
        forward, so the recursion depth is bounded by the number of layers.
        """
        if self.cache is not None:
            return self.cache

        linear_combination = self.bias
        for w, x in zip(self.weights, self.inputs(units)):
            linear_combination += w * x
        self.cache = self.activation(linear_combination)
        return self.cache
