import random
import time
from dataclasses import dataclass
from typing import Iterable, Sequence

from graphviz import Digraph

from finitegrad.engine import ExternalVector, PreviousLayer, Unit


def make_rng(seed: int | None = None) -> random.Random:
    """
    Returns the random source used to initialise a network.

    Without a seed, seed from the wall clock and print it, so that a run
    that turns out interesting can be repeated.
    """
    if seed is None:
        seed = time.time_ns()
        print(f"Seed: {seed}")
    return random.Random(seed)


class Network:
    """
    A feed-forward network of sigmoid units.

    All units live in one flat list, layer after layer. Unit i of layer L is
    units[offsets[L] + i]. Layer 0 reads the external input buffer, every
    other layer reads the whole previous layer.
    """

    def __init__(
        self,
        layer_sizes: Sequence[int],
        rng: random.Random,
        n_inputs: int | None = None,
    ):
        layer_sizes = list(layer_sizes)
        if not layer_sizes:
            raise RuntimeError("Expected at least one layer, got none")
        if any(size < 1 for size in layer_sizes):
            raise RuntimeError(f"Layer sizes must be positive, got {layer_sizes}")
        if n_inputs is None:
            n_inputs = layer_sizes[0]
        if n_inputs < 1:
            raise RuntimeError(f"Expected a positive number of inputs, got {n_inputs}")

        self.layer_sizes = layer_sizes
        self.n_inputs = n_inputs
        self.n_outputs = layer_sizes[-1]
        # Written in place by set_inputs, never rebound: layer 0 holds a
        # reference to it.
        self.inputs = [0.0] * n_inputs

        self.offsets = [0]
        for size in layer_sizes:
            self.offsets.append(self.offsets[-1] + size)

        self.units: list[Unit] = []
        for layer, size in enumerate(layer_sizes):
            if layer == 0:
                source = ExternalVector(self.inputs)
                n_layer_inputs = n_inputs
            else:
                source = PreviousLayer(self.offsets[layer - 1], self.offsets[layer])
                n_layer_inputs = layer_sizes[layer - 1]
            for _ in range(size):
                self.units.append(
                    Unit(
                        index=len(self.units),
                        layer=layer,
                        source=source,
                        n_inputs=n_layer_inputs,
                        weights=[rng.random() for _ in range(n_layer_inputs)],
                        bias=rng.random(),
                    )
                )
        assert len(self.units) == self.offsets[-1]

    def __repr__(self):
        return f"Network(n_inputs={self.n_inputs}, layer_sizes={self.layer_sizes})"

    def __len__(self):
        return len(self.units)

    @property
    def n_layers(self) -> int:
        return len(self.layer_sizes)

    def node_at(self, layer: int, index: int) -> Unit:
        if not 0 <= layer < self.n_layers:
            raise RuntimeError(f"Expected a layer in [0, {self.n_layers}), got {layer}")
        if not 0 <= index < self.layer_sizes[layer]:
            raise RuntimeError(
                f"Expected an index in [0, {self.layer_sizes[layer]}) for layer {layer}, got {index}"
            )
        return self.units[self.offsets[layer] + index]

    def units_in_layer(self, layer: int) -> list[Unit]:
        return self.units[self.offsets[layer] : self.offsets[layer + 1]]

    def output_units(self) -> list[Unit]:
        return self.units_in_layer(self.n_layers - 1)

    def parameter_count(self) -> int:
        return sum(unit.n_inputs + 1 for unit in self.units)

    def set_inputs(self, inputs: Sequence[float]):
        if len(inputs) != self.n_inputs:
            raise RuntimeError(f"Expected {self.n_inputs} inputs, got {len(inputs)}")
        self.inputs[:] = [float(x) for x in inputs]

    def clear_cache(self):
        for unit in self.units:
            unit.clear_cache()

    def evaluate(self, unit: Unit) -> float:
        return unit.evaluate(self.units)

    def __call__(self, inputs: Sequence[float]) -> list[float]:
        """
        Returns the output activations for the given inputs, running a fresh
        forward pass.
        """
        self.clear_cache()
        self.set_inputs(inputs)
        return [self.evaluate(unit) for unit in self.output_units()]

    def describe(self) -> str:
        lines = [f"size: {len(self.units)}", f"inputs: {self.inputs}", "units: ["]
        for unit in self.units:
            if isinstance(unit.source, PreviousLayer):
                source = f"units[{unit.source.start}:{unit.source.stop}]"
            else:
                source = "external"
            weights = ", ".join(f"{w:f}" for w in unit.weights)
            cache = "-" if unit.cache is None else f"{unit.cache:f}"
            lines += [
                "  {",
                f"    index: {unit.index}",
                f"    layer: {unit.layer}",
                f"    inputs: {source}",
                f"    weights: [ {weights} ]",
                f"    bias: {unit.bias:f}",
                f"    cache: {cache}",
                "  },",
            ]
        lines.append("]")
        return "\n".join(lines)

    def print_network(self):
        print(self.describe())


@dataclass
class TrainingSet:
    """Pairs of input vectors and the output vectors we expect for them."""

    inputs: list[list[float]]
    expected: list[list[float]]

    def __post_init__(self):
        self.inputs = [[float(x) for x in row] for row in self.inputs]
        self.expected = [[float(y) for y in row] for row in self.expected]
        if len(self.inputs) != len(self.expected):
            raise RuntimeError(
                f"Got {len(self.inputs)} input vectors but {len(self.expected)} expected vectors"
            )
        if not self.inputs:
            raise RuntimeError("Expected at least one sample, got none")
        for name, rows in (("input", self.inputs), ("expected", self.expected)):
            sizes = {len(row) for row in rows}
            if len(sizes) != 1:
                raise RuntimeError(f"All {name} vectors must have the same length, got {sorted(sizes)}")

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[float]], n_inputs: int) -> "TrainingSet":
        """
        Split table rows into inputs and expected outputs: the first
        `n_inputs` columns are the inputs, the rest are the expected outputs.
        """
        rows = [list(row) for row in rows]
        for row in rows:
            if len(row) <= n_inputs:
                raise RuntimeError(
                    f"Expected rows longer than {n_inputs} columns, got {len(row)}"
                )
        return cls(
            inputs=[row[:n_inputs] for row in rows],
            expected=[row[n_inputs:] for row in rows],
        )

    def __len__(self):
        return len(self.inputs)

    def __iter__(self):
        return iter(zip(self.inputs, self.expected))

    @property
    def n_inputs(self) -> int:
        return len(self.inputs[0])

    @property
    def n_outputs(self) -> int:
        return len(self.expected[0])

    def check_compatible(self, network: Network):
        if self.n_inputs != network.n_inputs:
            raise RuntimeError(
                f"Expected {network.n_inputs} inputs per sample, got {self.n_inputs}"
            )
        if self.n_outputs != network.n_outputs:
            raise RuntimeError(
                f"Expected {network.n_outputs} outputs per sample, got {self.n_outputs}"
            )


def build_graph(network: Network) -> Digraph:
    """
    Returns a graphviz drawing of the network: one box per external input,
    one node per unit, and one edge per weight, labelled with its value.
    """
    dot = Digraph(comment="Network Graph", strict=True)
    dot.attr(rankdir="LR")

    for i in range(network.n_inputs):
        dot.node(name=f"x{i}", label=f"x_{i} | {network.inputs[i]:.4f}", shape="box")

    for unit in network.units:
        cache = "-" if unit.cache is None else f"{unit.cache:.4f}"
        dot.node(
            name=f"u{unit.index}",
            label=f"unit {unit.index} | b: {unit.bias:.4f}, out: {cache}",
            shape="ellipse",
        )
        if isinstance(unit.source, PreviousLayer):
            names = [f"u{j}" for j in range(unit.source.start, unit.source.stop)]
        else:
            names = [f"x{i}" for i in range(network.n_inputs)]
        for name, w in zip(names, unit.weights):
            dot.edge(name, f"u{unit.index}", label=f"{w:.4f}")

    return dot


def draw_graph(network: Network, filename: str = "rendered_network"):
    build_graph(network).render(filename, format="png", cleanup=True, view=True)
