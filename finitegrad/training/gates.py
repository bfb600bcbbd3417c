"""
Train a single sigmoid unit to behave like a logic gate.

Each table row is (x_0, x_1, expected).
"""

from finitegrad.nn import Network, TrainingSet, make_rng
from finitegrad.training.core import TrainingConfig, print_predictions, train

AND = [
    [0, 0, 0],
    [0, 1, 0],
    [1, 0, 0],
    [1, 1, 1],
]

OR = [
    [0, 0, 0],
    [0, 1, 1],
    [1, 0, 1],
    [1, 1, 1],
]

NAND = [
    [0, 0, 1],
    [0, 1, 1],
    [1, 0, 1],
    [1, 1, 0],
]

# Not linearly separable, see xor.py
XOR = [
    [0, 0, 0],
    [0, 1, 1],
    [1, 0, 1],
    [1, 1, 0],
]

GATES = {"and": AND, "or": OR, "nand": NAND, "xor": XOR}


def gate_samples(table: list[list[int]]) -> TrainingSet:
    return TrainingSet.from_rows(table, n_inputs=2)


def perceptron(seed: int | None = None) -> Network:
    """A network made of one unit reading two inputs."""
    return Network([1], make_rng(seed), n_inputs=2)


def train_gate(
    table: list[list[int]], config: TrainingConfig, seed: int | None = None
) -> tuple[Network, list[float]]:
    network = perceptron(seed)
    costs = train(network, gate_samples(table), config)
    return network, costs


def main():
    config = TrainingConfig(learning_rate=1.0, epsilon=1e-3, iterations=20_000, log_every=5_000)
    for name in ("and", "or", "nand"):
        print(f"== {name.upper()}")
        network, _ = train_gate(GATES[name], config)
        network.print_network()
        print_predictions(network)


if __name__ == "__main__":
    main()
