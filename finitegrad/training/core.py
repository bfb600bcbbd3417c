import itertools
from dataclasses import dataclass

import tqdm

from finitegrad.nn import Network, TrainingSet


@dataclass(eq=True, frozen=True)
class TrainingConfig:
    learning_rate: float = 1.0
    epsilon: float = 1e-3
    iterations: int = 10_000
    log_every: int = 1_000  # 0 to stay quiet
    progress: bool = False

    def __post_init__(self):
        if self.learning_rate <= 0:
            raise RuntimeError(f"Expected a positive learning rate, got {self.learning_rate}")
        if self.epsilon <= 0:
            raise RuntimeError(f"Expected a positive epsilon, got {self.epsilon}")
        if self.iterations < 0:
            raise RuntimeError(f"Expected a non-negative iteration count, got {self.iterations}")


def cost(network: Network, samples: TrainingSet) -> float:
    """
    Mean squared error of the network over all samples and all output units.
    """
    samples.check_compatible(network)
    total = 0.0
    for inputs, expected in samples:
        outputs = network(inputs)
        total += sum((out - exp) ** 2 for out, exp in zip(outputs, expected))
    return total / (len(samples) * network.n_outputs)


def estimate_gradients(network: Network, samples: TrainingSet, epsilon: float) -> float:
    """
    Estimate d(cost)/d(param) for every weight and bias by forward
    differences, (cost(p + eps) - cost(p)) / eps, perturbing one parameter
    at a time and putting it back afterwards.

    Fills in unit.grad_weights and unit.grad_bias; the parameters themselves
    are left exactly as they were. Returns the baseline cost.
    """
    baseline = cost(network, samples)
    for unit in network.units:
        for i in range(unit.n_inputs):
            saved = unit.weights[i]
            unit.weights[i] += epsilon
            unit.grad_weights[i] = (cost(network, samples) - baseline) / epsilon
            unit.weights[i] = saved

        saved = unit.bias
        unit.bias += epsilon
        unit.grad_bias = (cost(network, samples) - baseline) / epsilon
        unit.bias = saved
    return baseline


def apply_gradients(network: Network, learning_rate: float):
    for unit in network.units:
        for i in range(unit.n_inputs):
            unit.weights[i] -= unit.grad_weights[i] * learning_rate
        unit.bias -= unit.grad_bias * learning_rate


def train_step(
    network: Network, samples: TrainingSet, learning_rate: float, epsilon: float
) -> float:
    # All gradients must be estimated against the same, unmodified
    # parameters before any of them moves.
    baseline = estimate_gradients(network, samples, epsilon)
    apply_gradients(network, learning_rate)
    return baseline


def train(network: Network, samples: TrainingSet, config: TrainingConfig) -> list[float]:
    """
    Run `config.iterations` steps of gradient descent.

    Returns the cost measured at the start of every step.
    """
    samples.check_compatible(network)
    costs = []
    steps = range(config.iterations)
    if config.progress:
        steps = tqdm.tqdm(steps, total=config.iterations)
    for step in steps:
        costs.append(train_step(network, samples, config.learning_rate, config.epsilon))
        if config.log_every and step % config.log_every == 0:
            print(f"Step {step}: cost = {costs[-1]}")

    if config.log_every:
        print(f"Final cost = {cost(network, samples)}")
    return costs


def predictions(network: Network, n_inputs: int | None = None) -> list[tuple[tuple[int, ...], list[float]]]:
    """
    Returns the network outputs for every point of {0, 1}^n_inputs, in
    lexicographic order.
    """
    if n_inputs is None:
        n_inputs = network.n_inputs
    return [
        (bits, network(bits)) for bits in itertools.product((0, 1), repeat=n_inputs)
    ]


def print_predictions(network: Network, n_inputs: int | None = None):
    for bits, outputs in predictions(network, n_inputs):
        inputs = " ".join(str(b) for b in bits)
        formatted = ", ".join(f"{out:f}" for out in outputs)
        print(f"{inputs} -> {formatted}")
