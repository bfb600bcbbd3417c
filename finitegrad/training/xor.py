import numpy as np
from matplotlib import pyplot as plt

from finitegrad.nn import Network, make_rng
from finitegrad.training.core import TrainingConfig, cost, print_predictions, train
from finitegrad.training.gates import XOR, gate_samples, perceptron


def plot_costs(histories: dict[str, list[float]], path=None):
    """Plot cost against training step, one curve per run."""
    fig, ax = plt.subplots(figsize=(5, 4))
    for label, costs in histories.items():
        ax.plot(range(len(costs)), costs, label=label)
    ax.set_xlabel("Training iteration")
    ax.set_ylabel("Cost")
    ax.set_title("Cost during training")
    ax.legend()
    plt.tight_layout()
    if path is None:
        plt.show()
    else:
        fig.savefig(path, dpi=100)
    plt.close(fig)


def plot_decision_surface(network: Network, path=None, resolution: int = 20):
    """
    Draw the network output over the unit square, with the four XOR
    points on top. Only makes sense for networks with two inputs.
    """
    assert network.n_inputs == 2
    padding = 0.1
    xx, yy = np.meshgrid(
        np.linspace(-padding, 1 + padding, resolution),
        np.linspace(-padding, 1 + padding, resolution),
    )
    outputs = [network([x, y])[0] for x, y in zip(xx.ravel(), yy.ravel())]
    outputs_np = np.array(outputs).reshape(xx.shape)

    samples = gate_samples(XOR)
    points = np.array(samples.inputs)
    labels = np.array(samples.expected)[:, 0]

    fig = plt.figure(figsize=(5, 5))
    plt.contourf(xx, yy, outputs_np, alpha=0.3, cmap="jet")
    plt.scatter(points[:, 0], points[:, 1], c=labels, s=40, cmap=plt.cm.coolwarm)
    if path is None:
        plt.show()
    else:
        fig.savefig(path, dpi=100)
    plt.close(fig)


def main():
    # One sigmoid unit draws a single line through the plane and can't
    # separate XOR; a hidden layer can.
    config = TrainingConfig(learning_rate=1.0, epsilon=1e-2, iterations=20_000, log_every=5_000)
    samples = gate_samples(XOR)
    seed = make_rng().randrange(2**32)

    single = perceptron(seed)
    single_costs = train(single, samples, config)

    layered = Network([2, 2, 1], make_rng(seed))
    layered_costs = train(layered, samples, config)

    print(f"Single unit: cost = {cost(single, samples)}")
    print_predictions(single)
    print(f"2-2-1 network: cost = {cost(layered, samples)}")
    print_predictions(layered)
    layered.print_network()

    plot_costs({"single unit": single_costs, "2-2-1": layered_costs})
    plot_decision_surface(layered)


if __name__ == "__main__":
    main()
