import random

import matplotlib

matplotlib.use("Agg")

import torch

import pytest
from hypothesis import given, strategies as st, settings

from finitegrad.engine import sigmoid
from finitegrad.nn import Network, TrainingSet
from finitegrad.training.core import (
    TrainingConfig,
    apply_gradients,
    cost,
    estimate_gradients,
    predictions,
    print_predictions,
    train,
    train_step,
)
from finitegrad.training.gates import AND, OR, NAND, XOR, gate_samples, perceptron, train_gate
from finitegrad.training.xor import plot_costs, plot_decision_surface

QUIET = dict(log_every=0)


def one_unit_network(weight: float, bias: float) -> Network:
    network = Network([1], random.Random(0))
    unit = network.units[0]
    unit.weights = [weight]
    unit.bias = bias
    return network


def parameters(network: Network) -> list[float]:
    return [p for unit in network.units for p in unit.weights + [unit.bias]]


def test_cost_by_hand():
    network = one_unit_network(0.5, -0.2)
    samples = TrainingSet(inputs=[[0.8], [0.0]], expected=[[1.0], [0.0]])

    expected = ((sigmoid(0.5 * 0.8 - 0.2) - 1.0) ** 2 + sigmoid(-0.2) ** 2) / 2
    assert pytest.approx(cost(network, samples)) == expected


def test_cost_averages_over_outputs():
    network = Network([2, 2], random.Random(3))
    samples = TrainingSet(inputs=[[1, 0]], expected=[[0, 1]])

    out = network([1, 0])
    expected = (out[0] ** 2 + (out[1] - 1) ** 2) / 2
    assert pytest.approx(cost(network, samples)) == expected


def test_cost_dimension_mismatch():
    network = Network([3, 1], random.Random(0))
    with pytest.raises(RuntimeError):
        cost(network, gate_samples(AND))


@settings(max_examples=30, deadline=None)
@given(
    seed=st.integers(min_value=0, max_value=2**32),
    rows=st.lists(
        st.lists(st.floats(min_value=0, max_value=1), min_size=3, max_size=3),
        min_size=1,
        max_size=6,
    ),
    scale=st.floats(min_value=-20, max_value=20),
)
def test_cost_range(seed, rows, scale):
    network = Network([2, 2, 1], random.Random(seed))
    for unit in network.units:
        unit.weights = [w * scale for w in unit.weights]
    samples = TrainingSet.from_rows(rows, n_inputs=2)

    c = cost(network, samples)
    assert 0.0 <= c <= 1.0
    assert cost(network, samples) == c


def test_gradient_by_hand():
    w, b, x, y, eps = 0.5, -0.2, 0.8, 1.0, 1e-3
    network = one_unit_network(w, b)
    samples = TrainingSet(inputs=[[x]], expected=[[y]])

    baseline = estimate_gradients(network, samples, eps)

    def c(w, b):
        return (sigmoid(w * x + b) - y) ** 2

    unit = network.units[0]
    assert pytest.approx(baseline) == c(w, b)
    assert pytest.approx(unit.grad_weights[0]) == (c(w + eps, b) - c(w, b)) / eps
    assert pytest.approx(unit.grad_bias) == (c(w, b + eps) - c(w, b)) / eps
    # The output is below the target, so a bigger weight lowers the cost.
    assert unit.grad_weights[0] < 0
    assert unit.grad_bias < 0


def test_gradient_sign_when_above_target():
    network = one_unit_network(0.5, 0.3)
    samples = TrainingSet(inputs=[[1.0]], expected=[[0.0]])

    estimate_gradients(network, samples, 1e-3)
    assert network.units[0].grad_weights[0] > 0
    assert network.units[0].grad_bias > 0


def test_estimate_gradients_leaves_parameters_alone():
    network = Network([2, 2, 1], random.Random(1))
    before = parameters(network)

    estimate_gradients(network, gate_samples(XOR), 1e-2)

    assert parameters(network) == before


def test_gradients_torch():
    network = Network([2, 3, 1], random.Random(5))
    samples = gate_samples(XOR)
    estimate_gradients(network, samples, 1e-7)

    params = []
    for unit in network.units:
        w = torch.tensor(unit.weights, dtype=torch.float64, requires_grad=True)
        b = torch.tensor(unit.bias, dtype=torch.float64, requires_grad=True)
        params.append((w, b))

    def forward(inputs):
        layer_in = torch.tensor(inputs, dtype=torch.float64)
        for layer in range(network.n_layers):
            start, stop = network.offsets[layer], network.offsets[layer + 1]
            layer_in = torch.stack(
                [torch.sigmoid((w * layer_in).sum() + b) for w, b in params[start:stop]]
            )
        return layer_in

    loss = sum(
        ((forward(inputs) - torch.tensor(expected, dtype=torch.float64)) ** 2).sum()
        for inputs, expected in samples
    ) / (len(samples) * network.n_outputs)
    loss.backward()

    for unit, (w, b) in zip(network.units, params):
        assert unit.grad_weights == pytest.approx(w.grad.tolist(), rel=1e-3, abs=1e-6)
        assert unit.grad_bias == pytest.approx(b.grad.item(), rel=1e-3, abs=1e-6)


def test_apply_gradients():
    network = one_unit_network(0.5, -0.2)
    unit = network.units[0]
    unit.grad_weights = [0.25]
    unit.grad_bias = -1.0

    apply_gradients(network, 0.1)

    assert pytest.approx(unit.weights[0]) == 0.475
    assert pytest.approx(unit.bias) == -0.1


def test_train_step_lowers_cost():
    network = Network([2, 2, 1], random.Random(2))
    samples = gate_samples(OR)

    baseline = train_step(network, samples, learning_rate=0.5, epsilon=1e-4)

    assert cost(network, samples) < baseline


@pytest.mark.parametrize(
    "kwargs",
    [dict(learning_rate=0), dict(epsilon=-1e-3), dict(iterations=-1)],
)
def test_config_validation(kwargs):
    with pytest.raises(RuntimeError):
        TrainingConfig(**kwargs)


def test_train_history(capsys):
    network = perceptron(seed=0)
    samples = gate_samples(OR)
    config = TrainingConfig(iterations=50, log_every=25)

    costs = train(network, samples, config)

    assert len(costs) == 50
    assert costs[-1] < costs[0]
    out = capsys.readouterr().out
    assert "Step 0: cost = " in out
    assert "Step 25: cost = " in out
    assert "Final cost = " in out


def test_train_with_progress_bar(capsys):
    network = perceptron(seed=0)
    costs = train(network, gate_samples(OR), TrainingConfig(iterations=5, progress=True, **QUIET))

    assert len(costs) == 5
    assert capsys.readouterr().out == ""


def test_train_no_iterations():
    network = perceptron(seed=0)
    assert train(network, gate_samples(OR), TrainingConfig(iterations=0, **QUIET)) == []


def test_predictions_order():
    network = perceptron(seed=0)
    table = predictions(network)

    assert [bits for bits, _ in table] == [(0, 0), (0, 1), (1, 0), (1, 1)]
    assert all(len(outputs) == 1 for _, outputs in table)
    assert len(predictions(Network([3, 1], random.Random(0)))) == 8


def test_print_predictions(capsys):
    print_predictions(perceptron(seed=0))
    lines = capsys.readouterr().out.splitlines()

    assert len(lines) == 4
    assert lines[0].startswith("0 0 -> ")
    assert lines[3].startswith("1 1 -> ")


@pytest.mark.parametrize("table", [AND, OR, NAND])
def test_gate_converges(table):
    config = TrainingConfig(learning_rate=1.0, epsilon=1e-3, iterations=20_000, **QUIET)
    network, costs = train_gate(table, config, seed=0)

    assert cost(network, gate_samples(table)) < 0.05
    assert costs[-1] < costs[0]
    for (bits, outputs), row in zip(predictions(network), table):
        assert list(bits) == row[:2]
        assert round(outputs[0]) == row[2]


def test_xor_needs_a_hidden_layer():
    samples = gate_samples(XOR)

    # OR and NAND in the first layer, AND of the two on top.
    network = Network([2, 1], random.Random(0))
    network.node_at(0, 0).weights, network.node_at(0, 0).bias = [20.0, 20.0], -10.0
    network.node_at(0, 1).weights, network.node_at(0, 1).bias = [-20.0, -20.0], 30.0
    network.node_at(1, 0).weights, network.node_at(1, 0).bias = [20.0, 20.0], -30.0
    assert cost(network, samples) < 1e-3

    config = TrainingConfig(learning_rate=1.0, epsilon=1e-2, iterations=20_000, **QUIET)
    single, _ = train_gate(XOR, config, seed=1)
    layered = Network([3, 1], random.Random(1), n_inputs=2)
    train(layered, samples, config)

    assert cost(single, samples) > 0.2
    assert cost(layered, samples) < cost(single, samples)


def test_plots(tmp_path):
    network = Network([2, 1], random.Random(0))
    plot_costs({"a": [0.3, 0.2, 0.1], "b": [0.3, 0.3, 0.3]}, path=tmp_path / "costs.png")
    plot_decision_surface(network, path=tmp_path / "surface.png", resolution=5)

    assert (tmp_path / "costs.png").exists()
    assert (tmp_path / "surface.png").exists()
