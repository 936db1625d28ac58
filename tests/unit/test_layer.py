import numpy as np
import pytest

from onelnn.core.layer import Cell, Layer
from onelnn.core.types import Infer, Sample, Train


def _layer(weights, seed=0, workers=1):
    weights = np.asarray(weights, dtype=np.float64)
    layer = Layer(n_inputs=weights.shape[1], n_outputs=weights.shape[0], seed=seed, workers=workers)
    layer.load_weights(weights)
    return layer


def test_initial_weights_are_uniform_unit_interval():
    layer = Layer(n_inputs=784, n_outputs=10, seed=123)
    weights = layer.weights()
    assert weights.shape == (10, 784)
    assert np.all(weights >= 0.0)
    assert np.all(weights < 1.0)
    assert len(layer.cells) == 10
    assert all(cell.size == 784 for cell in layer.cells)


def test_seed_makes_initialisation_reproducible():
    first = Layer(n_inputs=16, n_outputs=3, seed=42).weights()
    second = Layer(n_inputs=16, n_outputs=3, seed=42).weights()
    other = Layer(n_inputs=16, n_outputs=3, seed=43).weights()
    np.testing.assert_array_equal(first, second)
    assert not np.array_equal(first, other)


def test_unseeded_layer_records_effective_seed():
    layer = Layer(n_inputs=8, n_outputs=2)
    replay = Layer(n_inputs=8, n_outputs=2, seed=layer.effective_seed)
    np.testing.assert_array_equal(layer.weights(), replay.weights())


def test_initialize_reseeds_cells():
    layer = Layer(n_inputs=8, n_outputs=2, seed=5)
    before = layer.weights()
    layer.initialize(6)
    assert layer.effective_seed == 6
    assert not np.array_equal(before, layer.weights())
    layer.initialize(5)
    np.testing.assert_array_equal(before, layer.weights())


def test_compute_cell_binarizes_and_normalises_by_input_length():
    layer = _layer([[0.5, 0.5, 0.5, 0.5], [0.2, 0.2, 0.2, 0.2]])
    features = np.array([200, 0, 3, 0], dtype=np.uint8)
    assert layer.compute_cell(0, features) == pytest.approx(0.25)
    np.testing.assert_array_equal(layer.cells[0].input, [1, 0, 1, 0])
    assert layer.cells[0].output == pytest.approx(0.25)


def test_divisor_is_full_length_not_active_count():
    layer = _layer([[0.8, 0.8, 0.8, 0.8, 0.8, 0.8, 0.8, 0.8]])
    features = np.array([1, 0, 0, 0, 0, 0, 0, 0])
    assert layer.compute_cell(0, features) == pytest.approx(0.1)


def test_outputs_stay_in_unit_interval():
    rng = np.random.default_rng(0)
    layer = Layer(n_inputs=64, n_outputs=5, seed=1)
    for _ in range(20):
        features = rng.integers(0, 256, size=64) * (rng.random(64) < 0.5)
        for index in range(5):
            assert 0.0 <= layer.compute_cell(index, features) <= 1.0


def test_compute_cell_is_idempotent():
    layer = Layer(n_inputs=32, n_outputs=3, seed=9)
    features = np.arange(32) % 3
    weights = layer.weights()
    first = layer.compute_cell(2, features)
    second = layer.compute_cell(2, features)
    assert first == second
    np.testing.assert_array_equal(weights, layer.weights())


def test_update_moves_active_weights_toward_target():
    layer = _layer([[0.3, 0.6, 0.9, 0.1]])
    features = np.array([1, 1, 0, 1])
    output = layer.compute_cell(0, features)
    before = layer.weights()[0]

    layer.update_cell(0, 1.0, 0.5)
    after = layer.weights()[0]
    delta = after - before
    assert np.all(np.sign(delta[[0, 1, 3]]) == np.sign(1.0 - output))
    assert delta[2] == 0.0

    layer.compute_cell(0, features)
    before = layer.weights()[0]
    layer.update_cell(0, 0.0, 0.5)
    delta = layer.weights()[0] - before
    assert np.all(delta[[0, 1, 3]] < 0)
    assert delta[2] == 0.0


def test_update_is_noop_when_output_matches_target():
    layer = _layer([[0.5, 0.5, 0.5, 0.5]])
    output = layer.compute_cell(0, np.ones(4))
    before = layer.weights()
    layer.update_cell(0, output, 1.0)
    np.testing.assert_array_equal(before, layer.weights())


def test_predict_returns_argmax_with_lowest_index_on_ties():
    layer = _layer([[0.1, 0.1], [0.3, 0.3], [0.3, 0.3]])
    for index in range(3):
        layer.compute_cell(index, np.ones(2))
    assert layer.predict() == 1

    flat = _layer(np.full((4, 3), 0.5))
    for index in range(4):
        flat.compute_cell(index, np.ones(3))
    assert flat.predict() == 0


def test_predict_always_in_range():
    rng = np.random.default_rng(4)
    layer = Layer(n_inputs=10, n_outputs=7, seed=4)
    for _ in range(10):
        label = int(rng.integers(0, 7))
        predicted = layer.run_on_sample(Sample(rng.integers(0, 2, size=10), label), Infer())
        assert 0 <= predicted < 7


@pytest.mark.parametrize("workers", [1, 2])
def test_single_sample_training_scenario(workers):
    layer = _layer([[0.5, 0.5, 0.5, 0.5], [0.2, 0.2, 0.2, 0.2]], workers=workers)
    sample = Sample(features=np.array([1, 0, 1, 0]), label=1)

    with layer:
        predicted = layer.run_on_sample(sample, Train(learning_rate=1.0))

    assert layer.cells[0].output == pytest.approx(0.25)
    assert layer.cells[1].output == pytest.approx(0.1)
    # The prediction is taken from the outputs computed before the update.
    assert predicted == 0
    np.testing.assert_allclose(layer.cells[0].weight, [0.25, 0.5, 0.25, 0.5])
    np.testing.assert_allclose(layer.cells[1].weight, [1.1, 0.2, 1.1, 0.2])


def test_infer_mode_leaves_weights_untouched():
    layer = Layer(n_inputs=6, n_outputs=3, seed=2)
    before = layer.weights()
    layer.run_on_sample(Sample(np.array([1, 0, 1, 1, 0, 1]), 2), Infer())
    np.testing.assert_array_equal(before, layer.weights())


def test_cells_do_not_share_weight_storage():
    layer = Layer(n_inputs=4, n_outputs=2, seed=0)
    before = layer.weights()
    layer.compute_cell(0, np.ones(4))
    layer.update_cell(0, 1.0, 0.5)
    np.testing.assert_array_equal(before[1], layer.cells[1].weight)


def test_parallel_cells_match_sequential():
    rng = np.random.default_rng(11)
    samples = [
        Sample(rng.integers(0, 2, size=49), int(rng.integers(0, 10))) for _ in range(30)
    ]
    sequential = Layer(n_inputs=49, n_outputs=10, seed=3, workers=1)
    with Layer(n_inputs=49, n_outputs=10, seed=3, workers=4) as parallel:
        for sample in samples:
            expected = sequential.run_on_sample(sample, Train(0.05))
            assert parallel.run_on_sample(sample, Train(0.05)) == expected
        np.testing.assert_array_equal(sequential.weights(), parallel.weights())


def test_malformed_samples_are_rejected():
    layer = Layer(n_inputs=4, n_outputs=2, seed=0)
    with pytest.raises(ValueError, match="Expected 4 features"):
        layer.run_on_sample(Sample(np.ones(5), 0), Infer())
    with pytest.raises(ValueError, match="outside"):
        layer.run_on_sample(Sample(np.ones(4), 2), Train(0.1))


def test_unknown_mode_is_rejected():
    layer = Layer(n_inputs=2, n_outputs=2, seed=0)
    with pytest.raises(TypeError):
        layer.run_on_sample(Sample(np.ones(2), 0), "train")


def test_invalid_construction():
    with pytest.raises(ValueError):
        Layer(n_inputs=0, n_outputs=2)
    with pytest.raises(ValueError):
        Layer(n_inputs=2, n_outputs=2, workers=0)
    with pytest.raises(ValueError, match="non-negative"):
        Train(learning_rate=-0.1)
    with pytest.raises(ValueError):
        Train(learning_rate=float("nan"))
    layer = Layer(n_inputs=2, n_outputs=2, seed=0)
    with pytest.raises(ValueError, match="shape"):
        layer.load_weights(np.zeros((3, 2)))


def test_cell_accepts_two_dimensional_images_through_layer():
    layer = Layer(n_inputs=4, n_outputs=1, seed=0)
    image = np.array([[1, 0], [0, 1]])
    assert layer.compute_cell(0, image) == pytest.approx(
        (layer.cells[0].weight[0] + layer.cells[0].weight[3]) / 4
    )


def test_cell_starts_with_empty_input():
    cell = Cell(weight=np.zeros(3))
    np.testing.assert_array_equal(cell.input, [0, 0, 0])
    assert cell.output == 0.0


def test_zero_learning_rate_trains_without_moving_weights():
    layer = Layer(n_inputs=6, n_outputs=3, seed=4)
    before = layer.weights()
    predicted = layer.run_on_sample(Sample(np.array([1, 1, 0, 1, 0, 1]), 1), Train(0.0))
    np.testing.assert_array_equal(before, layer.weights())
    assert predicted == int(np.argmax(layer.outputs()))


def test_parameter_count_covers_every_weight():
    layer = Layer(seed=0)
    assert layer.parameter_count() == 7840
    assert layer.parameter_count() == layer.weights().size
