from __future__ import annotations

from typing import Mapping

import numpy as np
import pytest

from onelnn.core.layer import Layer
from onelnn.core.types import Infer, PassStats, Sample
from onelnn.training.drivers import evaluate_layer, run_pass, train_layer


class _Capture:
    def __init__(self) -> None:
        self.steps: list[tuple[int, Mapping[str, float]]] = []
        self.final: Mapping[str, float] | None = None

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        self.steps.append((step, dict(metrics)))

    def on_pass(self, metrics: Mapping[str, float]) -> None:
        self.final = dict(metrics)


def _samples(count, n_inputs=16, n_classes=4, seed=0):
    rng = np.random.default_rng(seed)
    return [
        Sample(rng.integers(0, 2, size=n_inputs), int(rng.integers(0, n_classes)))
        for _ in range(count)
    ]


def test_evaluation_pass_leaves_weights_bit_identical():
    layer = Layer(n_inputs=16, n_outputs=4, seed=1)
    before = layer.weights()
    stats = evaluate_layer(layer, _samples(25), 25)
    np.testing.assert_array_equal(before, layer.weights())
    assert stats.samples == 25


def test_training_pass_mutates_weights():
    layer = Layer(n_inputs=16, n_outputs=4, seed=1)
    before = layer.weights()
    train_layer(layer, _samples(10), 10, learning_rate=0.05)
    assert not np.array_equal(before, layer.weights())


def test_error_count_matches_mismatches():
    samples = _samples(40, seed=3)
    layer = Layer(n_inputs=16, n_outputs=4, seed=2)
    reference = Layer(n_inputs=16, n_outputs=4, seed=2)
    expected = sum(
        reference.run_on_sample(sample, Infer()) != sample.label for sample in samples
    )
    stats = evaluate_layer(layer, samples, len(samples))
    assert stats.errors == expected
    assert 0 <= stats.errors <= stats.samples
    assert stats.success_rate == pytest.approx(100 - expected / 40 * 100)


def test_pass_consumes_exactly_count_samples():
    iterator = iter(_samples(10))
    layer = Layer(n_inputs=16, n_outputs=4, seed=0)
    evaluate_layer(layer, iterator, 6)
    assert len(list(iterator)) == 4


def test_exhausted_stream_aborts_pass():
    layer = Layer(n_inputs=16, n_outputs=4, seed=0)
    with pytest.raises(ValueError, match="exhausted after 3 of 5"):
        train_layer(layer, _samples(3), 5, learning_rate=0.05)


def test_malformed_sample_aborts_pass():
    layer = Layer(n_inputs=16, n_outputs=4, seed=0)
    samples = _samples(2) + [Sample(np.ones(15), 0)]
    with pytest.raises(ValueError, match="Expected 16 features"):
        evaluate_layer(layer, samples, 3)


def test_non_positive_count_is_rejected():
    layer = Layer(n_inputs=16, n_outputs=4, seed=0)
    with pytest.raises(ValueError):
        run_pass(layer, _samples(2), 0, Infer())


def test_callbacks_receive_progress_and_final_stats():
    capture = _Capture()
    layer = Layer(n_inputs=16, n_outputs=4, seed=0)
    stats = train_layer(
        layer, _samples(20), 20, learning_rate=0.05, callbacks=[capture], report_every=5
    )
    assert [step for step, _ in capture.steps] == [5, 10, 15, 20]
    assert capture.final is not None
    assert capture.final["errors"] == stats.errors
    assert capture.final["success_rate"] == pytest.approx(stats.success_rate)
    assert capture.steps[-1][1]["errors"] == stats.errors


def test_training_learns_separable_prototypes():
    rng = np.random.default_rng(0)
    prototypes = rng.random((3, 36)) < 0.3
    labels = rng.integers(0, 3, size=300)
    samples = [Sample(prototypes[label].astype(np.uint8), int(label)) for label in labels]
    layer = Layer(n_inputs=36, n_outputs=3, seed=0)
    train_layer(layer, samples, 300, learning_rate=0.05)
    stats = evaluate_layer(layer, samples, 300)
    assert stats.success_rate > 90.0


@pytest.mark.parametrize(
    "samples,errors,expected",
    [(1, 0, 100.0), (1, 1, 0.0), (8, 2, 75.0), (60000, 9000, 85.0)],
)
def test_success_rate_arithmetic(samples, errors, expected):
    assert PassStats(samples=samples, errors=errors, elapsed=0.0).success_rate == pytest.approx(
        expected
    )


def test_pass_stats_bounds():
    with pytest.raises(ValueError):
        PassStats(samples=3, errors=4, elapsed=0.0)
    with pytest.raises(ValueError):
        PassStats(samples=0, errors=0, elapsed=0.0)
