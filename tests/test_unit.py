"""
Unit tests for the building blocks of seqmix.

These tests validate the correctness of individual pieces from:
- seqmix/functions.py and seqmix/ragged.py
- seqmix/estimator.py
- seqmix/termination.py and seqmix/burnin.py
- seqmix/config.py and seqmix/registry.py
- seqmix/models.py
"""

import numpy as np
import pytest
from scipy.special import gammaln

from seqmix.burnin import FixedBurnIn, VarianceRatioBurnIn, scale_reduction
from seqmix.config import Algorithm, config_from_record, create_em_config, create_gibbs_config
from seqmix.errors import ConstructionError, NotTrainedError
from seqmix.estimator import ComponentProbabilityEstimator, Parameterization
from seqmix.functions import batch_log_probs, batch_reverse_complement, draw_index, log_sum_normalize
from seqmix.generators import DirichletGenerator, OneOfNGenerator
from seqmix.models import PwmModel
from seqmix.ragged import (
    concat_ragged,
    interleave_strands,
    ragged_from_list,
    reverse_complement,
    reverse_complement_all,
)
from seqmix.registry import burn_in_registry, model_registry, termination_registry
from seqmix.termination import CombinedCondition, IterationCondition, SmallDifferenceCondition, TimeCondition


def test_log_sum_normalize_basic():
    """Test normalization of log-values"""
    values = np.log(np.array([1.0, 3.0]))

    log_sum = log_sum_normalize(values)

    np.testing.assert_allclose(values, [0.25, 0.75], rtol=1e-12)
    assert log_sum == pytest.approx(np.log(4.0))


def test_log_sum_normalize_all_minus_infinity():
    """A vector without any mass becomes uniform"""
    values = np.full(4, -np.inf)

    log_sum = log_sum_normalize(values)

    np.testing.assert_allclose(values, 0.25)
    assert log_sum == -np.inf


def test_draw_index():
    """Test categorical draws from a uniform variate"""
    w = np.array([0.2, 0.5, 0.3])

    assert draw_index(w, 0.1) == 0
    assert draw_index(w, 0.6) == 1
    assert draw_index(w, 0.95) == 2


def test_batch_log_probs_ambiguous_column():
    """The last column of the table scores ambiguous symbols"""
    table = np.log(np.array([[0.5, 0.5, 1.0], [0.25, 0.75, 1.0]]))
    data = ragged_from_list([np.array([0, 1], dtype=np.int8), np.array([4, 1], dtype=np.int8)])

    scores = batch_log_probs(data.data, data.offsets, table)

    np.testing.assert_allclose(scores, [np.log(0.5 * 0.75), np.log(0.75)])


def test_reverse_complement():
    """Test reverse complement with an ambiguous symbol"""
    seq = np.array([0, 1, 2, 4], dtype=np.int8)

    np.testing.assert_array_equal(reverse_complement(seq), [4, 1, 2, 3])


def test_batch_reverse_complement_matches_single():
    """Batch reverse complement keeps the order and the offsets"""
    data = ragged_from_list([np.array([0, 0, 1], dtype=np.int8), np.array([2, 3], dtype=np.int8)])

    rc = reverse_complement_all(data)

    np.testing.assert_array_equal(rc.offsets, data.offsets)
    for original, reverse in zip(data, rc):
        np.testing.assert_array_equal(reverse, reverse_complement(original))
    np.testing.assert_array_equal(batch_reverse_complement(rc.data, rc.offsets), data.data)


def test_interleave_strands():
    """Every sequence is followed by its reverse complement"""
    data = ragged_from_list([np.array([0, 0], dtype=np.int8), np.array([1, 3], dtype=np.int8)])

    doubled = interleave_strands(data)

    assert doubled.num_sequences == 4
    np.testing.assert_array_equal(doubled.get_slice(1), [3, 3])
    np.testing.assert_array_equal(doubled.get_slice(3), [0, 2])


def test_ragged_helpers():
    """Test select, lengths and concatenation"""
    data = ragged_from_list([np.array([0], dtype=np.int8), np.array([1, 2], dtype=np.int8)])

    assert len(data) == 2
    np.testing.assert_array_equal(data.lengths, [1, 2])
    np.testing.assert_array_equal(data.select([1]).get_slice(0), [1, 2])
    joined = concat_ragged([data, data.select([0])])
    assert joined.num_sequences == 3
    assert joined.total_elements() == 4


def test_generators():
    """Test simplex generators"""
    rng = np.random.default_rng(3)

    draw = DirichletGenerator(2.0).draw(rng, 3)
    assert draw.shape == (3,)
    assert draw.sum() == pytest.approx(1.0)

    target = np.zeros(5)
    OneOfNGenerator().generate(rng, target, 1, 3, np.array([0.0, 1.0, 0.0]))
    np.testing.assert_array_equal(target, [0.0, 0.0, 1.0, 0.0, 0.0])


# Estimator


def test_estimator_maximum_likelihood():
    """Without hyperparameters the statistic is only normalized"""
    estimator = ComponentProbabilityEstimator(2)

    statistic = estimator.initial_statistic() + np.array([1.0, 3.0])

    np.testing.assert_allclose(estimator.estimate_weights(statistic), [0.25, 0.75])
    assert not estimator.is_map
    assert estimator.log_prior(np.log([0.25, 0.75])) == 0.0


@pytest.mark.parametrize(
    "parameterization, expected",
    [(Parameterization.THETA, [1.0 / 3.0, 2.0 / 3.0]), (Parameterization.LAMBDA, [3.0 / 8.0, 5.0 / 8.0])],
)
def test_estimator_map_parameterization(parameterization, expected):
    """The parameterization determines the pseudo-count of the MAP estimate"""
    estimator = ComponentProbabilityEstimator(2, [2.0, 2.0], True, parameterization)

    statistic = estimator.initial_statistic() + np.array([1.0, 3.0])

    np.testing.assert_allclose(estimator.estimate_weights(statistic), expected)
    assert estimator.ess == 4.0


def test_estimator_rejects_negative_weights():
    """THETA with hyperparameters below 1 can produce negative weights"""
    estimator = ComponentProbabilityEstimator(2, [0.5, 0.5], True, Parameterization.THETA)

    with pytest.raises(ValueError, match="at least 0"):
        estimator.estimate_weights(estimator.initial_statistic())


def test_estimator_rejects_mixed_hyperparameters():
    """Zero and positive hyperparameters can not be mixed"""
    with pytest.raises(ConstructionError):
        ComponentProbabilityEstimator(2, [0.0, 1.0])
    with pytest.raises(ConstructionError):
        ComponentProbabilityEstimator(2, [1.0, 1.0, 1.0])


def test_estimator_log_prior():
    """Log Dirichlet density of the component probabilities"""
    estimator = ComponentProbabilityEstimator(2, [2.0, 2.0])

    prior = estimator.log_prior(np.log([0.5, 0.5]))

    expected = 4.0 * np.log(0.5) - 2.0 * gammaln(2.0) + gammaln(4.0)
    assert prior == pytest.approx(expected)


def test_estimator_record_round_trip():
    """Test estimator persistence"""
    estimator = ComponentProbabilityEstimator(3, [1.0, 2.0, 3.0], True, Parameterization.THETA)

    restored = ComponentProbabilityEstimator.from_record(estimator.to_record())

    np.testing.assert_array_equal(restored.hyper_params, estimator.hyper_params)
    assert restored.parameterization is Parameterization.THETA


# Termination conditions


def test_small_difference_condition():
    """Continue while consecutive values differ by more than epsilon"""
    condition = SmallDifferenceCondition(1e-3)

    assert condition.do_next_iteration(0, -np.inf, -5.0)
    assert condition.do_next_iteration(1, -5.0, -4.0)
    assert not condition.do_next_iteration(2, -4.0, -4.0001)
    assert not condition.do_next_iteration(0, -np.inf, -np.inf)


def test_iteration_and_combined_conditions():
    """Test iteration limits and voting"""
    iterations = IterationCondition(2)
    assert iterations.do_next_iteration(1, 0.0, 0.0)
    assert not iterations.do_next_iteration(2, 0.0, 1.0)

    combined = CombinedCondition(2, SmallDifferenceCondition(1e-3), IterationCondition(2))
    assert combined.do_next_iteration(0, -10.0, -5.0)
    assert not combined.do_next_iteration(5, -10.0, -5.0)
    assert combined.is_simple()


def test_time_condition_is_not_simple():
    """EM rejects conditions with hidden state"""
    condition = TimeCondition(10.0)

    assert not condition.is_simple()
    assert not CombinedCondition(1, condition, IterationCondition(3)).is_simple()
    with pytest.raises(ConstructionError):
        create_em_config(termination=condition)


def test_termination_record_round_trip():
    """Test termination condition persistence through the registry"""
    combined = CombinedCondition(1, SmallDifferenceCondition(1e-4), IterationCondition(7))

    restored = termination_registry.from_record(combined.to_record())

    assert isinstance(restored, CombinedCondition)
    assert restored.threshold == 1
    assert restored.conditions[0].epsilon == 1e-4
    assert restored.conditions[1].max_iterations == 7


# Burn-in tests


def test_fixed_burn_in():
    """Test fixed burn-in length and value bookkeeping"""
    test = FixedBurnIn(3)
    test.set_current_sampling_index(1)
    test.set_value(-2.0)

    assert test.get_length_of_burn_in() == 3
    assert test.values == [[], [-2.0]]

    test.reset_all_values()
    assert test.values == [[], []]


def test_burn_in_without_sampling_index():
    """Values can only be recorded for a selected chain"""
    with pytest.raises(RuntimeError):
        FixedBurnIn(1).set_value(0.0)


def test_variance_ratio_needs_two_chains():
    """The scale reduction compares chains"""
    test = VarianceRatioBurnIn()
    test.set_current_sampling_index(0)
    for value in range(10):
        test.set_value(value)

    with pytest.raises(RuntimeError):
        test.get_length_of_burn_in()


def test_variance_ratio_short_traces():
    """Short traces are discarded completely"""
    test = VarianceRatioBurnIn()
    for chain in range(2):
        test.set_current_sampling_index(chain)
        for value in range(3):
            test.set_value(value)

    assert test.get_length_of_burn_in() == 3


def test_variance_ratio_converged_chains():
    """Chains with equal means need no burn-in"""
    test = VarianceRatioBurnIn(threshold=1.1)
    for chain in range(2):
        test.set_current_sampling_index(chain)
        for step in range(20):
            test.set_value(float((step + chain) % 2))

    assert test.get_length_of_burn_in() == 0


def test_variance_ratio_diverging_chains():
    """Without convergence the first half is discarded"""
    test = VarianceRatioBurnIn()
    for chain in range(2):
        test.set_current_sampling_index(chain)
        for step in range(20):
            test.set_value(100.0 * chain + step)

    assert test.get_length_of_burn_in() == 10


def test_scale_reduction_constant_chains():
    """Identical constant chains have no scale reduction"""
    assert scale_reduction(np.ones((2, 5))) == 1.0
    assert scale_reduction(np.array([[0.0, 0.0], [1.0, 1.0]])) == np.inf


def test_burn_in_record_round_trip():
    """Test burn-in persistence through the registry"""
    test = VarianceRatioBurnIn(threshold=1.5, step=2)
    test.set_current_sampling_index(0)
    test.set_value(1.0)

    restored = burn_in_registry.from_record(test.to_record())

    assert isinstance(restored, VarianceRatioBurnIn)
    assert restored.threshold == 1.5
    assert restored.step == 2
    assert restored.values == [[1.0]]


# Configuration and registries


def test_create_em_config():
    """Test EM config creation"""
    config = create_em_config(starts=3, epsilon=1e-4, parameterization="theta", seed=5)

    assert config.algorithm is Algorithm.EM
    assert config.parameterization is Parameterization.THETA
    assert config.termination.epsilon == 1e-4

    restored = config_from_record(config.to_record())
    assert restored.starts == 3
    assert restored.seed == 5


@pytest.mark.parametrize(
    "kwargs",
    [
        {"starts": 0},
        {"alpha": 0.0},
    ],
)
def test_create_em_config_invalid(kwargs):
    """Test EM config validation"""
    with pytest.raises(ConstructionError):
        create_em_config(**kwargs)


def test_create_gibbs_config_invalid():
    """Initial iterations of all chains may not exceed the stationary phase"""
    with pytest.raises(ConstructionError):
        create_gibbs_config(starts=3, initial_iteration=5, stationary_iteration=10, burn_in_test=FixedBurnIn(1))
    with pytest.raises(ConstructionError):
        create_gibbs_config(starts=1, initial_iteration=0, stationary_iteration=10, burn_in_test=FixedBurnIn(1))
    with pytest.raises(ConstructionError):
        create_gibbs_config(starts=1, initial_iteration=1, stationary_iteration=10, burn_in_test=None)


def test_registry_unknown_key():
    """Unknown keys list the available ones"""
    with pytest.raises(ValueError, match="not found"):
        model_registry.get("unknown")
    assert "pwm" in model_registry


# PWM model


def test_pwm_train_maximum_likelihood():
    """Test weighted maximum likelihood estimation"""
    data = ragged_from_list([np.array([0, 1], dtype=np.int8), np.array([0, 2], dtype=np.int8)])
    model = PwmModel(2, 4)

    model.train(data, np.array([1.0, 3.0]))

    np.testing.assert_allclose(model.probs[0], [1.0, 0.0, 0.0, 0.0])
    np.testing.assert_allclose(model.probs[1], [0.0, 0.25, 0.75, 0.0])
    assert model.get_log_prior_term() == 0.0


def test_pwm_train_with_prior():
    """The equivalent sample size is spread over all symbols"""
    data = ragged_from_list([np.array([0], dtype=np.int8)])
    model = PwmModel(1, 2, ess=2.0)

    model.train(data)

    np.testing.assert_allclose(model.probs[0], [2.0 / 3.0, 1.0 / 3.0])
    expected = np.log(2.0 / 3.0) + np.log(1.0 / 3.0) + gammaln(2.0) - 2.0 * gammaln(1.0)
    assert model.get_log_prior_term() == pytest.approx(expected)


def test_pwm_log_prob_and_windows():
    """Test scoring of whole sequences and windows"""
    data = ragged_from_list([np.array([0, 1], dtype=np.int8)])
    model = PwmModel(2, 4, ess=4.0)
    model.train(data)

    seq = np.array([3, 0, 1, 3], dtype=np.int8)
    assert model.log_prob(seq, 1, 3) == pytest.approx(2 * np.log(2.0 / 5.0))
    np.testing.assert_allclose(model.log_probs(data), [2 * np.log(2.0 / 5.0)])
    with pytest.raises(ValueError):
        model.log_prob(seq)


def test_pwm_untrained():
    """An untrained PWM can not score or emit"""
    model = PwmModel(3)

    assert not model.is_initialized()
    with pytest.raises(NotTrainedError):
        model.log_prob(np.zeros(3, dtype=np.int8))
    with pytest.raises(NotTrainedError):
        model.emit_sample(2)


def test_pwm_emit_sample():
    """Emitted sequences follow the probabilities"""
    model = PwmModel(2, 2)
    model.probs = np.array([[1.0, 0.0], [0.0, 1.0]])

    sample = model.emit_sample(5, rng=np.random.default_rng(0))

    assert sample.num_sequences == 5
    for seq in sample:
        np.testing.assert_array_equal(seq, [0, 1])


def test_pwm_invalid_construction():
    """Test PWM validation"""
    with pytest.raises(ConstructionError):
        PwmModel(0)
    with pytest.raises(ConstructionError):
        PwmModel(2, alphabet_size=1)
    with pytest.raises(ConstructionError):
        PwmModel(2, ess=-1.0)


def test_pwm_draw_requires_prior():
    """Posterior draws need a proper Dirichlet prior"""
    data = ragged_from_list([np.array([0], dtype=np.int8)])

    with pytest.raises(ValueError):
        PwmModel(1, 2).draw_parameters(data, None, np.random.default_rng(0))


def test_pwm_record_round_trip():
    """Test PWM persistence through the registry"""
    model = PwmModel(2, 4, ess=1.0)
    model.train(ragged_from_list([np.array([0, 3], dtype=np.int8)]))

    restored = model_registry.from_record(model.to_record())

    assert isinstance(restored, PwmModel)
    np.testing.assert_array_equal(restored.probs, model.probs)
    assert restored.ess == 1.0
