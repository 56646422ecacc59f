#!/usr/bin/env python3
# tests/test_crf.py - Unit tests for crf.py

import pytest
import os
import sys
import shutil
import tempfile
from unittest.mock import patch, MagicMock

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import crf
from crf import Crf, CrfModel, NotSupportedError, TrainingResult
from crf_config import CrfConfig, CrfSeqDelimiter


RAW = """the price is 10
we paid 25 dollars
12 items were sold
only 3 left
the bill was 40
7 people came
"""

TAGGED = """0 0 0 1
0 0 1 0
1 0 0 0
0 1 0
0 0 0 1
1 0 0
"""


@pytest.fixture
def temp_dir():
    path = tempfile.mkdtemp()
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def dataset(temp_dir):
    """Training set identifier pointing at a small tagged corpus"""
    tagged_obs = os.path.join(temp_dir, 'numbers')
    with open(tagged_obs + '.raw', 'w', encoding='utf-8') as f:
        f.write(RAW)
    with open(tagged_obs + '.tagged', 'w', encoding='utf-8') as f:
        f.write(TAGGED)
    return tagged_obs


@pytest.fixture
def config():
    return CrfConfig(c1=0.0, c2=0.01, max_iters=50, eps=1e-4)


@pytest.fixture
def delims():
    return CrfSeqDelimiter.default()


@pytest.fixture
def trained(dataset, config, delims):
    return Crf(2, config, delims, dataset)


class TestConstructionArguments:
    """Arguments are checked before any file is read"""

    @pytest.mark.parametrize('n_labels', [2, 3, 50, 199])
    def test_label_count_in_range(self, n_labels, config, delims):
        with patch('crf.CrfSeqIter') as seq_iter:
            seq_iter.return_value = []
            model = Crf(n_labels, config, delims, 'missing')
        assert model.n_labels == n_labels

    @pytest.mark.parametrize('n_labels', [-1, 0, 1, 200, 500, None])
    def test_label_count_out_of_range(self, n_labels, config, delims):
        with patch('crf.CrfSeqIter') as seq_iter:
            with pytest.raises(ValueError, match='out of range'):
                Crf(n_labels, config, delims, 'data')
        seq_iter.assert_not_called()

    def test_missing_config(self, delims):
        with patch('crf.CrfSeqIter') as seq_iter:
            with pytest.raises(ValueError, match='Configuration'):
                Crf(4, None, delims, 'data')
        seq_iter.assert_not_called()

    def test_missing_delimiters(self, config):
        with patch('crf.CrfSeqIter') as seq_iter:
            with pytest.raises(ValueError, match='Delimiters'):
                Crf(4, config, None, 'data')
        seq_iter.assert_not_called()

    def test_missing_training_set(self, config, delims):
        with patch('crf.CrfSeqIter') as seq_iter:
            with pytest.raises(ValueError, match='Tagged observations'):
                Crf(4, config, delims, None)
        seq_iter.assert_not_called()


class TestTrainingFailure:
    """Training failures leave the adapter without a model"""

    def test_missing_files(self, temp_dir, config, delims):
        model = Crf(4, config, delims, os.path.join(temp_dir, 'nothing'))

        assert model.is_trained is False
        assert model.weights is None
        assert model.model is None
        assert 'not found' in model.training_result.error_message

    def test_predict_returns_none(self, temp_dir, config, delims):
        model = Crf(4, config, delims, os.path.join(temp_dir, 'nothing'))
        assert model.predict('some text') is None
        assert model.tag('some text') is None
        assert ('some text' | model) is None

    def test_corrupt_labels(self, temp_dir, config, delims):
        tagged_obs = os.path.join(temp_dir, 'corrupt')
        with open(tagged_obs + '.raw', 'w', encoding='utf-8') as f:
            f.write('a b c\n')
        with open(tagged_obs + '.tagged', 'w', encoding='utf-8') as f:
            f.write('0 x 1\n')

        model = Crf(2, config, delims, tagged_obs)
        assert model.is_trained is False
        assert model.predict('a b') is None

    def test_solver_failure(self, dataset, config, delims):
        trainer = MagicMock()
        trainer.train.side_effect = RuntimeError('solver exploded')
        with patch('crf.pycrfsuite.Trainer', return_value=trainer):
            model = Crf(2, config, delims, dataset)

        assert model.is_trained is False
        assert model.training_result.error_message == 'solver exploded'
        assert model.predict('the price') is None

    def test_failure_is_logged(self, temp_dir, config, delims, caplog):
        with caplog.at_level('ERROR', logger='crf'):
            Crf(4, config, delims, os.path.join(temp_dir, 'nothing'))
        assert 'CRF training' in caplog.text


class TestTrainedModel:
    """Training on a valid corpus"""

    def test_trained(self, trained):
        result = trained.training_result
        assert trained.is_trained is True
        assert result.success is True
        assert result.error_message is None
        assert result.sequence_count == 6
        assert result.token_count == 22

    def test_weights(self, trained):
        weights = trained.weights
        assert weights is not None
        assert len(weights) > 0
        assert all(isinstance(w, float) for w in weights)
        assert weights == trained.model.weights

    def test_predict_returns_score(self, trained):
        score = trained.predict('the total is 99')
        assert isinstance(score, float)
        assert 0.0 <= score <= 1.0

    def test_pipe_operator(self, trained):
        assert ('the total is 99' | trained) == trained.predict('the total is 99')
        assert trained('the total is 99') == trained.predict('the total is 99')

    def test_tag(self, trained):
        labels = trained.tag('we paid 25')
        assert len(labels) == 3
        assert all(label in (0, 1) for label in labels)

    @pytest.mark.parametrize('obs', [', ', ' ;: ', '\t,\t'])
    def test_delimiters_only(self, obs, trained):
        assert trained.predict(obs) is None
        assert trained.tag(obs) is None
        assert (obs | trained) is None


class TestPredictArguments:
    """Observation checks apply in both states"""

    @pytest.mark.parametrize('obs', [None, '', 'a'])
    def test_untrained(self, obs, temp_dir, config, delims):
        model = Crf(4, config, delims, os.path.join(temp_dir, 'nothing'))
        with pytest.raises(ValueError):
            model.predict(obs)

    @pytest.mark.parametrize('obs', [None, '', 'a'])
    def test_trained(self, obs, trained):
        with pytest.raises(ValueError):
            trained.predict(obs)

    def test_delimiters_only_agree(self, temp_dir, config, delims, trained):
        model = Crf(4, config, delims, os.path.join(temp_dir, 'nothing'))
        assert model.predict(', ') is None
        assert trained.predict(', ') is None


class TestValidate:

    def test_not_supported(self, trained):
        with pytest.raises(NotSupportedError):
            trained.validate([(['the', 'price'], 0)], 0)

    def test_is_not_implemented_error(self):
        assert issubclass(NotSupportedError, NotImplementedError)


class TestCrfModel:

    def test_weights_are_immutable(self):
        model = CrfModel([1, 2.5], b'model')
        assert model.weights == (1.0, 2.5)
        assert len(model) == 2
        with pytest.raises(AttributeError):
            model.weights = (0.0,)

    def test_training_result_default(self):
        result = TrainingResult()
        assert result.success is False
        assert result.model is None
        assert 'untrained' in repr(result)


class TestModelWeights:

    def test_order(self):
        info = MagicMock()
        info.transitions = {('1', '0'): 0.5, ('0', '1'): -0.5}
        info.state_features = {('word=b', '0'): 2.0, ('word=a', '1'): 1.0}
        assert crf.model_weights(info) == [-0.5, 0.5, 1.0, 2.0]
