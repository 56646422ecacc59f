"""
crf.py - Linear-chain Conditional Random Field tagger

================================================================================
PURPOSE
================================================================================

Crf wraps a crfsuite tagger behind a pipeline stage. The adapter is trained
exactly once, when it is constructed, from the training set X.raw/X.tagged:

    crf = Crf(9, CrfConfig(), CrfSeqDelimiter.default(), 'data/reviews')
    score = 'the service was slow' | crf

================================================================================
ERROR POLICY
================================================================================

    1. Invalid arguments (label count, missing configuration, observation
       too short) raise ValueError immediately.
    2. Training failures (missing or malformed files, solver errors) are
       logged and kept in training_result. The adapter then has no model,
       and every prediction returns None instead of raising.

    ┌──────────────┐  training succeeds   ┌──────────┐
    │ construction │ ───────────────────→ │ Trained  │  predict → float
    └──────────────┘                      └──────────┘
           │        training fails        ┌──────────┐
           └────────────────────────────→ │ Untrained│  predict → None
                                          └──────────┘

There is no retraining: a new Crf must be built to train again.

================================================================================
"""

import os
import time
import logging
import tempfile

import pycrfsuite

from pipeline import PipeOperator, Supervised
from crf_config import NUM_LABELS_LIMITS
from crf_data import CrfSeqIter, CrfTrainingSet, FeatureGenerator, split_observations

logger = logging.getLogger(__name__)

MODEL_FILENAME = 'model.crfsuite'


class NotSupportedError(NotImplementedError):
    """Raised by operations the CRF tagger does not provide."""


class CrfModel:
    """Weights learned by the CRF solver.

    Args:
        weights: Sequence of feature weights
        data: Serialized crfsuite model
    """

    def __init__(self, weights, data):
        self._weights = tuple(float(w) for w in weights)
        self._data = bytes(data)

    @property
    def weights(self):
        return self._weights

    @property
    def data(self):
        return self._data

    def __len__(self):
        return len(self._weights)

    def __repr__(self):
        return f'CrfModel({len(self._weights)} weights)'


class TrainingResult:
    """
    Outcome of the single training attempt of a Crf.

    success is True with a model, or False with an error_message.
    """
    def __init__(self):
        self.success = False
        self.model = None
        self.training_time = 0.0
        self.sequence_count = 0
        self.token_count = 0
        self.last_iteration = None
        self.loss = None
        self.feature_count = None
        self.error_message = None

    def __repr__(self):
        if self.success:
            return f'TrainingResult(trained, {len(self.model)} weights)'
        return f'TrainingResult(untrained, {self.error_message!r})'


def model_weights(info):
    """Flatten the weights of a crfsuite model.

    Transition weights come first, then state feature weights, each sorted
    by key so the vector is stable for a given model.

    Args:
        info: ParsedInfo returned by pycrfsuite.Tagger.info()

    Returns:
        List of floats
    """
    transitions = [info.transitions[key] for key in sorted(info.transitions)]
    state_features = [info.state_features[key] for key in sorted(info.state_features)]
    return transitions + state_features


class Crf(PipeOperator, Supervised):
    """
    Linear-chain CRF for tagging sequences of observations.

    Args:
        n_labels: Number of labels (tags) in the training sequences, 1 < n < 200
        config: CrfConfig with the solver parameters
        delims: CrfSeqDelimiter used to parse the training files and observations
        tagged_obs: Identifier of the training set; the sequences are read
                    from tagged_obs.raw and tagged_obs.tagged
        min_count: Minimum word frequency kept by the feature generator

    Raises:
        ValueError: If n_labels is out of range, or config, delims or
                    tagged_obs is None. Nothing is read or trained then.
    """

    def __init__(self, n_labels, config, delims, tagged_obs, min_count=1):
        self._validate_args(n_labels, config, delims, tagged_obs)

        self.n_labels = n_labels
        self.config = config
        self.delims = delims
        self.tagged_obs = tagged_obs
        self.features = FeatureGenerator(n_labels, min_count)
        self._tagger = None

        self.training_result = self._train()

    @staticmethod
    def _validate_args(n_labels, config, delims, tagged_obs):
        low, high = NUM_LABELS_LIMITS
        if n_labels is None or not (low < n_labels < high):
            raise ValueError(f'Number of labels for generating tags for CRF {n_labels} is out of range')
        if config is None:
            raise ValueError('Configuration of the linear chain CRF is undefined')
        if delims is None:
            raise ValueError('Delimiters used in the CRF training files are undefined')
        if tagged_obs is None:
            raise ValueError('Tagged observations used in the CRF training files are undefined')

    # ─── Training ─────────────────────────────────────────────────────

    def _train(self):
        result = TrainingResult()
        seq_iter = CrfSeqIter(self.n_labels, self.tagged_obs, self.delims)

        logger.info(f'Training CRF with {self.n_labels} labels on {self.tagged_obs} ({self.config})')
        try:
            self.features.train(seq_iter)
            self._train_solver(seq_iter, result)
        except Exception as e:
            logger.error(f'CRF training on {self.tagged_obs} failed')
            logger.error(e)
            result.error_message = str(e) or type(e).__name__
            self._tagger = None
            return result

        result.success = True
        logger.info(f'CRF trained in {result.training_time:.2f}s: '
                    f'{result.sequence_count} sequences, {len(result.model)} weights')
        return result

    def _train_solver(self, seq_iter, result):
        trainer = pycrfsuite.Trainer(algorithm='lbfgs', verbose=False)
        for seq in seq_iter:
            trainer.append(self.features.features(seq.tokens), seq.label_names)
            result.sequence_count += 1
            result.token_count += len(seq)

        trainer.set_params(self.config.params)

        train_start_time = time.time()
        with tempfile.TemporaryDirectory() as model_dir:
            model_path = os.path.join(model_dir, MODEL_FILENAME)
            trainer.train(model_path)
            with open(model_path, 'rb') as f:
                data = f.read()
        result.training_time = time.time() - train_start_time

        info = trainer.logparser.last_iteration
        if info:
            result.last_iteration = info.get('num')
            result.loss = info.get('loss')
            result.feature_count = info.get('feature_count')

        tagger = pycrfsuite.Tagger()
        tagger.open_inmemory(data)
        result.model = CrfModel(model_weights(tagger.info()), data)
        self._tagger = tagger

    # ─── Prediction ───────────────────────────────────────────────────

    @property
    def is_trained(self):
        return self.training_result.success

    @property
    def model(self):
        return self.training_result.model

    @property
    def weights(self):
        """Trained weight vector, or None when training failed."""
        if self.training_result.model is None:
            return None
        return self.training_result.model.weights

    @staticmethod
    def _check_observation(obs):
        if obs is None or len(obs) <= 1:
            raise ValueError('Argument for CRF prediction is undefined')

    def _item_sequence(self, obs):
        # None when obs holds nothing but delimiters
        if not split_observations(obs, self.delims.obs_delim):
            logger.debug(f'CRF observation {obs!r} has no tokens: no prediction')
            return None
        data_seq = CrfTrainingSet(self.n_labels, obs, self.delims.obs_delim)
        return self.features.features(data_seq.tokens)

    def transform(self, obs):
        """Score the best labelling of an observation.

        Args:
            obs: Raw observation, split with the observation delimiter

        Returns:
            Probability of the most likely label sequence, or None when the
            model could not be trained or obs contains only delimiters

        Raises:
            ValueError: If obs is None or has at most one character
        """
        self._check_observation(obs)
        if self._tagger is None:
            return None

        xseq = self._item_sequence(obs)
        if xseq is None:
            return None
        yseq = self._tagger.tag(xseq)
        return self._tagger.probability(yseq)

    predict = transform

    def tag(self, obs):
        """Most likely label of each observation, or None without a result."""
        self._check_observation(obs)
        if self._tagger is None:
            return None

        xseq = self._item_sequence(obs)
        if xseq is None:
            return None
        return [int(label) for label in self._tagger.tag(xseq)]

    def validate(self, xt, index):
        raise NotSupportedError('Batch validation is not supported by the CRF tagger')

    def __repr__(self):
        state = 'trained' if self.is_trained else 'untrained'
        return f'Crf(n_labels={self.n_labels}, tagged_obs={self.tagged_obs!r}, {state})'
