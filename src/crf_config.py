"""
crf_config.py - Configuration objects for the linear-chain CRF

CrfConfig holds the L-BFGS training parameters handed to crfsuite.
CrfSeqDelimiter describes how the .raw and .tagged training files are split
into sequences, observations and labels.
"""

import logging

logger = logging.getLogger(__name__)


# ─── Limits ───────────────────────────────────────────────────────────

NUM_LABELS_LIMITS = (1, 200)        # exclusive bounds
C1_LIMITS = (0.0, 1.5)              # L1 regularization
C2_LIMITS = (0.0, 1.5)              # L2 regularization
MAX_ITERS_LIMITS = (10, 1000)
EPS_LIMITS = (1e-8, 0.2)


def _check_range(name, value, limits):
    """Check that low <= value <= high for limits = (low, high).

    Raises:
        ValueError: If value is None or outside the limits
    """
    low, high = limits
    if value is None or not (low <= value <= high):
        raise ValueError(f'{name} {value} is out of range [{low}, {high}]')


class CrfSeqDelimiter:
    """Delimiters used to split the CRF training files.

    Args:
        obs_delim: Set of characters separating observations in a sequence.
                   Every character is a delimiter; empty fragments are dropped.
        labels_delim: String separating the labels of one tagged sequence.
        seq_delim: String separating sequences, in both .raw and .tagged files.
    """

    def __init__(self, obs_delim, labels_delim, seq_delim):
        for name, value in (('obs_delim', obs_delim),
                            ('labels_delim', labels_delim),
                            ('seq_delim', seq_delim)):
            if not isinstance(value, str) or not value:
                raise ValueError(f'CRF delimiter {name} is undefined')
        self.obs_delim = obs_delim
        self.labels_delim = labels_delim
        self.seq_delim = seq_delim

    @classmethod
    def default(cls):
        return cls(' \t,;:', ' ', '\n')

    @classmethod
    def from_dict(cls, data):
        return cls(data['obs'], data['labels'], data['seq'])

    def split_labels(self, entry):
        """Split one tagged sequence into its label strings."""
        return [lbl.strip() for lbl in entry.split(self.labels_delim) if lbl.strip()]

    def __repr__(self):
        return (f'CrfSeqDelimiter(obs_delim={self.obs_delim!r}, '
                f'labels_delim={self.labels_delim!r}, seq_delim={self.seq_delim!r})')


class CrfConfig:
    """Training parameters of the linear-chain CRF.

    Args:
        c1: Coefficient for L1 regularization
        c2: Coefficient for L2 regularization
        max_iters: Maximum number of L-BFGS iterations
        eps: Convergence tolerance of the objective
        possible_transitions: Generate transition features for label pairs
                              never seen in the training data
    """

    def __init__(self, c1=0.0, c2=1e-3, max_iters=100, eps=1e-5, possible_transitions=True):
        _check_range('L1 coefficient c1', c1, C1_LIMITS)
        _check_range('L2 coefficient c2', c2, C2_LIMITS)
        _check_range('Maximum number of iterations', max_iters, MAX_ITERS_LIMITS)
        _check_range('Convergence criteria eps', eps, EPS_LIMITS)
        self.c1 = c1
        self.c2 = c2
        self.max_iters = max_iters
        self.eps = eps
        self.possible_transitions = bool(possible_transitions)

    @classmethod
    def from_dict(cls, data):
        return cls(
            c1=data.get('c1', 0.0),
            c2=data.get('c2', 1e-3),
            max_iters=data.get('max_iters', 100),
            eps=data.get('eps', 1e-5),
            possible_transitions=data.get('possible_transitions', True),
        )

    @property
    def params(self):
        """Parameters in the form expected by pycrfsuite.Trainer.set_params()."""
        return {
            'c1': self.c1,
            'c2': self.c2,
            'max_iterations': self.max_iters,
            'epsilon': self.eps,
            'feature.possible_transitions': int(self.possible_transitions),
        }

    def __str__(self):
        return f'c1 {self.c1} c2 {self.c2} maxIters {self.max_iters} eps {self.eps}'
