"""
crf_data.py - Training sequences and feature generation for the CRF

================================================================================
TRAINING FILE LAYOUT
================================================================================

A training data set is identified by a path prefix X and stored in two
UTF-8 files:

    X.raw     observations, one sequence per seq_delim
    X.tagged  integer labels, one sequence per seq_delim, in the same order

With the default delimiters (observations split on space/tab/,;:, labels
split on space, sequences split on newline):

    X.raw                          X.tagged
    ─────────────────────────      ─────────────
    the rating is good             0 1 2 3
    service, slow                  1 3

The i-th observation of a sequence receives the i-th label of the matching
tagged sequence. Labels are integers in [0, n_labels).

================================================================================
FEATURES
================================================================================

FeatureGenerator turns a sequence of observations into one list of feature
strings per position, the item format accepted by pycrfsuite:

    'bias', 'word=rating', 'shape=lower', 'suffix3=ing',
    'word[-1]=the', 'word[+1]=is', 'BOS' / 'EOS'

Words seen fewer than min_count times in training are replaced by 'UNK'.

================================================================================
"""

import os
import logging
from collections import Counter

logger = logging.getLogger(__name__)

RAW_EXTENSION = '.raw'
TAGGED_EXTENSION = '.tagged'
UNKNOWN_WORD = 'UNK'


def read_sequences(path, seq_delim):
    """Read a training file and split it into non-empty sequences.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f'CRF training file not found: {path}')

    with open(path, 'r', encoding='utf-8') as f:
        content = f.read()

    return [seq for seq in content.split(seq_delim) if seq.strip()]


def token_shape(token):
    """Classify a token by its orthographic shape.

    Returns:
        One of: 'digit', 'upper', 'title', 'lower', 'alnum', 'punct', 'other'
    """
    if token.isdigit():
        return 'digit'
    elif token.isalpha():
        if token.isupper():
            return 'upper'
        elif token.istitle():
            return 'title'
        elif token.islower():
            return 'lower'
        return 'other'
    elif token.isalnum():
        return 'alnum'
    elif all(not c.isalnum() for c in token):
        return 'punct'
    else:
        return 'other'


class CrfTrainingSet:
    """One sequence of observations, optionally tagged.

    Args:
        n_labels: Number of labels of the model
        entry: Raw sequence of observations
        obs_delim: Characters separating the observations in entry
        labels: Optional list of integer labels, one per observation

    Raises:
        ValueError: If the entry has no observations, or labels are present
                    but out of range or not aligned with the observations
    """

    def __init__(self, n_labels, entry, obs_delim, labels=None):
        self.n_labels = n_labels
        self.tokens = split_observations(entry, obs_delim)
        if not self.tokens:
            raise ValueError(f'CRF sequence {entry!r} has no observations')

        if labels is not None:
            labels = [int(label) for label in labels]
            if len(labels) != len(self.tokens):
                raise ValueError(
                    f'CRF sequence {entry!r} has {len(self.tokens)} observations '
                    f'but {len(labels)} labels')
            for label in labels:
                if not (0 <= label < n_labels):
                    raise ValueError(f'CRF label {label} is out of range [0, {n_labels})')
        self.labels = labels

    @property
    def label_names(self):
        """Labels as strings, the form crfsuite stores them in."""
        if self.labels is None:
            return None
        return [str(label) for label in self.labels]

    def __len__(self):
        return len(self.tokens)

    def __repr__(self):
        return f'CrfTrainingSet(tokens={self.tokens!r}, labels={self.labels!r})'


def split_observations(entry, chars):
    """Split an entry on every character of chars, dropping empty fragments.

    Example: split_observations("the, rating;", " ,;") → ["the", "rating"]
    """
    tokens = []
    buf = []
    for c in entry:
        if c in chars:
            if buf:
                tokens.append(''.join(buf))
                buf.clear()
        else:
            buf.append(c)
    if buf:
        tokens.append(''.join(buf))
    return tokens


class CrfSeqIter:
    """Iterator over the tagged training sequences of a data set.

    The .raw and .tagged files are read on the first iteration and cached,
    so the iterator can be traversed once by the feature generator and once
    more by the solver.

    Args:
        n_labels: Number of labels of the model
        tagged_obs: Identifier of the training set (path without extension)
        delims: CrfSeqDelimiter used to parse both files
    """

    def __init__(self, n_labels, tagged_obs, delims):
        self.n_labels = n_labels
        self.tagged_obs = tagged_obs
        self.delims = delims
        self._sequences = None

    @property
    def raw_path(self):
        return self.tagged_obs + RAW_EXTENSION

    @property
    def tagged_path(self):
        return self.tagged_obs + TAGGED_EXTENSION

    def _load(self):
        raw = read_sequences(self.raw_path, self.delims.seq_delim)
        tagged = read_sequences(self.tagged_path, self.delims.seq_delim)

        if len(raw) != len(tagged):
            raise ValueError(
                f'{self.raw_path} has {len(raw)} sequences but '
                f'{self.tagged_path} has {len(tagged)}')

        sequences = []
        for entry, tags in zip(raw, tagged):
            labels = self.delims.split_labels(tags)
            sequences.append(CrfTrainingSet(self.n_labels, entry, self.delims.obs_delim, labels))

        logger.debug(f'Loaded {len(sequences)} sequences from {self.tagged_obs}')
        return sequences

    def __iter__(self):
        if self._sequences is None:
            self._sequences = self._load()
        return iter(self._sequences)

    def __len__(self):
        if self._sequences is None:
            self._sequences = self._load()
        return len(self._sequences)

    def stats(self):
        """Corpus statistics of the training set.

        Returns:
            Dictionary with sequence_count, total_tokens and label_counts
            (label index to number of occurrences)
        """
        label_counts = Counter()
        total_tokens = 0
        for seq in self:
            total_tokens += len(seq)
            label_counts.update(seq.labels)

        return {
            'sequence_count': len(self),
            'total_tokens': total_tokens,
            'label_counts': dict(sorted(label_counts.items())),
        }


class FeatureGenerator:
    """Generates per-position feature strings for CRF sequences.

    train() must run over the training sequences before features() is used,
    so that rare words can be mapped to a shared unknown-word feature.

    Args:
        n_labels: Number of labels of the model
        min_count: Minimum number of occurrences for a word to keep its
                   identity feature
    """

    def __init__(self, n_labels, min_count=1):
        if min_count < 1:
            raise ValueError(f'Minimum word count {min_count} should be >= 1')
        self.n_labels = n_labels
        self.min_count = min_count
        self.vocabulary = None
        self.labels = None

    @property
    def is_trained(self):
        return self.vocabulary is not None

    def train(self, seq_iter):
        """Scan the training sequences to build the vocabulary and label set.

        Raises:
            ValueError: If there are no training sequences
        """
        counts = Counter()
        labels = set()
        n_sequences = 0
        for seq in seq_iter:
            n_sequences += 1
            counts.update(token.lower() for token in seq.tokens)
            if seq.labels is not None:
                labels.update(seq.labels)

        if n_sequences == 0:
            raise ValueError('No training sequences for the CRF feature generator')

        self.vocabulary = {word for word, count in counts.items() if count >= self.min_count}
        self.labels = sorted(labels)
        logger.debug(f'Feature generator: {len(self.vocabulary)} words, {len(self.labels)} labels '
                     f'from {n_sequences} sequences')

    def word(self, token):
        lowered = token.lower()
        if self.vocabulary is not None and lowered not in self.vocabulary:
            return UNKNOWN_WORD
        return lowered

    def token_features(self, tokens, i):
        """Extract the feature strings for the token at position i."""
        token = tokens[i]
        n = len(tokens)
        features = [
            'bias',
            f'word={self.word(token)}',
            f'shape={token_shape(token)}',
            f'prefix2={token[:2].lower()}',
            f'suffix3={token[-3:].lower()}',
        ]

        if i >= 1:
            features.extend([
                f'word[-1]={self.word(tokens[i-1])}',
                f'shape[-1]={token_shape(tokens[i-1])}',
            ])
        else:
            features.append('BOS')

        if i < n - 1:
            features.extend([
                f'word[+1]={self.word(tokens[i+1])}',
                f'shape[+1]={token_shape(tokens[i+1])}',
            ])
        else:
            features.append('EOS')

        return features

    def features(self, tokens):
        """Extract features for every position of a sequence of tokens."""
        return [self.token_features(tokens, i) for i in range(len(tokens))]
