#!/usr/bin/env python3
# tests/test_crf_config.py - Unit tests for crf_config.py

import pytest
import os
import sys

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from crf_config import CrfConfig, CrfSeqDelimiter


class TestCrfConfig:

    def test_defaults(self):
        config = CrfConfig()
        assert config.params == {
            'c1': 0.0,
            'c2': 1e-3,
            'max_iterations': 100,
            'epsilon': 1e-5,
            'feature.possible_transitions': 1,
        }

    def test_possible_transitions_off(self):
        config = CrfConfig(possible_transitions=False)
        assert config.params['feature.possible_transitions'] == 0

    @pytest.mark.parametrize('kwargs', [
        {'c1': -0.1},
        {'c1': 2.0},
        {'c2': 1.6},
        {'max_iters': 5},
        {'max_iters': 5000},
        {'eps': 0.0},
        {'eps': 0.5},
        {'eps': None},
    ])
    def test_out_of_range(self, kwargs):
        with pytest.raises(ValueError, match='out of range'):
            CrfConfig(**kwargs)

    def test_from_dict(self):
        config = CrfConfig.from_dict({'c1': 0.1, 'c2': 0.2, 'max_iters': 40, 'eps': 1e-3,
                                      'possible_transitions': False})
        assert config.c1 == 0.1
        assert config.c2 == 0.2
        assert config.max_iters == 40
        assert config.eps == 1e-3
        assert config.possible_transitions is False

    def test_str(self):
        assert str(CrfConfig(max_iters=20)) == 'c1 0.0 c2 0.001 maxIters 20 eps 1e-05'


class TestCrfSeqDelimiter:

    def test_default(self):
        delims = CrfSeqDelimiter.default()
        assert delims.obs_delim == ' \t,;:'
        assert delims.labels_delim == ' '
        assert delims.seq_delim == '\n'

    @pytest.mark.parametrize('args', [
        ('', ' ', '\n'),
        (' ', None, '\n'),
        (' ', ' ', ''),
        (None, None, None),
    ])
    def test_undefined(self, args):
        with pytest.raises(ValueError, match='undefined'):
            CrfSeqDelimiter(*args)

    def test_split_labels(self):
        delims = CrfSeqDelimiter(' ', '//', '\n')
        assert delims.split_labels('0//1// 2//') == ['0', '1', '2']

    def test_from_dict(self):
        delims = CrfSeqDelimiter.from_dict({'obs': ',', 'labels': ';', 'seq': '#'})
        assert (delims.obs_delim, delims.labels_delim, delims.seq_delim) == (',', ';', '#')
