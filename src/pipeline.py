"""
pipeline.py - Pipe-style stages for chaining transformations

================================================================================
OVERVIEW
================================================================================

A pipeline stage takes one input and produces an optional output. A stage
that cannot produce a result returns None, and the chain stops there:

    "some observation" | crf          -> 0.83 (or None)
    Pipeline(tokenizer, crf)(text)    -> 0.83 (or None)

Supervised stages additionally expose a batch validate() hook.

================================================================================
"""

import logging

logger = logging.getLogger(__name__)


class PipeOperator:
    """Base class for a single pipeline stage."""

    def transform(self, data):
        raise NotImplementedError(f'{type(self).__name__} does not implement transform()')

    def __call__(self, data):
        return self.transform(data)

    def __ror__(self, data):
        # Allows: data | stage
        return self.transform(data)


class Supervised:
    """Mixin for stages trained on labelled data."""

    def validate(self, xt, index):
        """Validate the stage against a labelled batch.

        Args:
            xt: Sequence of (observations, label) pairs
            index: Index of the label of interest

        Returns:
            A quality score for the batch
        """
        raise NotImplementedError(f'{type(self).__name__} does not implement validate()')


class Pipeline(PipeOperator):
    """Chain of stages applied left to right.

    Any stage returning None ends the chain with None.
    """

    def __init__(self, *stages):
        if not stages:
            raise ValueError('A pipeline needs at least one stage')
        for stage in stages:
            if not callable(stage):
                raise ValueError(f'Pipeline stage {stage!r} is not callable')
        self.stages = stages

    def transform(self, data):
        for stage in self.stages:
            data = stage(data)
            if data is None:
                logger.debug(f'Pipeline stopped at {type(stage).__name__}: no result')
                return None
        return data

    def __len__(self):
        return len(self.stages)
