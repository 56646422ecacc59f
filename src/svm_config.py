"""
svm_config.py - Configuration of Support Vector Machines

================================================================================
STRUCTURE
================================================================================

An SVM configuration is made of three independent parts:

    1. Formulation   type of problem and its constants (C-SVC, nu-SVR, ...)
    2. Kernel        similarity function and its parameters (rbf, poly, ...)
    3. Execution     training parameters (cache size, tolerance, folds)

Each part writes its values into a shared parameter dict. SVMConfig applies
them in that fixed order, so for any key written by more than one part the
execution parameters win, then the kernel, then the formulation.

The parameter dict uses scikit-learn argument names, and estimator() turns
it into the matching sklearn.svm estimator.

================================================================================
"""

import logging

from sklearn.model_selection import cross_val_score
from sklearn.svm import SVC, SVR, NuSVC, NuSVR, OneClassSVM

logger = logging.getLogger(__name__)

DEFAULT_CACHE = 25000
DEFAULT_EPS = 1e-15
NO_CROSS_VALIDATION = -1

# Starting values of the parameter dict, before any part updates it
DEFAULT_PARAMS = {
    'svm_type': None,
    'C': 1.0,
    'nu': 0.5,
    'epsilon': 0.1,
    'class_weight': None,
    'kernel': 'rbf',
    'gamma': 'scale',
    'coef0': 0.0,
    'degree': 3,
    'cache_size': 200,
    'tol': 1e-3,
    'probability': False,
}

ESTIMATORS = {
    'C_SVC': SVC,
    'NU_SVC': NuSVC,
    'ONE_CLASS': OneClassSVM,
    'EPSILON_SVR': SVR,
    'NU_SVR': NuSVR,
}


def _check_positive(name, value):
    """Raise ValueError unless value is a number above zero."""
    if value is None or value <= 0:
        raise ValueError(f'{name} {value} should be > 0')


def _check_nu(nu):
    """nu bounds the fraction of margin errors and support vectors: (0, 1]."""
    if nu is None or not (0 < nu <= 1):
        raise ValueError(f'nu {nu} is out of range (0, 1]')


# ─── Formulations ─────────────────────────────────────────────────────

class SVMFormulation:
    """Type of SVM problem. Subclasses write svm_type and their constants."""

    svm_type = None

    def update(self, params):
        params['svm_type'] = self.svm_type


class CSVCFormulation(SVMFormulation):
    """C-support vector classification.

    Args:
        c: Penalty of the error term
        class_weight: Optional dict of class label to weight multiplying c
    """

    svm_type = 'C_SVC'

    def __init__(self, c, class_weight=None):
        _check_positive('C penalty', c)
        if class_weight is not None:
            for label, weight in class_weight.items():
                _check_positive(f'Weight of class {label}', weight)
        self.c = c
        self.class_weight = dict(class_weight) if class_weight else None

    def update(self, params):
        super().update(params)
        params['C'] = self.c
        params['class_weight'] = self.class_weight


class NuSVCFormulation(SVMFormulation):
    """nu-support vector classification."""

    svm_type = 'NU_SVC'

    def __init__(self, nu):
        _check_nu(nu)
        self.nu = nu

    def update(self, params):
        super().update(params)
        params['nu'] = self.nu


class OneClassFormulation(SVMFormulation):
    """One-class SVM for novelty detection."""

    svm_type = 'ONE_CLASS'

    def __init__(self, nu):
        _check_nu(nu)
        self.nu = nu

    def update(self, params):
        super().update(params)
        params['nu'] = self.nu


class EpsilonSVRFormulation(SVMFormulation):
    """epsilon-support vector regression.

    Args:
        c: Penalty of the error term
        epsilon: Width of the tube within which no penalty is applied
    """

    svm_type = 'EPSILON_SVR'

    def __init__(self, c, epsilon):
        _check_positive('C penalty', c)
        if epsilon is None or epsilon < 0:
            raise ValueError(f'SVR epsilon {epsilon} should be >= 0')
        self.c = c
        self.epsilon = epsilon

    def update(self, params):
        super().update(params)
        params['C'] = self.c
        params['epsilon'] = self.epsilon


class NuSVRFormulation(SVMFormulation):
    """nu-support vector regression."""

    svm_type = 'NU_SVR'

    def __init__(self, c, nu):
        _check_positive('C penalty', c)
        _check_nu(nu)
        self.c = c
        self.nu = nu

    def update(self, params):
        super().update(params)
        params['C'] = self.c
        params['nu'] = self.nu


# ─── Kernels ──────────────────────────────────────────────────────────

class SVMKernel:
    """Kernel function of the SVM."""

    kernel = None

    def update(self, params):
        params['kernel'] = self.kernel


class LinearKernel(SVMKernel):
    kernel = 'linear'


class RbfKernel(SVMKernel):
    """Radial basis function kernel exp(-gamma |x - y|^2)."""

    kernel = 'rbf'

    def __init__(self, gamma):
        _check_positive('RBF gamma', gamma)
        self.gamma = gamma

    def update(self, params):
        super().update(params)
        params['gamma'] = self.gamma


class SigmoidKernel(SVMKernel):
    """Sigmoid kernel tanh(gamma <x, y> + coef0)."""

    kernel = 'sigmoid'

    def __init__(self, gamma, coef0=0.0):
        _check_positive('Sigmoid gamma', gamma)
        self.gamma = gamma
        self.coef0 = coef0

    def update(self, params):
        super().update(params)
        params['gamma'] = self.gamma
        params['coef0'] = self.coef0


class PolynomialKernel(SVMKernel):
    """Polynomial kernel (gamma <x, y> + coef0)^degree."""

    kernel = 'poly'

    def __init__(self, gamma, coef0, degree):
        _check_positive('Polynomial gamma', gamma)
        if degree is None or degree < 1:
            raise ValueError(f'Polynomial degree {degree} should be >= 1')
        self.gamma = gamma
        self.coef0 = coef0
        self.degree = int(degree)

    def update(self, params):
        super().update(params)
        params['gamma'] = self.gamma
        params['coef0'] = self.coef0
        params['degree'] = self.degree


# ─── Execution ────────────────────────────────────────────────────────

class SVMExecution:
    """Training parameters of the SVM.

    Args:
        cache_size: Size of the kernel cache (MB)
        eps: Tolerance of the stopping criterion
        n_folds: Number of folds for cross-validation, <= 0 for none
        probability: Enable probability estimates
    """

    # Keys written last by SVMConfig, overriding formulation and kernel
    OWNED_KEYS = ('cache_size', 'tol', 'probability')

    def __init__(self, cache_size, eps, n_folds, probability=False):
        _check_positive('Cache size', cache_size)
        _check_positive('Convergence criteria eps', eps)
        if isinstance(n_folds, bool) or not isinstance(n_folds, int):
            raise ValueError(f'Number of folds {n_folds!r} should be an integer')
        self.cache_size = cache_size
        self.eps = eps
        self.n_folds = n_folds
        self.probability = bool(probability)

    def update(self, params):
        params['cache_size'] = self.cache_size
        params['tol'] = self.eps
        params['probability'] = self.probability


# ─── Configuration ────────────────────────────────────────────────────

class SVMConfig:
    """
    Configuration of an SVM built from its formulation, kernel and
    execution parameters.

    Args:
        formulation: SVMFormulation
        kernel: SVMKernel
        execution: SVMExecution

    Raises:
        ValueError: If any of the three parts is None
    """

    def __init__(self, formulation, kernel, execution):
        if formulation is None:
            raise ValueError('Formulation in the configuration of SVM is undefined')
        if kernel is None:
            raise ValueError('Kernel function in the configuration of SVM is undefined')
        if execution is None:
            raise ValueError('The training execution parameters in the configuration of SVM is undefined')

        self.formulation = formulation
        self.kernel = kernel
        self.execution = execution

        params = dict(DEFAULT_PARAMS)
        formulation.update(params)
        kernel.update(params)
        execution.update(params)
        self._params = params

    @classmethod
    def create(cls, formulation, kernel, execution=None):
        """Build a configuration, using the default execution parameters
        (no cross-validation) when none are given."""
        if execution is None:
            execution = SVMExecution(DEFAULT_CACHE, DEFAULT_EPS, NO_CROSS_VALIDATION)
        return cls(formulation, kernel, execution)

    @classmethod
    def from_dict(cls, data):
        """Build a configuration from the "svm" section of config.json."""
        formulation = _formulation_from_dict(data)
        kernel = _kernel_from_dict(data)
        execution = SVMExecution(
            data.get('cache_size', DEFAULT_CACHE),
            data.get('eps', DEFAULT_EPS),
            data.get('n_folds', NO_CROSS_VALIDATION),
            data.get('probability', False),
        )
        return cls(formulation, kernel, execution)

    @property
    def params(self):
        return dict(self._params)

    @property
    def eps(self):
        return self.execution.eps

    @property
    def n_folds(self):
        return self.execution.n_folds

    @property
    def is_cross_validation(self):
        return self.execution.n_folds > 0

    def estimator(self):
        """Create the scikit-learn estimator configured by this object."""
        svm_type = self._params['svm_type']
        if svm_type not in ESTIMATORS:
            raise ValueError(f'Unknown SVM formulation {svm_type}')

        estimator_cls = ESTIMATORS[svm_type]
        accepted = estimator_cls().get_params()
        kwargs = {k: v for k, v in self._params.items() if k in accepted}
        logger.debug(f'Creating {estimator_cls.__name__} with {kwargs}')
        return estimator_cls(**kwargs)

    def cross_validate(self, x, y=None):
        """Cross-validation scores of the configured estimator.

        Raises:
            ValueError: If no cross-validation folds are configured
        """
        if not self.is_cross_validation:
            raise ValueError('Cross-validation is not configured for this SVM')
        logger.info(f'Running {self.n_folds}-fold cross-validation')
        return cross_val_score(self.estimator(), x, y, cv=self.n_folds)

    def __str__(self):
        lines = [
            f'SVM Formulation: {self._params["svm_type"]}',
            f'gamma: {self._params["gamma"]}',
            f'Probability: {self._params["probability"]}',
        ]
        weights = self._params['class_weight']
        if weights:
            lines.append('Weights: ' + ','.join(f'{label}:{w}' for label, w in weights.items()))
        else:
            lines.append('Weights:  -no weight')
        return '\n'.join(lines)


def _formulation_from_dict(data):
    name = data.get('formulation', 'c_svc')
    c = data.get('c', 1.0)
    nu = data.get('nu', 0.5)
    if name == 'c_svc':
        class_weight = data.get('class_weight') or None
        if class_weight:
            # JSON object keys are strings
            class_weight = {int(k) if str(k).lstrip('-').isdigit() else k: v
                            for k, v in class_weight.items()}
        return CSVCFormulation(c, class_weight)
    elif name == 'nu_svc':
        return NuSVCFormulation(nu)
    elif name == 'one_class':
        return OneClassFormulation(nu)
    elif name == 'epsilon_svr':
        return EpsilonSVRFormulation(c, data.get('epsilon', 0.1))
    elif name == 'nu_svr':
        return NuSVRFormulation(c, nu)
    raise ValueError(f'Unknown SVM formulation "{name}"')


def _kernel_from_dict(data):
    name = data.get('kernel', 'rbf')
    gamma = data.get('gamma', 1.0)
    if name == 'linear':
        return LinearKernel()
    elif name == 'rbf':
        return RbfKernel(gamma)
    elif name == 'sigmoid':
        return SigmoidKernel(gamma, data.get('coef0', 0.0))
    elif name == 'poly':
        return PolynomialKernel(gamma, data.get('coef0', 0.0), data.get('degree', 3))
    raise ValueError(f'Unknown SVM kernel "{name}"')
