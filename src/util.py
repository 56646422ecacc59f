import copy
import json
import os
import logging

logger = logging.getLogger(__name__)


DEFAULT_CONFIG = {
    "crf": {
        "c1": 0.0,
        "c2": 0.001,
        "max_iters": 100,
        "eps": 1e-05,
        "possible_transitions": True,
        "min_count": 1,
        "delimiters": {
            "obs": " \t,;:",
            "labels": " ",
            "seq": "\n"
        }
    },
    "svm": {
        "formulation": "c_svc",
        "c": 1.0,
        "nu": 0.5,
        "epsilon": 0.1,
        "class_weight": {},
        "kernel": "rbf",
        "gamma": 1.0,
        "coef0": 0.0,
        "degree": 3,
        "cache_size": 25000,
        "eps": 1e-15,
        "n_folds": -1,
        "probability": False
    }
}


def get_package_name():
    '''
    returns 'crfsvm'
    '''
    return 'crfsvm'


def get_version():
    return '0.1.0'


def get_user_config_dir():
    '''
    Return the path to the config directory under $HOME.
    Typically, it would be $HOME/.config/crfsvm
    '''
    base = os.environ.get('XDG_CONFIG_HOME') or os.path.join(os.path.expanduser('~'), '.config')
    return os.path.join(base, get_package_name())


def get_user_config_path():
    return os.path.join(get_user_config_dir(), 'config.json')


def get_default_config_data():
    return copy.deepcopy(DEFAULT_CONFIG)


def _same_type(value, default):
    # int and float are interchangeable in JSON, bool is not a number here
    if isinstance(value, bool) or isinstance(default, bool):
        return type(value) == type(default)
    if isinstance(value, (int, float)) and isinstance(default, (int, float)):
        return True
    return type(value) == type(default)


def _merge_section(name, section, default_section, warnings):
    for k in default_section:
        if k not in section:
            warning_msg = f'The key "{name}.{k}" was not found in the config.json . Using the default value'
            logger.warning(warning_msg)
            warnings.append(warning_msg)
            section[k] = copy.deepcopy(default_section[k])
        elif not _same_type(section[k], default_section[k]):
            warning_msg = f'Type mismatch found for the key "{name}.{k}" between config.json and the default configuration. Replacing the value of this key with the default value'
            logger.warning(warning_msg)
            warnings.append(warning_msg)
            section[k] = copy.deepcopy(default_section[k])
        elif isinstance(default_section[k], dict) and k != 'class_weight':
            _merge_section(f'{name}.{k}', section[k], default_section[k], warnings)


def get_config_data(configfile_path=None):
    '''
    Load the config JSON file, by default from $HOME/.config/crfsvm/config.json.
    When the file is not present, the default configuration is used. Keys missing
    from the file, or holding a value of the wrong type, are taken from the default
    configuration.

    Returns:
        tuple: (config_data, warnings_string) where warnings_string is empty if no warnings
    '''
    if configfile_path is None:
        configfile_path = get_user_config_path()
    default_config = get_default_config_data()

    if not os.path.exists(configfile_path):
        warning_msg = f'config.json is not found at {configfile_path} . Using the default configuration ..'
        logger.warning(warning_msg)
        return default_config, warning_msg

    try:
        with open(configfile_path, 'r', encoding='utf-8') as f:
            config_data = json.load(f)
    except json.decoder.JSONDecodeError as e:
        logger.error(f'Error loading the config.json at {configfile_path}')
        logger.error(e)
        logger.error('Using the default configuration ..')
        return default_config, ""

    if not isinstance(config_data, dict):
        logger.error(f'The config.json at {configfile_path} is not a JSON object. Using the default configuration ..')
        return default_config, ""

    warnings = []
    for k in default_config:
        if k not in config_data or not isinstance(config_data[k], dict):
            warning_msg = f'The section "{k}" was not found in the config.json at {configfile_path} . Copying the default section'
            logger.warning(warning_msg)
            warnings.append(warning_msg)
            config_data[k] = default_config[k]
            continue
        _merge_section(k, config_data[k], default_config[k], warnings)

    return config_data, "\n".join(warnings)


def save_config_data(config_data, configfile_path=None):
    '''
    Write the configuration to disk, creating the config directory if needed.

    Returns:
        bool: True if saved successfully
    '''
    if configfile_path is None:
        configfile_path = get_user_config_path()
    try:
        config_dir = os.path.dirname(configfile_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)
        with open(configfile_path, 'w', encoding='utf-8') as f:
            json.dump(config_data, f, ensure_ascii=False, indent=4)
        logger.info(f'Configuration saved successfully to {configfile_path}')
        return True
    except OSError as e:
        logger.error(f'Error saving config.json to {configfile_path}')
        logger.error(e)
        return False
