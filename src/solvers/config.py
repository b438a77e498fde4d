"""Parameter loading with OmegaConf schema validation."""

import logging
from pathlib import Path

from omegaconf import DictConfig, OmegaConf
from omegaconf.errors import OmegaConfBaseException

from fv.core.errors import ConfigurationError

log = logging.getLogger(__name__)


def load_parameters(cls, cfg=None, **overrides):
    """Create a ``Parameters`` dataclass from a dict, YAML file or ``DictConfig``.

    The dataclass acts as a structured schema: unknown keys and values of the wrong
    type are rejected.

    Parameters
    ----------
    cls : type
        Parameters dataclass (e.g. ``UnsteadyParameters``).
    cfg : dict, str, Path or DictConfig, optional
        Configuration; strings and paths are read as YAML files.
    **overrides
        Values applied on top of ``cfg``.

    Returns
    -------
    Parameters
        Instance of ``cls``.

    Raises
    ------
    ConfigurationError
        When the configuration does not match the schema.
    """
    schema = OmegaConf.structured(cls)
    layers = [schema]
    try:
        if isinstance(cfg, (str, Path)):
            layers.append(OmegaConf.load(cfg))
        elif isinstance(cfg, DictConfig):
            layers.append(cfg)
        elif cfg is not None:
            layers.append(OmegaConf.create(dict(cfg)))
        if overrides:
            layers.append(OmegaConf.create(overrides))
        merged = OmegaConf.merge(*layers)
        params = OmegaConf.to_object(merged)
    except (OmegaConfBaseException, OSError) as exc:
        raise ConfigurationError(f"Invalid {cls.__name__} configuration: {exc}") from exc

    log.debug("Loaded %s", params)
    return params
