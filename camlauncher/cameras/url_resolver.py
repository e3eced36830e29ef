"""
RTSP URL resolution per camera vendor.

Each model contributes one rule mapping a network address to a stream URL.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Union

from ..utils.config import Config
from ..utils.exceptions import ConfigError, UnsupportedModelError
from ..utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ModelRule:
    """URL template for one camera model."""
    template: str

    def format(self, address: str) -> str:
        return self.template.format(address=address)


Rule = Union[ModelRule, Callable[[str], str]]


DEFAULT_RULES: dict[str, Rule] = {
    'Reolink': ModelRule('rtsp://{address}:554/h264Preview_01_main'),
    # CP Plus and other Dahua-derived firmware
    'CPPlus': ModelRule('rtsp://{address}:554/cam/realmonitor?channel=1&subtype=0'),
}


class URLResolver:
    """
    Maps (model, address) to a stream URL.

    Usage:
        resolver = URLResolver()
        resolver.register('Acme', 'rtsp://{address}/live')
        url = resolver.resolve('Reolink', '192.168.1.48')
    """

    def __init__(self, rules: Optional[dict[str, Rule]] = None):
        self._rules: dict[str, Rule] = dict(DEFAULT_RULES)
        if rules:
            for model, rule in rules.items():
                self.register(model, rule)

    @property
    def supported_models(self) -> list[str]:
        return sorted(self._rules)

    def register(self, model: str, rule: Union[str, Rule]) -> None:
        """
        Add or replace the rule for a model.

        Args:
            model: Model name as it appears in the camera list
            rule: Template string containing ``{address}``, a ModelRule,
                or a callable taking the address
        """
        if isinstance(rule, str):
            rule = ModelRule(rule)
        self._rules[model] = rule

    def resolve(self, model: str, address: str) -> str:
        """
        Resolve the stream URL for a camera.

        Raises:
            UnsupportedModelError: If no rule exists for the model
            ConfigError: If the model's rule cannot build a URL
        """
        rule = self._rules.get(model)
        if rule is None:
            raise UnsupportedModelError(model)

        try:
            if isinstance(rule, ModelRule):
                return rule.format(address)
            return rule(address)
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(f"URL rule for model {model} failed: {type(e).__name__}: {e}")


def create_url_resolver(config: Config) -> URLResolver:
    """
    Factory function to create a resolver with the config's extra models.

    Args:
        config: Launcher configuration

    Returns:
        URLResolver instance
    """
    models = config.get_models_config()
    if models:
        logger.debug(f"Registering URL templates for: {', '.join(models)}")
    return URLResolver(models)
