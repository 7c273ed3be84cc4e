"""Training hyperparameters of the implicit factorization model."""
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictInt, ValidationError, field_validator

from hogwild_mf.errors import InvalidConfiguration


class Hyperparameters(BaseModel):
    """Immutable training configuration.

    Every construction path, `model_copy` included, is validated.

    Attributes:
        latent_dim (int): Embedding width shared by users and items.
        minibatch_size (int): Examples per gradient step.
        learning_rate (float): SGD step scale.
    """

    model_config = ConfigDict(frozen=True)

    latent_dim: StrictInt = 16
    minibatch_size: StrictInt = 10
    learning_rate: float = 0.01

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise InvalidConfiguration(str(exc)) from exc

    def model_copy(self, *, update: dict[str, Any] | None = None, deep: bool = False) -> "Hyperparameters":
        return type(self)(**{**self.model_dump(), **(update or {})})

    @field_validator("learning_rate", mode="before")
    @classmethod
    def _not_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError(f"must be a number, got {value}")
        return value

    @field_validator("latent_dim", "minibatch_size")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"must be positive, got {value}")
        return value

    @field_validator("learning_rate")
    @classmethod
    def _finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError(f"must be finite, got {value}")
        return value


class HyperparametersBuilder:
    """Named-option builder; options left unset take the `Hyperparameters` defaults.

    >>> HyperparametersBuilder().learning_rate(0.1).latent_dim(32).build()
    Hyperparameters(latent_dim=32, minibatch_size=10, learning_rate=0.1)
    """

    def __init__(self) -> None:
        self._options: dict[str, Any] = {}

    def latent_dim(self, value: int) -> "HyperparametersBuilder":
        self._options["latent_dim"] = value
        return self

    def minibatch_size(self, value: int) -> "HyperparametersBuilder":
        self._options["minibatch_size"] = value
        return self

    def learning_rate(self, value: float) -> "HyperparametersBuilder":
        self._options["learning_rate"] = value
        return self

    def build(self) -> Hyperparameters:
        return Hyperparameters(**self._options)
