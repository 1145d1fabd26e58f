from types import MappingProxyType
from typing import Annotated, Any, Mapping, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, WrapSerializer

K = TypeVar("K")
V = TypeVar("V")


def _freeze(value: Mapping) -> Mapping:
    return MappingProxyType(dict(value))


def _thaw(value: Mapping, handler) -> Any:
    return handler(dict(value))


# Read-only mapping field: validated like a dict, stored as a
# MappingProxyType over a private copy, serialized as a plain dict.
FrozenDict = Annotated[Mapping[K, V], AfterValidator(_freeze), WrapSerializer(_thaw)]


class FrozenModel(BaseModel):
    """Immutable model: assigning to a field after construction raises."""

    model_config = ConfigDict(frozen=True)
