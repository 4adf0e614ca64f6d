from typing import Any

from msgspec import Struct, to_builtins

__all__ = ("BaseStruct",)


class BaseStruct(Struct):
    """Base class for configuration structs."""

    def to_dict(
        self,
        include: set[str] | None = None,
        exclude: set[str] | None = None,
    ) -> dict[str, Any]:
        """Convert the struct to a dictionary of builtin values.

        Args:
            include: Keep only these fields
            exclude: Drop these fields
        """

        if include and exclude:
            raise ValueError("Cannot specify both include and exclude")

        ret = to_builtins(self)

        attr_names = set(ret)

        if include:
            attr_names &= include

        if exclude:
            attr_names -= exclude

        return {name: ret[name] for name in ret if name in attr_names}
