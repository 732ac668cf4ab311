"""
Domain models for constant extraction.

    from kconstx.core.models import Architecture, ConstantInfo, Description
"""

from kconstx.core.models.arch import Architecture, UnknownArchitecture, lookup
from kconstx.core.models.consts import U64_MAX, ConstantInfo, ConstantMap
from kconstx.core.models.description import (
    Call,
    Define,
    Description,
    Field,
    FlagSet,
    Ident,
    Incdir,
    Include,
    IntValue,
    Pos,
    RangeValue,
    Resource,
    StrFlags,
    Struct,
    TypeExpr,
)

__all__ = [
    # arch.py
    "Architecture",
    # description.py
    "Call",
    # consts.py
    "ConstantInfo",
    "ConstantMap",
    "Define",
    "Description",
    "Field",
    "FlagSet",
    "Ident",
    "Incdir",
    "Include",
    "IntValue",
    "Pos",
    "RangeValue",
    "Resource",
    "StrFlags",
    "Struct",
    "TypeExpr",
    "U64_MAX",
    "UnknownArchitecture",
    "lookup",
]
