from .catalog import TypeCatalog
from .loaders import from_yaml, from_dict, from_postgres
from .converters import to_zod
from .resolver import resolve
from .constraints import parse_predicate
from .compositor import compose

__all__ = [
    "TypeCatalog",
    "from_yaml",
    "from_dict",
    "from_postgres",
    "to_zod",
    "resolve",
    "parse_predicate",
    "compose",
]
