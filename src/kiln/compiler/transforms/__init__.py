"""Built-in node and directive transforms.

Node transforms run in the order `get_base_transform_preset` lists them;
directive transforms are looked up by directive name during element lowering.
"""

from kiln.compiler.transforms.compat_filter import transform_filter
from kiln.compiler.transforms.transform_element import build_props, transform_element
from kiln.compiler.transforms.transform_expression import transform_expression
from kiln.compiler.transforms.transform_slot_outlet import transform_slot_outlet
from kiln.compiler.transforms.transform_text import transform_text
from kiln.compiler.transforms.v_bind import transform_bind
from kiln.compiler.transforms.v_for import transform_for
from kiln.compiler.transforms.v_if import transform_if
from kiln.compiler.transforms.v_memo import transform_memo
from kiln.compiler.transforms.v_model import transform_model
from kiln.compiler.transforms.v_on import transform_on
from kiln.compiler.transforms.v_once import transform_once
from kiln.compiler.transforms.v_slot import build_slots, track_slot_scopes, track_v_for_slot_scopes

__all__ = [
    "build_props",
    "build_slots",
    "track_slot_scopes",
    "track_v_for_slot_scopes",
    "transform_bind",
    "transform_element",
    "transform_expression",
    "transform_filter",
    "transform_for",
    "transform_if",
    "transform_memo",
    "transform_model",
    "transform_on",
    "transform_once",
    "transform_slot_outlet",
    "transform_text",
]
